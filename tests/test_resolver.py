"""Tests for external tracer resolution."""

import pytest

from tracer_autoconfig import resolver
from tracer_autoconfig.resolver import (
    RESOLVER_GROUP,
    TracerResolverUnavailableError,
    load_resolvers,
    resolve_tracer,
)


class FakeEntryPoint:
    def __init__(self, name, target):
        self.name = name
        self.value = f"plugins:{name}"
        self.target = target

    def load(self):
        return self.target


class EntryList(list):
    pass


@pytest.fixture
def entries(monkeypatch):
    found = EntryList()
    found.groups = []

    def fake_entry_points(group):
        found.groups.append(group)
        return list(found)

    monkeypatch.setattr(resolver, "entry_points", fake_entry_points)
    return found


def test_load_resolvers_ordered_by_name(entries):
    """Test that resolvers load in entry point name order."""
    def beta():
        return None

    def alpha():
        return None

    entries.extend([FakeEntryPoint("beta", beta), FakeEntryPoint("alpha", alpha)])

    assert load_resolvers() == [alpha, beta]
    assert entries.groups == [RESOLVER_GROUP]


def test_resolve_with_nothing_installed(entries):
    """Test that missing resolvers are an error."""
    with pytest.raises(TracerResolverUnavailableError, match="no tracer resolver is installed"):
        resolve_tracer()


def test_resolve_uses_installed_resolver(entries):
    """Test discovery when no resolvers are passed in."""
    tracer = object()
    entries.append(FakeEntryPoint("only", lambda: tracer))

    assert resolve_tracer() is tracer


def test_first_tracer_wins():
    """Test that resolvers returning None are skipped."""
    first, second = object(), object()

    assert resolve_tracer([lambda: None, lambda: first, lambda: second]) is first


def test_all_resolvers_decline():
    """Test that no tracer from any resolver is an error."""
    with pytest.raises(TracerResolverUnavailableError, match="2 installed"):
        resolve_tracer([lambda: None, lambda: None])


def test_empty_resolver_list_is_an_error():
    """Test that an explicit empty list does not trigger discovery."""
    with pytest.raises(TracerResolverUnavailableError):
        resolve_tracer([])


def test_unavailable_error_is_runtime_error():
    """Test the error hierarchy."""
    assert issubclass(TracerResolverUnavailableError, RuntimeError)
