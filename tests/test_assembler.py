"""Tests for configuration-driven tracer assembly."""

import socket

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import SpanProcessor
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, TraceIdRatioBased

from tracer_autoconfig import assembler as assembler_module
from tracer_autoconfig import registry as names
from tracer_autoconfig.assembler import ComponentAssembler, assemble_tracer
from tracer_autoconfig.config import TracingConfig
from tracer_autoconfig.customizers import B3PropagationCustomizer
from tracer_autoconfig.metrics import Metrics
from tracer_autoconfig.registry import ComponentRegistry
from tracer_autoconfig.reporters import CompositeReporter, LoggingReporter, RemoteReporter
from tracer_autoconfig.resolver import TracerResolverUnavailableError
from tracer_autoconfig.samplers import RateLimitingSampler, RemoteControlledSampler
from tracer_autoconfig.senders import HttpSender, UdpSender
from tracer_autoconfig.tracer import Tracer


def assembler_for(**settings) -> ComponentAssembler:
    return ComponentAssembler(TracingConfig.from_dict(settings))


def not_constructed(*args, **kwargs):
    raise AssertionError("component should not have been constructed")


# =============================================================================
# Sampler
# =============================================================================

def test_sampler_fallback_samples_everything():
    """Test that no sampler settings means sample everything."""
    assert assembler_for().resolve_sampler() is ALWAYS_ON


def test_const_sampler_decision():
    """Test const decisions, including an explicit False."""
    assert assembler_for(**{"constSampler.decision": True}).resolve_sampler() is ALWAYS_ON
    assert assembler_for(**{"constSampler.decision": False}).resolve_sampler() is ALWAYS_OFF


def test_probabilistic_sampler():
    """Test the probabilistic sampler."""
    sampler = assembler_for(**{"probabilisticSampler.samplingRate": 0.3}).resolve_sampler()

    assert isinstance(sampler, TraceIdRatioBased)
    assert sampler.rate == 0.3


def test_rate_limiting_sampler():
    """Test the rate limiting sampler."""
    sampler = assembler_for(**{"rateLimitingSampler.maxTracesPerSecond": 4}).resolve_sampler()

    assert isinstance(sampler, RateLimitingSampler)
    assert sampler.max_traces_per_second == 4


def test_remote_controlled_sampler():
    """Test the remote-controlled sampler and its initial sampler."""
    metrics = Metrics.in_memory()
    assembler = assembler_for(**{
        "serviceName": "orders",
        "remoteControlledSampler.hostPort": "agent:5778",
        "remoteControlledSampler.samplingRate": 0.05,
    })

    sampler = assembler.resolve_sampler(metrics)
    try:
        assert isinstance(sampler, RemoteControlledSampler)
        assert sampler.service_name == "orders"
        assert sampler.manager.host_port == "agent:5778"
        assert sampler.metrics is metrics
        assert isinstance(sampler.sampler, TraceIdRatioBased)
        assert sampler.sampler.rate == 0.05
    finally:
        sampler.close()


def test_empty_remote_host_port_is_ignored():
    """Test that an empty host:port does not select the remote sampler."""
    assert assembler_for(**{"remoteControlledSampler.hostPort": ""}).resolve_sampler() is ALWAYS_ON


SAMPLER_SETTINGS = {
    "const": ("constSampler.decision", False),
    "probabilistic": ("probabilisticSampler.samplingRate", 0.5),
    "rate_limiting": ("rateLimitingSampler.maxTracesPerSecond", 2),
    "remote": ("remoteControlledSampler.hostPort", "agent:5778"),
}
SAMPLER_TYPES = {
    "const": type(ALWAYS_OFF),
    "probabilistic": TraceIdRatioBased,
    "rate_limiting": RateLimitingSampler,
    "remote": RemoteControlledSampler,
}
PRECEDENCE = ["const", "probabilistic", "rate_limiting", "remote"]


@pytest.mark.parametrize("winner, loser", [
    (PRECEDENCE[i], PRECEDENCE[j])
    for i in range(len(PRECEDENCE))
    for j in range(i + 1, len(PRECEDENCE))
])
def test_sampler_precedence(winner, loser):
    """Test first-match-wins for every pair of sampler settings."""
    settings = dict([SAMPLER_SETTINGS[winner], SAMPLER_SETTINGS[loser]])

    sampler = assembler_for(**settings).resolve_sampler()
    try:
        assert type(sampler) is SAMPLER_TYPES[winner]
    finally:
        if hasattr(sampler, "close"):
            sampler.close()


def test_registered_sampler_is_used(monkeypatch):
    """Test that a registered sampler bypasses sampler assembly."""
    monkeypatch.setattr(assembler_module, "RemoteControlledSampler", not_constructed)
    registry = ComponentRegistry({names.SAMPLER: ALWAYS_OFF})
    assembler = ComponentAssembler(
        TracingConfig.from_dict({"remoteControlledSampler.hostPort": "agent:5778"}),
        registry,
    )

    assert assembler.resolve_sampler() is ALWAYS_OFF


# =============================================================================
# Reporter
# =============================================================================

def test_no_reporters_gives_empty_composite():
    """Test that nothing configured yields an empty composite, not an error."""
    reporter = assembler_for().resolve_reporter()

    assert isinstance(reporter, CompositeReporter)
    assert reporter.reporters == ()


def test_empty_sender_settings_are_ignored():
    """Test that empty url / host do not create reporters."""
    reporter = assembler_for(**{"httpSender.url": "", "udpSender.host": ""}).resolve_reporter()

    assert reporter.reporters == ()


def test_http_and_logging_reporters():
    """Test http url + logSpans gives [remote http, logging]."""
    reporter = assembler_for(**{"httpSender.url": "http://x", "logSpans": True}).resolve_reporter()
    try:
        assert [type(r) for r in reporter.reporters] == [RemoteReporter, LoggingReporter]
        assert isinstance(reporter.reporters[0].sender, HttpSender)
        assert reporter.reporters[0].sender.url == "http://x"
    finally:
        reporter.shutdown()


def test_reporter_order_and_settings():
    """Test fixed order http, udp, logging, appended and reporter settings."""
    extra = SimpleSpanProcessor(InMemorySpanExporter())
    registry = ComponentRegistry()
    registry.add_reporter_appender(lambda reporters: reporters.append(extra))
    metrics = Metrics.in_memory()

    config = TracingConfig.from_dict({
        "logSpans": True,
        "udpSender": {"host": "127.0.0.1", "port": 6832, "maxPacketSize": 1500},
        "httpSender": {"url": "http://collector:4318/v1/traces", "maxPayload": 4096},
        "remoteReporter": {"flushInterval": 200, "maxQueueSize": 30},
    })
    reporter = ComponentAssembler(config, registry).resolve_reporter(metrics)
    try:
        http, udp, logging_reporter, appended = reporter.reporters

        assert isinstance(http.sender, HttpSender)
        assert http.sender.max_payload == 4096
        assert isinstance(udp.sender, UdpSender)
        assert (udp.sender.host, udp.sender.port, udp.sender.max_packet_size) == ("127.0.0.1", 6832, 1500)
        assert isinstance(logging_reporter, LoggingReporter)
        assert appended is extra

        for remote in (http, udp):
            assert remote.flush_interval == 200
            assert remote.max_queue_size == 30
            assert remote.metrics is metrics
    finally:
        reporter.shutdown()


def test_registered_reporter_is_used(monkeypatch):
    """Test that a registered reporter bypasses sender construction."""
    monkeypatch.setattr(assembler_module, "HttpSender", not_constructed)
    monkeypatch.setattr(assembler_module, "UdpSender", not_constructed)
    registered = SimpleSpanProcessor(InMemorySpanExporter())
    registry = ComponentRegistry({names.REPORTER: registered})
    config = TracingConfig.from_dict({"httpSender.url": "http://x", "udpSender.host": "agent"})

    assert ComponentAssembler(config, registry).resolve_reporter() is registered


def test_unresolvable_udp_host_fails():
    """Test that sender construction errors propagate."""
    with pytest.raises(socket.gaierror):
        assembler_for(**{"udpSender.host": "no-such-agent.invalid"}).resolve_reporter()


def test_resolution_is_idempotent():
    """Test that the same config resolves to structurally equal components."""
    settings = {
        "rateLimitingSampler.maxTracesPerSecond": 3,
        "httpSender.url": "http://collector:4318/v1/traces",
        "udpSender.host": "127.0.0.1",
        "logSpans": True,
    }
    first = assembler_for(**settings)
    second = assembler_for(**settings)

    first_reporter = first.resolve_reporter()
    second_reporter = second.resolve_reporter()
    try:
        assert first.resolve_sampler().get_description() == second.resolve_sampler().get_description()
        assert repr(first_reporter) == repr(second_reporter)
        assert first_reporter is not second_reporter
    finally:
        first_reporter.shutdown()
        second_reporter.shutdown()


# =============================================================================
# Metrics
# =============================================================================

def test_metrics_noop_by_default():
    """Test that metrics are no-op unless enabled."""
    assert assembler_for().resolve_metrics().enabled is False


def test_metrics_in_memory_when_enabled():
    """Test that enableMetrics gives in-memory metrics."""
    metrics = assembler_for(enableMetrics=True).resolve_metrics()

    assert metrics.enabled is True
    assert metrics.reader is not None


def test_registered_metrics_are_used():
    """Test that registered metrics are reused."""
    metrics = Metrics.in_memory()
    registry = ComponentRegistry({names.METRICS: metrics})

    assert ComponentAssembler(TracingConfig(), registry).resolve_metrics() is metrics


def test_registered_meter_provider_backs_metrics():
    """Test that a registered meter provider backs new metrics."""
    provider = MeterProvider()
    registry = ComponentRegistry({names.METER_PROVIDER: provider})

    metrics = ComponentAssembler(TracingConfig(), registry).resolve_metrics()

    assert metrics.meter_provider is provider


# =============================================================================
# Tracer
# =============================================================================

def test_b3_customizer_only_when_enabled():
    """Test conditional registration of the B3 customizer."""
    assert assembler_for().customizers() == []

    customizers = assembler_for(enableB3Propagation=True).customizers()
    assert len(customizers) == 1
    assert isinstance(customizers[0], B3PropagationCustomizer)


def test_builtin_customizers_run_before_registered():
    """Test customizer ordering."""
    def custom(builder):
        pass

    registry = ComponentRegistry()
    registry.add_customizer(custom)
    assembler = ComponentAssembler(TracingConfig(enable_b3_propagation=True), registry)

    customizers = assembler.customizers()

    assert isinstance(customizers[0], B3PropagationCustomizer)
    assert customizers[1] is custom


def test_build_tracer_applies_customizers_in_order():
    """Test that the last customizer to set a tag wins."""
    calls = []

    def first(builder):
        calls.append("first")
        builder.with_tag("owner", "first")

    def second(builder):
        calls.append("second")
        builder.with_tag("owner", "second")

    assembler = assembler_for(serviceName="orders")
    tracer = assembler.build_tracer(ALWAYS_ON, CompositeReporter(), [first, second])

    assert calls == ["first", "second"]
    assert tracer.tags["owner"] == "second"
    assert tracer.service_name == "orders"

    tracer.close()


def test_assemble_end_to_end():
    """Test full assembly and registration of components."""
    registry = ComponentRegistry()
    config = TracingConfig.from_dict({
        "serviceName": "orders",
        "logSpans": True,
        "probabilisticSampler.samplingRate": 1.0,
        "enableB3Propagation": True,
    })

    tracer = ComponentAssembler(config, registry).assemble()
    try:
        assert isinstance(tracer, Tracer)
        assert registry.get(names.TRACER) is tracer
        assert registry.get(names.SAMPLER) is tracer.sampler
        assert registry.get(names.REPORTER) is tracer.reporter
        assert isinstance(registry.get(names.METRICS), Metrics)
        assert [type(r) for r in tracer.reporter.reporters] == [LoggingReporter]
        assert "x-b3-traceid" in tracer.propagator.fields
    finally:
        tracer.close()


def test_assemble_backs_off_for_registered_tracer(monkeypatch):
    """Test that a registered tracer is returned and nothing is built."""
    monkeypatch.setattr(assembler_module, "HttpSender", not_constructed)
    monkeypatch.setattr(assembler_module, "TracerBuilder", not_constructed)
    host_tracer = object()
    registry = ComponentRegistry({names.TRACER: host_tracer})
    config = TracingConfig.from_dict({"httpSender.url": "http://x"})

    assert ComponentAssembler(config, registry).assemble() is host_tracer
    assert names.SAMPLER not in registry
    assert names.REPORTER not in registry


class StoppableProcessor(SpanProcessor):
    def __init__(self):
        self.stopped = False

    def shutdown(self):
        self.stopped = True


def test_failed_assembly_stops_built_sampler(monkeypatch):
    """Test that a reporter error stops the already-polling sampler."""
    built = []

    def recording_sampler(*args, **kwargs):
        sampler = RemoteControlledSampler(*args, **kwargs)
        built.append(sampler)
        return sampler

    monkeypatch.setattr(assembler_module, "RemoteControlledSampler", recording_sampler)
    registry = ComponentRegistry()
    config = TracingConfig.from_dict({
        "remoteControlledSampler.hostPort": "agent:5778",
        "udpSender.host": "no-such-agent.invalid",
    })

    with pytest.raises(socket.gaierror):
        ComponentAssembler(config, registry).assemble()

    sampler, = built
    assert not sampler._thread.is_alive()
    assert registry.names == []


def test_failed_customizer_stops_reporter():
    """Test that a customizer error shuts the reporter down and registers nothing."""
    extra = StoppableProcessor()
    registry = ComponentRegistry()
    registry.add_reporter_appender(lambda reporters: reporters.append(extra))

    @registry.add_customizer
    def broken(builder):
        raise RuntimeError("bad customizer")

    with pytest.raises(RuntimeError, match="bad customizer"):
        ComponentAssembler(TracingConfig(), registry).assemble()

    assert extra.stopped is True
    assert names.SAMPLER not in registry
    assert names.REPORTER not in registry
    assert names.TRACER not in registry


def test_failed_assembly_keeps_host_components_running():
    """Test that host-registered components are left alone on failure."""
    host_reporter = StoppableProcessor()
    registry = ComponentRegistry({names.REPORTER: host_reporter})

    @registry.add_customizer
    def broken(builder):
        raise RuntimeError("bad customizer")

    with pytest.raises(RuntimeError):
        ComponentAssembler(TracingConfig(), registry).assemble()

    assert host_reporter.stopped is False
    assert registry.get(names.REPORTER) is host_reporter


def test_failed_sender_stops_earlier_reporters(monkeypatch):
    """Test that reporters built before a sender error are shut down."""
    stopped = []

    class RecordingRemoteReporter(RemoteReporter):
        def shutdown(self):
            stopped.append(self.sender)
            super().shutdown()

    def broken_udp_sender(*args, **kwargs):
        raise OSError("no route to agent")

    monkeypatch.setattr(assembler_module, "RemoteReporter", RecordingRemoteReporter)
    monkeypatch.setattr(assembler_module, "UdpSender", broken_udp_sender)

    with pytest.raises(OSError):
        assembler_for(**{"httpSender.url": "http://x", "udpSender.host": "agent"}).resolve_reporter()

    assert len(stopped) == 1
    assert isinstance(stopped[0], HttpSender)


def test_assemble_disabled():
    """Test that a disabled configuration builds nothing."""
    registry = ComponentRegistry()

    assert ComponentAssembler(TracingConfig(enabled=False), registry).assemble() is None
    assert registry.names == []


def test_assemble_tracer_shortcut():
    """Test the module-level shortcut."""
    tracer = assemble_tracer(TracingConfig(service_name="shortcut"))

    assert tracer.service_name == "shortcut"
    assert tracer.sampler is ALWAYS_ON

    tracer.close()


def test_spans_reach_registered_reporter_through_assembly():
    """Test that a host-supplied reporter receives the tracer's spans."""
    exporter = InMemorySpanExporter()
    registry = ComponentRegistry({names.REPORTER: SimpleSpanProcessor(exporter)})

    tracer = ComponentAssembler(TracingConfig(), registry).assemble()
    with tracer.start_as_current_span("checkout"):
        pass

    assert [span.name for span in exporter.get_finished_spans()] == ["checkout"]

    tracer.close()


# =============================================================================
# External resolver
# =============================================================================

def test_resolver_mode_without_resolver_is_an_error(monkeypatch):
    """Test that useTracerResolver without an installed resolver fails fast."""
    monkeypatch.setattr(assembler_module, "TracerBuilder", not_constructed)
    assembler = ComponentAssembler(TracingConfig(use_tracer_resolver=True), resolvers=[])

    with pytest.raises(TracerResolverUnavailableError):
        assembler.assemble()


def test_resolver_mode_delegates_entirely(monkeypatch):
    """Test that the resolved tracer is used and no components are built."""
    monkeypatch.setattr(assembler_module, "HttpSender", not_constructed)
    monkeypatch.setattr(assembler_module, "TracerBuilder", not_constructed)
    resolved = object()
    registry = ComponentRegistry()
    config = TracingConfig.from_dict({"useTracerResolver": True, "httpSender.url": "http://x"})

    tracer = ComponentAssembler(config, registry, resolvers=[lambda: None, lambda: resolved]).assemble()

    assert tracer is resolved
    assert registry.get(names.TRACER) is resolved
    assert names.SAMPLER not in registry
    assert names.REPORTER not in registry
    assert names.METRICS not in registry


def test_build_tracer_in_resolver_mode_ignores_components():
    """Test that build_tracer delegates when the resolver is requested."""
    resolved = object()
    assembler = ComponentAssembler(TracingConfig(use_tracer_resolver=True), resolvers=[lambda: resolved])

    assert assembler.build_tracer(ALWAYS_OFF, CompositeReporter(), [not_constructed]) is resolved


def test_registered_reporter_type_is_any_span_processor():
    """Test that any span processor can stand in as the reporter."""
    class Custom(SpanProcessor):
        pass

    registry = ComponentRegistry({names.REPORTER: Custom()})
    tracer = ComponentAssembler(TracingConfig(), registry).assemble()

    assert isinstance(tracer.reporter, Custom)

    tracer.close()
