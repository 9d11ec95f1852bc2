"""
External tracer resolution.

Resolvers are installed as entry points in the ``tracer_autoconfig.resolvers``
group. Each loads a zero-argument callable returning a tracer, or None when it
cannot provide one. Resolvers are tried in entry point name order and the
first tracer wins.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)

RESOLVER_GROUP = "tracer_autoconfig.resolvers"

TracerResolver = Callable[[], Optional[Any]]


class TracerResolverUnavailableError(RuntimeError):
    """External tracer resolution was requested but produced no tracer."""


def load_resolvers(group: str = RESOLVER_GROUP) -> List[TracerResolver]:
    """Load installed resolver callables, ordered by entry point name."""
    resolvers = []
    for entry_point in sorted(entry_points(group=group), key=lambda ep: ep.name):
        logger.debug(f"Loading tracer resolver '{entry_point.name}' ({entry_point.value})")
        resolvers.append(entry_point.load())
    return resolvers


def resolve_tracer(resolvers: Optional[Sequence[TracerResolver]] = None) -> Any:
    """
    Ask each resolver for a tracer.

    Raises TracerResolverUnavailableError when no resolver is installed or
    none of them returns a tracer.
    """
    if resolvers is None:
        resolvers = load_resolvers()

    if not resolvers:
        raise TracerResolverUnavailableError(
            f"useTracerResolver is enabled but no tracer resolver is installed "
            f"(entry point group '{RESOLVER_GROUP}')"
        )

    for resolver in resolvers:
        tracer = resolver()
        if tracer is not None:
            logger.info(f"Tracer resolved by {getattr(resolver, '__name__', resolver)!s}")
            return tracer

    raise TracerResolverUnavailableError(
        f"None of the {len(resolvers)} installed tracer resolver(s) returned a tracer"
    )
