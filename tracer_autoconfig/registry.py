"""
Component registry.

Lookup table the host application may pre-populate before assembly: any
component found here is used as-is and the assembler builds no replacement.
Also carries the ordered tracer customizers and reporter appenders.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .tracer import TracerCustomizer

logger = logging.getLogger(__name__)

SAMPLER = "sampler"
REPORTER = "reporter"
METRICS = "metrics"
METER_PROVIDER = "meter_provider"
TRACER = "tracer"

# Receives the reporter list under construction and may append to it
ReporterAppender = Callable[[List[Any]], None]


class ComponentRegistry:
    """Named singletons plus ordered extension callbacks."""

    def __init__(self, components: Optional[Dict[str, Any]] = None):
        self._components: Dict[str, Any] = dict(components or {})
        self._customizers: List[TracerCustomizer] = []
        self._reporter_appenders: List[ReporterAppender] = []

    def register(self, name: str, component: Any) -> Any:
        """Register ``component`` under ``name``, replacing any previous one."""
        if component is None:
            raise ValueError(f"Cannot register None as '{name}'")
        if name in self._components:
            logger.debug(f"Replacing registered '{name}'")
        self._components[name] = component
        return component

    def get(self, name: str, default: Any = None) -> Any:
        return self._components.get(name, default)

    def unregister(self, name: str) -> Optional[Any]:
        return self._components.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._components

    def add_customizer(self, customizer: TracerCustomizer) -> TracerCustomizer:
        """Register a tracer customizer; usable as a decorator."""
        self._customizers.append(customizer)
        return customizer

    def add_reporter_appender(self, appender: ReporterAppender) -> ReporterAppender:
        """Register a callback that may append extra reporters; usable as a decorator."""
        self._reporter_appenders.append(appender)
        return appender

    @property
    def customizers(self) -> Tuple[TracerCustomizer, ...]:
        return tuple(self._customizers)

    @property
    def reporter_appenders(self) -> Tuple[ReporterAppender, ...]:
        return tuple(self._reporter_appenders)

    @property
    def names(self) -> List[str]:
        return sorted(self._components)
