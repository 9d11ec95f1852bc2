"""
Tracer Autoconfig - Configuration-driven tracing client assembly

Builds a sampler, a reporter chain and a tracer from declarative settings
at application startup, honoring components the host registered itself.
"""

__version__ = "0.1.0"

from .config import TracingConfig, load_config
from .registry import ComponentRegistry
from .assembler import ComponentAssembler, assemble_tracer
from .tracer import Tracer, TracerBuilder
from .resolver import TracerResolverUnavailableError
from .autoconfigure import init_tracing, get_tracer, shutdown_tracing

__all__ = [
    "__version__",
    "TracingConfig",
    "load_config",
    "ComponentRegistry",
    "ComponentAssembler",
    "assemble_tracer",
    "Tracer",
    "TracerBuilder",
    "TracerResolverUnavailableError",
    "init_tracing",
    "get_tracer",
    "shutdown_tracing",
]
