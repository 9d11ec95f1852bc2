"""
Configuration management for tracer auto-configuration.

Supports YAML configuration with environment variable expansion, plain
dictionaries (nested or dotted keys) and ``OPENTRACING_JAEGER_*`` environment
variables.
"""

import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Mapping

import yaml


DEFAULT_SERVICE_NAME = "spring-boot"
CONFIG_PREFIX = ("opentracing", "jaeger")


@dataclass(frozen=True)
class ConstSamplerConfig:
    """Always / never sample."""
    decision: Optional[bool] = None


@dataclass(frozen=True)
class ProbabilisticSamplerConfig:
    """Sample a fixed fraction of traces."""
    sampling_rate: Optional[float] = None


@dataclass(frozen=True)
class RateLimitingSamplerConfig:
    """Sample at most N traces per second."""
    max_traces_per_second: Optional[int] = None


@dataclass(frozen=True)
class RemoteControlledSamplerConfig:
    """Sampling strategy pulled from a sampling manager (agent)."""
    host_port: Optional[str] = None
    sampling_rate: float = 0.001  # initial probabilistic rate until the first poll


@dataclass(frozen=True)
class HttpSenderConfig:
    """Span transport over HTTP to a collector."""
    url: Optional[str] = None
    max_payload: int = 1048576


@dataclass(frozen=True)
class UdpSenderConfig:
    """Span transport over UDP to an agent."""
    host: Optional[str] = None
    port: int = 0  # 0 = default agent port
    max_packet_size: int = 65000


@dataclass(frozen=True)
class RemoteReporterConfig:
    """Buffering of spans in front of a sender."""
    flush_interval: int = 1000  # milliseconds
    max_queue_size: int = 100


@dataclass(frozen=True)
class TracingConfig:
    """Root configuration snapshot for tracer assembly."""
    enabled: bool = True
    use_tracer_resolver: bool = False
    service_name: str = DEFAULT_SERVICE_NAME
    log_spans: bool = False
    enable_b3_propagation: bool = False
    enable_metrics: bool = False

    const_sampler: ConstSamplerConfig = field(default_factory=ConstSamplerConfig)
    probabilistic_sampler: ProbabilisticSamplerConfig = field(default_factory=ProbabilisticSamplerConfig)
    rate_limiting_sampler: RateLimitingSamplerConfig = field(default_factory=RateLimitingSamplerConfig)
    remote_controlled_sampler: RemoteControlledSamplerConfig = field(
        default_factory=RemoteControlledSamplerConfig
    )

    http_sender: HttpSenderConfig = field(default_factory=HttpSenderConfig)
    udp_sender: UdpSenderConfig = field(default_factory=UdpSenderConfig)
    remote_reporter: RemoteReporterConfig = field(default_factory=RemoteReporterConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "TracingConfig":
        """
        Create config from a dictionary.

        Keys may be camelCase, snake_case or kebab-case, nested or dotted
        (``httpSender.url``), with or without the ``opentracing.jaeger``
        prefix. Prefixed settings are merged over unprefixed ones.
        """
        values = normalize_keys(unflatten(data or {}))

        for part in CONFIG_PREFIX:
            if part in values:
                prefixed = _section(values, part)
                values = merge_sections({k: v for k, v in values.items() if k != part}, prefixed)

        const = _section(values, "constSampler")
        probabilistic = _section(values, "probabilisticSampler")
        rate_limiting = _section(values, "rateLimitingSampler")
        remote = _section(values, "remoteControlledSampler")
        http = _section(values, "httpSender")
        udp = _section(values, "udpSender")
        reporter = _section(values, "remoteReporter")

        return cls(
            enabled=as_bool(values.get("enabled"), True),
            use_tracer_resolver=as_bool(values.get("usetracerresolver"), False),
            service_name=str(values.get("servicename") or DEFAULT_SERVICE_NAME),
            log_spans=as_bool(values.get("logspans"), False),
            enable_b3_propagation=as_bool(values.get("enableb3propagation"), False),
            enable_metrics=as_bool(values.get("enablemetrics"), False),
            const_sampler=ConstSamplerConfig(
                decision=as_bool(const.get("decision"), None),
            ),
            probabilistic_sampler=ProbabilisticSamplerConfig(
                sampling_rate=as_float(probabilistic.get("samplingrate"), None),
            ),
            rate_limiting_sampler=RateLimitingSamplerConfig(
                max_traces_per_second=as_int(rate_limiting.get("maxtracespersecond"), None),
            ),
            remote_controlled_sampler=RemoteControlledSamplerConfig(
                host_port=as_str(remote.get("hostport")),
                sampling_rate=as_float(remote.get("samplingrate"), 0.001),
            ),
            http_sender=HttpSenderConfig(
                url=as_str(http.get("url")),
                max_payload=as_int(http.get("maxpayload"), 1048576),
            ),
            udp_sender=UdpSenderConfig(
                host=as_str(udp.get("host")),
                port=as_int(udp.get("port"), 0),
                max_packet_size=as_int(udp.get("maxpacketsize"), 65000),
            ),
            remote_reporter=RemoteReporterConfig(
                flush_interval=as_int(reporter.get("flushinterval"), 1000),
                max_queue_size=as_int(reporter.get("maxqueuesize"), 100),
            ),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TracingConfig":
        """Load config from environment variables."""
        environ = os.environ if environ is None else environ
        data = {
            key: environ[var]
            for var, key in ENV_VARS.items()
            if environ.get(var) not in (None, "")
        }
        return cls.from_dict(data)


# Environment variable -> config key
ENV_VARS: Dict[str, str] = {
    "OPENTRACING_JAEGER_ENABLED": "enabled",
    "OPENTRACING_JAEGER_USE_TRACER_RESOLVER": "useTracerResolver",
    "OPENTRACING_JAEGER_SERVICE_NAME": "serviceName",
    "OPENTRACING_JAEGER_LOG_SPANS": "logSpans",
    "OPENTRACING_JAEGER_ENABLE_B3_PROPAGATION": "enableB3Propagation",
    "OPENTRACING_JAEGER_ENABLE_METRICS": "enableMetrics",
    "OPENTRACING_JAEGER_CONST_SAMPLER_DECISION": "constSampler.decision",
    "OPENTRACING_JAEGER_PROBABILISTIC_SAMPLER_SAMPLING_RATE": "probabilisticSampler.samplingRate",
    "OPENTRACING_JAEGER_RATE_LIMITING_SAMPLER_MAX_TRACES_PER_SECOND": "rateLimitingSampler.maxTracesPerSecond",
    "OPENTRACING_JAEGER_REMOTE_CONTROLLED_SAMPLER_HOST_PORT": "remoteControlledSampler.hostPort",
    "OPENTRACING_JAEGER_REMOTE_CONTROLLED_SAMPLER_SAMPLING_RATE": "remoteControlledSampler.samplingRate",
    "OPENTRACING_JAEGER_HTTP_SENDER_URL": "httpSender.url",
    "OPENTRACING_JAEGER_HTTP_SENDER_MAX_PAYLOAD": "httpSender.maxPayload",
    "OPENTRACING_JAEGER_UDP_SENDER_HOST": "udpSender.host",
    "OPENTRACING_JAEGER_UDP_SENDER_PORT": "udpSender.port",
    "OPENTRACING_JAEGER_UDP_SENDER_MAX_PACKET_SIZE": "udpSender.maxPacketSize",
    "OPENTRACING_JAEGER_REMOTE_REPORTER_FLUSH_INTERVAL": "remoteReporter.flushInterval",
    "OPENTRACING_JAEGER_REMOTE_REPORTER_MAX_QUEUE_SIZE": "remoteReporter.maxQueueSize",
}


_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


def as_bool(value: Any, default: Optional[bool]) -> Optional[bool]:
    """Coerce a config value to bool, keeping ``default`` for missing values."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def as_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError(f"Invalid integer value: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid integer value: {value!r}") from None


def as_float(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError(f"Invalid number value: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid number value: {value!r}") from None


def as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def normalize_key(key: str) -> str:
    """``httpSender``, ``http_sender`` and ``http-sender`` all become ``httpsender``."""
    return re.sub(r"[-_]", "", str(key)).lower()


def normalize_keys(value: Any) -> Any:
    """Recursively normalize mapping keys."""
    if isinstance(value, Mapping):
        return {normalize_key(k): normalize_keys(v) for k, v in value.items()}
    return value


def unflatten(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Expand dotted keys (``a.b.c``) into nested dictionaries."""
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            value = unflatten(value)
        target = result
        *parents, leaf = str(key).split(".")
        for part in parents:
            target = target.setdefault(part, {})
            if not isinstance(target, dict):
                raise ValueError(f"Config key '{key}' conflicts with a scalar value")
        if isinstance(target.get(leaf), dict) and isinstance(value, dict):
            target[leaf].update(value)
        else:
            target[leaf] = value
    return result


def merge_sections(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``; override wins on conflicts."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), Mapping) and isinstance(value, Mapping):
            result[key] = merge_sections(result[key], value)
        else:
            result[key] = value
    return result


def _section(values: Mapping[str, Any], name: str) -> Dict[str, Any]:
    section = values.get(normalize_key(name))
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(section).__name__}")
    return dict(section)


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values."""
    if isinstance(value, str):
        # Match ${VAR} or $VAR patterns
        pattern = r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)'

        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


def load_config(path: str | Path) -> TracingConfig:
    """Load configuration from YAML file."""
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")

    return TracingConfig.from_dict(expand_env_vars(raw))


def create_default_config() -> str:
    """Generate default configuration YAML."""
    return """# Tracer auto-configuration

opentracing:
  jaeger:
    enabled: true
    serviceName: my-service
    # Hand tracer construction to an installed resolver plugin
    useTracerResolver: false
    # Log every finished span
    logSpans: false
    # Accept and emit B3 (X-B3-*) headers as well as uber-trace-id
    enableB3Propagation: false
    enableMetrics: false

    # Sampling: the first configured sampler wins, default samples everything
    # constSampler:
    #   decision: true
    # probabilisticSampler:
    #   samplingRate: 0.1
    # rateLimitingSampler:
    #   maxTracesPerSecond: 10
    # remoteControlledSampler:
    #   hostPort: localhost:5778
    #   samplingRate: 0.001

    # Reporting: every configured sender gets its own remote reporter
    # httpSender:
    #   url: http://localhost:4318/v1/traces
    #   maxPayload: 1048576
    # udpSender:
    #   host: localhost
    #   port: 6831
    #   maxPacketSize: 65000
    remoteReporter:
      flushInterval: 1000
      maxQueueSize: 100
"""
