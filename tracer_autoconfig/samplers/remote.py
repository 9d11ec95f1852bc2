"""
Remote-controlled sampler.

Polls a sampling manager (the tracing agent's ``/sampling`` endpoint) for the
service's strategy and swaps the active sampler when it changes. Until the
first successful poll the initial sampler decides.

Strategy payloads look like::

    {"strategyType": "PROBABILISTIC", "probabilisticSampling": {"samplingRate": 0.5}}
    {"strategyType": "RATE_LIMITING", "rateLimitingSampling": {"maxTracesPerSecond": 10}}
    {"operationSampling": {"defaultSamplingProbability": 0.1, ...}}
"""

import logging
import threading
from typing import Any, Dict, Optional, Sequence

import httpx
from opentelemetry.context import Context
from opentelemetry.sdk.trace.sampling import Sampler, SamplingResult, TraceIdRatioBased
from opentelemetry.trace import Link, SpanKind
from opentelemetry.trace.span import TraceState
from opentelemetry.util.types import Attributes

from ..metrics import Metrics
from .rate_limiting import RateLimitingSampler

logger = logging.getLogger(__name__)

DEFAULT_SAMPLING_HOST_PORT = "localhost:5778"
DEFAULT_INITIAL_SAMPLING_RATE = 0.001
DEFAULT_POLL_INTERVAL = 60.0  # seconds


class HttpSamplingManager:
    """Fetches sampling strategies over HTTP."""

    def __init__(
        self,
        host_port: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 5.0,
    ):
        self.host_port = host_port or DEFAULT_SAMPLING_HOST_PORT
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def url(self) -> str:
        return f"http://{self.host_port}/sampling"

    def get_sampling_strategy(self, service_name: str) -> Dict[str, Any]:
        """
        Query the strategy for ``service_name``.

        Raises httpx.HTTPError on transport or status errors, httpx.InvalidURL
        on a malformed host:port and ValueError on a body that is not JSON.
        """
        response = self._client.get(self.url, params={"service": service_name})
        response.raise_for_status()
        return response.json()

    def close(self):
        self._client.close()

    def __repr__(self) -> str:
        return f"HttpSamplingManager({self.host_port})"


def parse_sampling_strategy(strategy: Dict[str, Any]) -> Sampler:
    """Build a sampler from a strategy payload. Raises ValueError if unusable."""
    if not isinstance(strategy, dict):
        raise ValueError(f"Sampling strategy must be an object, got {type(strategy).__name__}")

    operation = strategy.get("operationSampling")
    if operation:
        # Per-operation strategies are not supported; honor the default probability
        rate = operation.get("defaultSamplingProbability")
        if rate is None:
            raise ValueError("operationSampling without defaultSamplingProbability")
        return TraceIdRatioBased(float(rate))

    probabilistic = strategy.get("probabilisticSampling")
    if probabilistic:
        return TraceIdRatioBased(float(probabilistic["samplingRate"]))

    rate_limiting = strategy.get("rateLimitingSampling")
    if rate_limiting:
        return RateLimitingSampler(float(rate_limiting["maxTracesPerSecond"]))

    raise ValueError(f"Unsupported sampling strategy: {strategy}")


class RemoteControlledSampler(Sampler):
    """
    Sampler whose strategy is owned by a remote sampling manager.

    Polling runs on a daemon thread every ``poll_interval`` seconds; the first
    poll happens one interval after construction, so building the sampler
    never touches the network. Pass ``poll_interval=None`` to disable polling
    and drive :meth:`update_sampler` manually.
    """

    def __init__(
        self,
        service_name: str,
        manager: HttpSamplingManager,
        initial_sampler: Optional[Sampler] = None,
        metrics: Optional[Metrics] = None,
        poll_interval: Optional[float] = DEFAULT_POLL_INTERVAL,
    ):
        self.service_name = service_name
        self.manager = manager
        self.metrics = metrics or Metrics.noop()
        self.poll_interval = poll_interval

        self._sampler = initial_sampler or TraceIdRatioBased(DEFAULT_INITIAL_SAMPLING_RATE)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        if poll_interval:
            self._thread = threading.Thread(
                target=self._poll_loop,
                name=f"sampling-poller-{service_name}",
                daemon=True,
            )
            self._thread.start()

    @property
    def sampler(self) -> Sampler:
        """The currently active sampler."""
        with self._lock:
            return self._sampler

    def should_sample(
        self,
        parent_context: Optional[Context],
        trace_id: int,
        name: str,
        kind: Optional[SpanKind] = None,
        attributes: Attributes = None,
        links: Optional[Sequence[Link]] = None,
        trace_state: Optional[TraceState] = None,
    ) -> SamplingResult:
        return self.sampler.should_sample(
            parent_context, trace_id, name, kind, attributes, links, trace_state,
        )

    def update_sampler(self) -> bool:
        """
        Poll the manager once.

        Returns True when the active sampler was replaced. Failures are
        logged and counted; the current sampler stays in place.
        """
        try:
            strategy = self.manager.get_sampling_strategy(self.service_name)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.metrics.sampler_query_failure.add(1)
            logger.warning(f"Sampling strategy query to {self.manager.url} failed: {e}")
            return False
        except ValueError as e:
            self.metrics.sampler_parsing_failure.add(1)
            logger.warning(f"Sampling strategy from {self.manager.url} is not valid JSON: {e}")
            return False

        self.metrics.sampler_retrieved.add(1)

        try:
            new_sampler = parse_sampling_strategy(strategy)
        except (KeyError, TypeError, ValueError) as e:
            self.metrics.sampler_parsing_failure.add(1)
            logger.warning(f"Unusable sampling strategy for {self.service_name}: {e}")
            return False

        with self._lock:
            if new_sampler.get_description() == self._sampler.get_description():
                return False
            self._sampler = new_sampler

        self.metrics.sampler_updated.add(1)
        logger.info(f"Sampler for {self.service_name} updated to {new_sampler.get_description()}")
        return True

    def _poll_loop(self):
        while not self._stop.wait(self.poll_interval):
            try:
                self.update_sampler()
            except Exception:
                # polling outlives a failed poll
                logger.exception(f"Sampling strategy poll for {self.service_name} failed")

    def close(self):
        """Stop polling and release the manager's connections."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        self.manager.close()

    def get_description(self) -> str:
        return f"RemoteControlledSampler{{{self.manager.host_port}, {self.sampler.get_description()}}}"

    def __repr__(self) -> str:
        return self.get_description()
