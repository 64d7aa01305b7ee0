"""
Continuous Profiling Bridge

This module connects request handling to the pyroscope continuous profiler.

Two concerns:
- Starting the pyroscope agent once at startup. The agent samples the process
  and uploads profiles out of band. Profiling is best-effort: a failure to
  start is logged and the service keeps serving without it.
- Attaching labels (the request trace id) to the calling execution context for
  the lifetime of one unit of work, so samples taken meanwhile can be sliced
  by request. Labels live in a ContextVar (each worker thread or task sees only
  its own) and, while the agent runs, in pyroscope's per-thread tag map.
  Attach and detach are symmetric and detach runs on every exit path.
"""

import contextvars
import threading
from contextlib import ExitStack, contextmanager
from types import MappingProxyType
from typing import Generator, Mapping, Optional

import pyroscope

from src.observability.logging import get_logger

_EMPTY: Mapping[str, str] = MappingProxyType({})

_labels_var: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "profiling_labels", default=_EMPTY
)


def current_labels() -> dict[str, str]:
    """Labels attached to the calling execution context."""
    return dict(_labels_var.get())


class ProfilingAgent:
    """
    Owns the pyroscope agent and the per-context profiling labels.

    Example:
        >>> agent = ProfilingAgent("hello-service", "http://localhost:4040")
        >>> agent.start()
        >>> with agent.labels(trace_id="4bf92f3577b34da6a3ce929d0e0e4736"):
        ...     do_work()
    """

    def __init__(
        self,
        application_name: str,
        server_address: str,
        enabled: bool = True,
        labels_enabled: bool = True,
        sample_rate: int = 100,
        tags: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.application_name = application_name
        self.server_address = server_address
        self.enabled = enabled
        self.labels_enabled = labels_enabled
        self.sample_rate = sample_rate
        self.tags = dict(tags or {})
        self._running = False
        self._start_attempted = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """
        Start the profiling agent (fire-and-forget).

        Repeated calls are no-ops. Never raises.

        Returns:
            True if the agent is running
        """
        with self._lock:
            if self._start_attempted:
                return self._running
            self._start_attempted = True

            logger = get_logger(__name__)
            if not self.enabled:
                logger.info("profiling disabled")
                return False

            try:
                pyroscope.configure(
                    application_name=self.application_name,
                    server_address=self.server_address,
                    sample_rate=self.sample_rate,
                    detect_subprocesses=False,
                    oncpu=True,
                    tags=self.tags,
                )
            except Exception as e:
                logger.warning(
                    "failed to start profiling agent, continuing without profiling",
                    server_address=self.server_address,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

            self._running = True
            logger.info(
                "profiling agent started",
                application_name=self.application_name,
                server_address=self.server_address,
                sample_rate=self.sample_rate,
            )
            return True

    def shutdown(self) -> None:
        """Stop the agent if it was started. Best-effort."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            try:
                pyroscope.shutdown()
            except Exception as e:
                get_logger(__name__).warning(
                    "error shutting down profiling agent",
                    error=str(e),
                    error_type=type(e).__name__,
                )

    @contextmanager
    def labels(self, **labels: str) -> Generator[Mapping[str, str], None, None]:
        """
        Attach labels to the calling execution context for one unit of work.

        Nested scopes see the merged labels; the outer labels are restored on
        exit, including when the body raises.

        Args:
            **labels: Label key/values, e.g. trace_id="..."

        Yields:
            The labels active inside the scope
        """
        merged = MappingProxyType({**_labels_var.get(), **labels})
        token = _labels_var.set(merged)
        try:
            with ExitStack() as stack:
                if self._running and self.labels_enabled and labels:
                    stack.enter_context(pyroscope.tag_wrapper(dict(labels)))
                yield merged
        finally:
            _labels_var.reset(token)

    def current_labels(self) -> dict[str, str]:
        """Labels attached to the calling execution context."""
        return current_labels()
