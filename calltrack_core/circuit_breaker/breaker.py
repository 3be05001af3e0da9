"""
Circuit Breaker Core
====================
Three-state circuit breaker guarding an async operation, with a per-call
timeout and a periodic background health check.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog

from ..errors.reporting import ErrorReporter, report_nowait
from ..monitoring.monitor import PerformanceMonitor
from .models import (
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
    CircuitStats,
    OperationTimeoutError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitStateTransition(Exception):
    """Reported (never raised) whenever a breaker changes state."""

    def __init__(self, name: str, from_state: CircuitState, to_state: CircuitState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Circuit breaker {name} state transition: "
            f"{from_state.value} -> {to_state.value}"
        )


def _consume_result(task: "asyncio.Future[Any]") -> None:
    # Outcome of an abandoned call is irrelevant; retrieve it so asyncio
    # does not log "exception was never retrieved".
    if not task.cancelled():
        task.exception()


class CircuitBreaker:
    """
    Async circuit breaker.

    closed: calls pass; reaching ``failure_threshold`` failures opens it.
    open: calls are rejected until ``reset_timeout`` has elapsed since the
    last failure, then exactly one probe is admitted (half-open).
    half-open: the probe's success closes the breaker; its failure reopens it.

    State transitions are plain field assignments with no ``await`` in
    between, so they are atomic on a single event loop. Breaker state is
    process-local: several processes guarding the same dependency trip
    independently.

    Example:
        breaker = CircuitBreaker("firestore", monitor=monitor, reporter=reporter)
        breaker.start_monitoring()

        try:
            agents = await breaker.execute(lambda: fetch_agents(agency_id))
        except CircuitOpenError:
            agents = []
        finally:
            await breaker.stop_monitoring()
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        monitor: Optional[PerformanceMonitor] = None,
        reporter: Optional[ErrorReporter] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.monitor = (
            monitor if monitor is not None
            else PerformanceMonitor(reporter=reporter, clock=clock)
        )
        self.reporter = reporter
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._last_failure: Optional[float] = None
        self._last_success: Optional[float] = None
        self._last_reset: Optional[float] = None
        self._probe_in_flight = False
        # Bumped on every transition; outcomes from older generations are ignored
        self._generation = 0
        self._monitor_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state

    @property
    def metric_name(self) -> str:
        return f"circuit_breaker_{self.name}"

    def get_stats(self) -> CircuitStats:
        return CircuitStats(
            state=self._state,
            failures=self._failures,
            successes=self._successes,
            last_failure=self._last_failure,
            last_success=self._last_success,
            last_reset=self._last_reset,
        )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` under breaker protection.

        Raises:
            CircuitOpenError: The call was rejected without being attempted
            OperationTimeoutError: The call exceeded ``config.timeout``
            Exception: Whatever ``operation`` raised, after it is recorded
        """
        self._admit()
        generation = self._generation
        is_probe = self._state is CircuitState.HALF_OPEN
        if is_probe:
            self._probe_in_flight = True

        try:
            return await self.monitor.track_operation(
                self.metric_name,
                lambda: self._guarded_call(operation, generation),
            )
        finally:
            if is_probe:
                self._probe_in_flight = False

    def _admit(self) -> None:
        """Reject, or let the call through (moving open -> half-open if due)."""
        if self._state is CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition_to_half_open()
            else:
                logger.debug("circuit_rejected", service=self.name)
                raise CircuitOpenError(self.name, self._retry_after())

        if self._state is CircuitState.HALF_OPEN and self._probe_in_flight:
            raise CircuitOpenError(self.name, 0.0)

    async def _guarded_call(
        self,
        operation: Callable[[], Awaitable[T]],
        generation: int,
    ) -> T:
        try:
            result = await self._call_with_timeout(operation)
        except Exception as e:
            if self._is_current(generation):
                self._record_failure(e)
            raise
        if self._is_current(generation):
            self._record_success()
        return result

    def _is_current(self, generation: int) -> bool:
        """False for calls admitted before the last state transition."""
        if generation == self._generation:
            return True
        logger.debug(
            "circuit_stale_outcome_ignored",
            service=self.name,
            state=self._state.value,
        )
        return False

    async def _call_with_timeout(self, operation: Callable[[], Awaitable[T]]) -> T:
        task = asyncio.ensure_future(operation())
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            # The operation keeps running unless cancellation was asked for;
            # only the race result counts for the breaker.
            if self.config.cancel_on_timeout:
                task.cancel()
            task.add_done_callback(_consume_result)
            raise OperationTimeoutError(self.name, self.config.timeout) from None

    def _record_success(self) -> None:
        self._successes += 1
        self._last_success = self._clock()

        if self._state is CircuitState.HALF_OPEN:
            self._transition_to_closed()

    def _record_failure(self, error: Exception) -> None:
        self._failures += 1
        self._last_failure = self._clock()

        report_nowait(
            self.reporter,
            error,
            {
                "action": "circuit_breaker_error",
                "service": self.name,
                "state": self._state.value,
                "failure_count": self._failures,
            },
        )

        if self._state is CircuitState.HALF_OPEN:
            # A single failed probe reopens; counters describe that probe.
            self._failures = 1
            self._successes = 0
            self._transition_to_open()
        elif (
            self._state is CircuitState.CLOSED
            and self._failures >= self.config.failure_threshold
        ):
            self._transition_to_open()

    def _transition_to_open(self) -> None:
        previous = self._state
        self._state = CircuitState.OPEN
        logger.warning("circuit_opened", service=self.name, failures=self._failures)
        self._report_transition(previous, CircuitState.OPEN)

    def _transition_to_half_open(self) -> None:
        previous = self._state
        self._state = CircuitState.HALF_OPEN
        self._failures = 0
        self._successes = 0
        logger.info("circuit_half_open", service=self.name)
        self._report_transition(previous, CircuitState.HALF_OPEN)

    def _transition_to_closed(self) -> None:
        previous = self._state
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_reset = self._clock()
        logger.info("circuit_closed", service=self.name)
        self._report_transition(previous, CircuitState.CLOSED)

    def _report_transition(self, from_state: CircuitState, to_state: CircuitState) -> None:
        self._generation += 1
        report_nowait(
            self.reporter,
            CircuitStateTransition(self.name, from_state, to_state),
            {
                "action": "circuit_breaker_state_transition",
                "service": self.name,
                "from_state": from_state.value,
                "to_state": to_state.value,
                "failure_count": self._failures,
            },
        )

    def _should_attempt_reset(self) -> bool:
        return (
            self._last_failure is not None
            and self._clock() - self._last_failure >= self.config.reset_timeout
        )

    def _retry_after(self) -> float:
        if self._last_failure is None:
            return self.config.reset_timeout
        elapsed = self._clock() - self._last_failure
        return max(0.0, self.config.reset_timeout - elapsed)

    async def run_health_check(self) -> None:
        """One monitor tick: move an open breaker to half-open once its cooldown passed."""
        if self._state is CircuitState.OPEN and self._should_attempt_reset():
            self._transition_to_half_open()

    def start_monitoring(self) -> asyncio.Task:
        """Start the background health check. Must be called inside a running loop."""
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.get_running_loop().create_task(
                self._monitor_loop()
            )
        return self._monitor_task

    async def stop_monitoring(self) -> None:
        task, self._monitor_task = self._monitor_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    async def _monitor_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.monitor_interval)
            try:
                await self.monitor.track_operation(
                    f"{self.metric_name}_monitor",
                    self.run_health_check,
                )
            except Exception as e:
                logger.error("circuit_monitor_failed", service=self.name, error=str(e))
                report_nowait(
                    self.reporter,
                    e,
                    {"action": "circuit_breaker_monitor", "service": self.name},
                )

    async def __aenter__(self) -> "CircuitBreaker":
        self.start_monitoring()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.stop_monitoring()
        return False

    def describe(self) -> Dict[str, Any]:
        """Stats plus configuration, for health endpoints."""
        return {
            "name": self.name,
            **self.get_stats().to_dict(),
            "failure_threshold": self.config.failure_threshold,
            "reset_timeout": self.config.reset_timeout,
            "monitoring": self.is_monitoring,
        }
