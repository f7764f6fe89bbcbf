"""
Circuit breaker pattern for upstream CRM calls.
Stops hammering a failing source: once a service trips its breaker, the
dashboard degrades that source immediately instead of waiting on timeouts.

Usage:
    from scripts.lib.circuit_breaker import circuit_breaker_call

    # Wrap an awaitable call with the breaker for a service
    body = await circuit_breaker_call("solar_crm:projects", client.fetch, "/api/projects")

    # Or use the breaker directly
    breaker = CircuitBreaker.get("solar_crm:leads", failure_threshold=5, reset_timeout=60)
    if breaker.can_execute():
        try:
            result = await make_api_call()
            breaker.record_success()
        except Exception:
            breaker.record_failure()
"""
import time
from typing import Any, Awaitable, Callable, Dict, List

from scripts.lib.errors import CircuitOpenError
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)


class CircuitBreaker:
    """
    Per-endpoint breaker guarding one upstream CRM resource.

    Consecutive failures up to ``failure_threshold`` trip it OPEN, and calls
    are refused until ``reset_timeout`` seconds have passed. The next call is
    then let through as a trial (HALF_OPEN): success closes the breaker, a
    failure trips it again straight away.
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    _registry: Dict[str, "CircuitBreaker"] = {}

    def __init__(self, service: str, failure_threshold: int = 5, reset_timeout: int = 60):
        self.service = service
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.state = self.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at = 0.0

    @classmethod
    def get(cls, service: str, **kwargs) -> "CircuitBreaker":
        """Shared breaker for ``service``; settings apply only when it is first created."""
        breaker = cls._registry.get(service)
        if breaker is None:
            breaker = cls._registry[service] = cls(service, **kwargs)
        return breaker

    @classmethod
    def reset_all(cls):
        """Forget every breaker (all services start CLOSED again)."""
        cls._registry.clear()

    @classmethod
    def all_status(cls) -> List[Dict[str, Any]]:
        """Status of every known breaker, sorted by service name."""
        return [cls._registry[name].status() for name in sorted(cls._registry)]

    def _move_to(self, state: str, reason: str):
        previous, self.state = self.state, state
        log = logger.warning if state == self.OPEN else logger.info
        log("Breaker %s: %s -> %s (%s)", self.service, previous, state, reason)

    def can_execute(self) -> bool:
        """Whether a call may go upstream now; an expired OPEN breaker moves to HALF_OPEN."""
        if self.state != self.OPEN:
            return True
        if time.time() - self.opened_at < self.reset_timeout:
            return False
        self._move_to(self.HALF_OPEN, "cool-down elapsed, sending trial request")
        return True

    def record_success(self):
        if self.state != self.CLOSED:
            self._move_to(self.CLOSED, "trial request succeeded")
        self.failure_count = 0
        self.success_count += 1

    def record_failure(self):
        self.failure_count += 1
        if self.state == self.HALF_OPEN:
            self.opened_at = time.time()
            self._move_to(self.OPEN, "trial request failed")
        elif self.state == self.CLOSED and self.failure_count >= self.failure_threshold:
            self.opened_at = time.time()
            self._move_to(
                self.OPEN,
                f"{self.failure_count} failures in a row, cooling down {self.reset_timeout}s",
            )

    @property
    def time_until_reset(self) -> float:
        """Seconds left in the OPEN cool-down; 0 in any other state."""
        if self.state != self.OPEN:
            return 0.0
        return max(0.0, self.reset_timeout - (time.time() - self.opened_at))

    def status(self) -> dict:
        return {
            "service": self.service,
            "state": self.state,
            "failures": self.failure_count,
            "threshold": self.failure_threshold,
            "time_until_reset": round(self.time_until_reset, 1),
        }


async def circuit_breaker_call(
    service: str,
    func: Callable[..., Awaitable[Any]],
    *args,
    failure_threshold: int = 5,
    reset_timeout: int = 60,
    **kwargs,
) -> Any:
    """
    Await ``func(*args, **kwargs)`` with circuit breaker protection.

    Args:
        service: Service name for the circuit breaker (e.g., "solar_crm:leads").
        func: Coroutine function performing the call.
        failure_threshold: Failures before opening circuit.
        reset_timeout: Seconds before retrying after circuit opens.

    Returns:
        Whatever ``func`` returns.

    Raises:
        CircuitOpenError: If the circuit is open.
        Exception: Whatever ``func`` raised, after recording the failure.
    """
    breaker = CircuitBreaker.get(
        service,
        failure_threshold=failure_threshold,
        reset_timeout=reset_timeout,
    )

    if not breaker.can_execute():
        raise CircuitOpenError(
            service, breaker.failure_count, breaker.time_until_reset,
        )

    start = time.time()
    try:
        result = await func(*args, **kwargs)
    except Exception as e:
        breaker.record_failure()
        logger.warning(
            "%s failed in %.2fs: %s [circuit: %s]",
            service, time.time() - start, e, breaker.state,
        )
        raise

    breaker.record_success()
    logger.debug(
        "%s ok in %.2fs [circuit: %s]", service, time.time() - start, breaker.state,
    )
    return result
