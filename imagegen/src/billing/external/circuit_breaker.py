"""
Payment Provider Circuit Breaker

Implements the circuit breaker pattern for outbound payment provider
calls so a failing provider is not hammered by every webhook and poll.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Provider is failing, block requests until the recovery timeout
- HALF_OPEN: Testing if the provider has recovered

State is kept per process.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Type

import httpx

from imagegen.src.billing.shared.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half_open"  # Testing recovery


class CircuitBreaker:
    """
    Circuit breaker for payment provider API calls.

    Usage:
        breaker = CircuitBreaker("abacatepay_api")
        response = await breaker.safe_call(client.get, "/billing/list")
    """

    def __init__(
        self,
        circuit_name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        expected_exceptions: Tuple[Type[BaseException], ...] = (httpx.HTTPError,),
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the circuit breaker.

        Args:
            circuit_name: Name used in logs and errors
            failure_threshold: Consecutive failures before opening the circuit
            recovery_timeout: Seconds to wait before testing recovery
            expected_exceptions: Exception types that count as provider failures
            clock: Monotonic time source
        """
        self.circuit_name = circuit_name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions
        self._clock = clock
        self._lock = asyncio.Lock()

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None

    async def safe_call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute a provider call with circuit breaker protection.

        Args:
            func: Async callable performing the request
            *args: Positional arguments for the callable
            **kwargs: Keyword arguments for the callable

        Returns:
            Result of the call

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Whatever the call raised
        """
        async with self._lock:
            if not self._should_allow_request():
                logger.warning(f"[CIRCUIT BREAKER] Request blocked - {self.circuit_name} is {self.state.value}")
                raise CircuitBreakerOpenError(
                    message=f"Circuit breaker is {self.state.value} - blocking request",
                    service_name=self.circuit_name,
                    reset_time=self._reset_time(),
                )

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions as e:
            await self._record_failure(str(e))
            raise

        await self._record_success()
        return result

    def get_status(self) -> Dict:
        """
        Get current circuit breaker status.

        Returns:
            Dictionary with circuit state and metrics
        """
        return {
            'circuit_name': self.circuit_name,
            'state': self.state.value,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'recovery_timeout': self.recovery_timeout,
            'reset_time': self._reset_time(),
        }

    def _should_allow_request(self) -> bool:
        """Determine if a request should be allowed based on circuit state."""
        if self.state == CircuitState.CLOSED:
            return True
        elif self.state == CircuitState.OPEN:
            if self.last_failure_time is not None:
                if self._clock() - self.last_failure_time >= self.recovery_timeout:
                    self._transition_to_half_open()
                    return True
            return False
        elif self.state == CircuitState.HALF_OPEN:
            return True

        return False

    def _reset_time(self) -> Optional[float]:
        if self.state != CircuitState.OPEN or self.last_failure_time is None:
            return None
        return max(0.0, self.recovery_timeout - (self._clock() - self.last_failure_time))

    async def _record_success(self):
        """Record a successful call - reset circuit to closed."""
        async with self._lock:
            if self.state != CircuitState.CLOSED:
                logger.info(f"[CIRCUIT BREAKER] {self.circuit_name} recovered, closing circuit")
            self.state = CircuitState.CLOSED
            self.failure_count = 0

    async def _record_failure(self, error_message: str):
        """Record a failed call - may open circuit if threshold reached."""
        async with self._lock:
            self.failure_count += 1
            self.last_failure_time = self._clock()

            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self.state = CircuitState.OPEN
                logger.warning(
                    f"[CIRCUIT BREAKER] {self.circuit_name} opened after {self.failure_count} failures: "
                    f"{error_message}"
                )
            else:
                logger.debug(
                    f"[CIRCUIT BREAKER] Recorded failure #{self.failure_count} for {self.circuit_name}"
                )

    def _transition_to_half_open(self):
        """Transition circuit to half-open state for testing."""
        self.state = CircuitState.HALF_OPEN
        logger.info(f"[CIRCUIT BREAKER] Transitioned {self.circuit_name} to half-open")
