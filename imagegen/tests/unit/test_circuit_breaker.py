"""Tests for the payment provider circuit breaker."""

import httpx
import pytest


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def fail():
    raise httpx.ConnectError('connection refused')


async def succeed():
    return 'ok'


def make_breaker(clock, threshold=3, recovery=60):
    from imagegen.src.billing.external.circuit_breaker import CircuitBreaker

    return CircuitBreaker('test_provider', failure_threshold=threshold, recovery_timeout=recovery, clock=clock)


class TestCircuitBreaker:

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        from imagegen.src.billing.external.circuit_breaker import CircuitState

        breaker = make_breaker(FakeClock())

        for _ in range(2):
            with pytest.raises(httpx.ConnectError):
                await breaker.safe_call(fail)
        assert breaker.state == CircuitState.CLOSED

        with pytest.raises(httpx.ConnectError):
            await breaker.safe_call(fail)
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_blocks_calls(self):
        from imagegen.src.billing.shared.exceptions import CircuitBreakerOpenError

        clock = FakeClock()
        breaker = make_breaker(clock, threshold=1)
        with pytest.raises(httpx.ConnectError):
            await breaker.safe_call(fail)

        clock.now += 10
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            await breaker.safe_call(succeed)

        assert exc_info.value.service_name == 'test_provider'
        assert exc_info.value.reset_time == pytest.approx(50)

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self):
        from imagegen.src.billing.external.circuit_breaker import CircuitState

        clock = FakeClock()
        breaker = make_breaker(clock, threshold=1)
        with pytest.raises(httpx.ConnectError):
            await breaker.safe_call(fail)

        clock.now += 60
        assert await breaker.safe_call(succeed) == 'ok'
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self):
        from imagegen.src.billing.external.circuit_breaker import CircuitState

        clock = FakeClock()
        breaker = make_breaker(clock, threshold=5)
        for _ in range(5):
            with pytest.raises(httpx.ConnectError):
                await breaker.safe_call(fail)

        clock.now += 61
        with pytest.raises(httpx.ConnectError):
            await breaker.safe_call(fail)

        assert breaker.state == CircuitState.OPEN
        assert breaker.get_status()['reset_time'] == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        breaker = make_breaker(FakeClock())

        with pytest.raises(httpx.ConnectError):
            await breaker.safe_call(fail)
        await breaker.safe_call(succeed)

        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_do_not_count(self):
        breaker = make_breaker(FakeClock(), threshold=1)

        async def bug():
            raise KeyError('programming error')

        with pytest.raises(KeyError):
            await breaker.safe_call(bug)

        assert breaker.failure_count == 0
        assert breaker.get_status()['state'] == 'closed'
