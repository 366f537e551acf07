# tests/services/test_circuit_breaker.py
"""
Тесты CircuitBreaker на управляемых часах.
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from ridehail.common.constants import BreakerState
from ridehail.common.exceptions import UpstreamError, UpstreamUnavailableError
from ridehail.services.matching_service.circuit_breaker import CircuitBreaker


class Upstream:
    """Управляемый upstream: считает вызовы, падает по флагу."""

    def __init__(self) -> None:
        self.calls = 0
        self.failing = False

    async def __call__(self) -> str:
        self.calls += 1
        if self.failing:
            raise UpstreamError("unexpected status: 500", status=500)
        return "ok"


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def breaker(fake_clock) -> CircuitBreaker:
    return CircuitBreaker("driver location service", clock=fake_clock)


async def _fail_times(breaker: CircuitBreaker, upstream: Upstream, times: int) -> None:
    upstream.failing = True
    for _ in range(times):
        with pytest.raises(UpstreamError):
            await breaker.call(upstream)


class TestClosed:
    @pytest.mark.asyncio
    async def test_success_passes_through(self, breaker: CircuitBreaker, upstream: Upstream) -> None:
        assert await breaker.call(upstream) == "ok"
        assert breaker.state == BreakerState.CLOSED
        assert breaker.counts.total_successes == 1

    @pytest.mark.asyncio
    async def test_threshold_failures_do_not_trip(self, breaker: CircuitBreaker, upstream: Upstream) -> None:
        """Открытие только при превышении порога (> 5 подряд)."""
        await _fail_times(breaker, upstream, 5)

        assert breaker.state == BreakerState.CLOSED
        assert breaker.counts.consecutive_failures == 5

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_failures(self, breaker: CircuitBreaker, upstream: Upstream) -> None:
        await _fail_times(breaker, upstream, 5)
        upstream.failing = False
        await breaker.call(upstream)
        await _fail_times(breaker, upstream, 5)

        assert breaker.state == BreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_counts_reset_after_interval(self, breaker: CircuitBreaker, upstream: Upstream, fake_clock) -> None:
        await _fail_times(breaker, upstream, 5)
        fake_clock.advance(61)

        assert breaker.counts.consecutive_failures == 0
        await _fail_times(breaker, upstream, 1)
        assert breaker.state == BreakerState.CLOSED


class TestOpen:
    @pytest.mark.asyncio
    async def test_trips_after_six_failures(self, breaker: CircuitBreaker, upstream: Upstream) -> None:
        await _fail_times(breaker, upstream, 6)
        assert breaker.state == BreakerState.OPEN

    @pytest.mark.asyncio
    async def test_open_rejects_without_calling_upstream(self, breaker: CircuitBreaker, upstream: Upstream) -> None:
        await _fail_times(breaker, upstream, 6)
        calls = upstream.calls

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await breaker.call(upstream)

        assert upstream.calls == calls
        assert exc_info.value.state == "open"
        assert "circuit breaker is open" in exc_info.value.message
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_half_open_after_timeout(self, breaker: CircuitBreaker, upstream: Upstream, fake_clock) -> None:
        await _fail_times(breaker, upstream, 6)
        fake_clock.advance(9.9)
        assert breaker.state == BreakerState.OPEN

        fake_clock.advance(0.2)
        assert breaker.state == BreakerState.HALF_OPEN


class TestHalfOpen:
    @pytest_asyncio.fixture
    async def half_open(self, breaker: CircuitBreaker, upstream: Upstream, fake_clock) -> CircuitBreaker:
        await _fail_times(breaker, upstream, 6)
        fake_clock.advance(10)
        assert breaker.state == BreakerState.HALF_OPEN
        upstream.failing = False
        return breaker

    @pytest.mark.asyncio
    async def test_closes_after_max_requests_successes(self, half_open: CircuitBreaker, upstream: Upstream) -> None:
        for _ in range(2):
            await half_open.call(upstream)
            assert half_open.state == BreakerState.HALF_OPEN

        await half_open.call(upstream)
        assert half_open.state == BreakerState.CLOSED

    @pytest.mark.asyncio
    async def test_any_failure_reopens(self, half_open: CircuitBreaker, upstream: Upstream) -> None:
        await half_open.call(upstream)
        await _fail_times(half_open, upstream, 1)

        assert half_open.state == BreakerState.OPEN

    @pytest.mark.asyncio
    async def test_limits_concurrent_probes(self, half_open: CircuitBreaker) -> None:
        """В half-open пропускается не больше max_requests одновременных вызовов."""
        gate = asyncio.Event()
        started = 0

        async def slow() -> str:
            nonlocal started
            started += 1
            await gate.wait()
            return "ok"

        probes = [asyncio.create_task(half_open.call(slow)) for _ in range(3)]
        await asyncio.sleep(0)

        with pytest.raises(UpstreamUnavailableError, match="too many requests"):
            await half_open.call(slow)

        gate.set()
        assert await asyncio.gather(*probes) == ["ok", "ok", "ok"]
        assert started == 3
        assert half_open.state == BreakerState.CLOSED


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_is_not_a_failure(self, breaker: CircuitBreaker) -> None:
        async def hang() -> None:
            await asyncio.Event().wait()

        task = asyncio.create_task(breaker.call(hang))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        counts = breaker.counts
        assert counts.total_failures == 0
        assert counts.requests == 0


class TestStateChangeCallback:
    @pytest.mark.asyncio
    async def test_callback_receives_transitions(self, fake_clock, upstream: Upstream) -> None:
        transitions = []
        breaker = CircuitBreaker(
            "upstream",
            failure_threshold=1,
            clock=fake_clock,
            on_state_change=lambda name, old, new: transitions.append((name, old, new)),
        )

        await _fail_times(breaker, upstream, 2)

        assert transitions == [("upstream", BreakerState.CLOSED, BreakerState.OPEN)]
