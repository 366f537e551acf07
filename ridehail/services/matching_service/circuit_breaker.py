# ridehail/services/matching_service/circuit_breaker.py
"""
Circuit breaker для исходящих вызовов.

Состояния:
    closed     -> open       consecutive_failures > failure_threshold в пределах interval
    open       -> half-open  прошло timeout секунд с момента открытия
    half-open  -> closed     max_requests пробных вызовов подряд успешны
    half-open  -> open       любой пробный вызов неуспешен

В состоянии open вызов отклоняется сразу, без обращения к сети.
Счётчики меняются под threading.Lock, каждая смена состояния начинает новое поколение:
результаты вызовов, начатых в прошлом поколении, игнорируются.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from ridehail.common.constants import BreakerState
from ridehail.common.exceptions import UpstreamUnavailableError
from ridehail.common.logger import get_logger

logger = get_logger("circuit_breaker")

T = TypeVar("T")


@dataclass
class Counts:
    """Счётчики текущего поколения."""

    requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_successes: int = 0
    consecutive_failures: int = 0

    def on_request(self) -> None:
        self.requests += 1

    def on_success(self) -> None:
        self.total_successes += 1
        self.consecutive_successes += 1
        self.consecutive_failures = 0

    def on_failure(self) -> None:
        self.total_failures += 1
        self.consecutive_failures += 1
        self.consecutive_successes = 0

    def clear(self) -> None:
        self.requests = 0
        self.total_successes = 0
        self.total_failures = 0
        self.consecutive_successes = 0
        self.consecutive_failures = 0


class CircuitBreaker:
    """
    Args:
        name: Имя (для логов и сообщений об ошибках)
        max_requests: Сколько пробных вызовов пропускать в half-open
        interval: Период сброса счётчиков в closed (секунды), 0 - не сбрасывать
        timeout: Сколько держать open до перехода в half-open (секунды)
        failure_threshold: Порог подряд идущих ошибок; открытие при превышении
        clock: Источник монотонного времени (подменяется в тестах)
        on_state_change: Вызывается как on_state_change(name, old, new)
    """

    def __init__(
        self,
        name: str,
        max_requests: int = 3,
        interval: float = 60.0,
        timeout: float = 10.0,
        failure_threshold: int = 5,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Callable[[str, BreakerState, BreakerState], None] | None = None,
    ):
        self.name = name
        self.max_requests = max_requests if max_requests > 0 else 1
        self.interval = interval
        self.timeout = timeout
        self.failure_threshold = failure_threshold
        self._clock = clock
        self._on_state_change = on_state_change

        self._lock = threading.Lock()
        self._state = BreakerState.CLOSED
        self._generation = 0
        self._counts = Counts()
        self._expiry = 0.0

        self._new_generation(self._clock())

    # =========================================================================
    # ПУБЛИЧНЫЙ API
    # =========================================================================

    @property
    def state(self) -> BreakerState:
        with self._lock:
            state, _ = self._current_state(self._clock())
            return state

    @property
    def counts(self) -> Counts:
        with self._lock:
            self._current_state(self._clock())
            return Counts(**vars(self._counts))

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Выполняет func под защитой breaker.
        Любое исключение func считается неуспехом и пробрасывается дальше.

        Raises:
            UpstreamUnavailableError: breaker открыт или лимит пробных вызовов исчерпан
        """
        generation = self._before_request()

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            # Отмена входящего запроса не говорит о здоровье upstream
            self._release(generation)
            raise
        except Exception:
            self._after_request(generation, success=False)
            raise

        self._after_request(generation, success=True)
        return result

    # =========================================================================
    # МАШИНА СОСТОЯНИЙ
    # =========================================================================

    def _ready_to_trip(self, counts: Counts) -> bool:
        return counts.consecutive_failures > self.failure_threshold

    def _before_request(self) -> int:
        with self._lock:
            now = self._clock()
            state, generation = self._current_state(now)

            if state == BreakerState.OPEN:
                raise UpstreamUnavailableError(
                    f"{self.name} unavailable: circuit breaker is {state.value}",
                    state=state.value,
                )
            if state == BreakerState.HALF_OPEN and self._counts.requests >= self.max_requests:
                raise UpstreamUnavailableError(
                    f"{self.name} unavailable: too many requests, circuit breaker is {state.value}",
                    state=state.value,
                )

            self._counts.on_request()
            return generation

    def _after_request(self, before: int, success: bool) -> None:
        with self._lock:
            now = self._clock()
            state, generation = self._current_state(now)
            if generation != before:
                return

            if success:
                self._on_success(state, now)
            else:
                self._on_failure(state, now)

    def _release(self, before: int) -> None:
        with self._lock:
            _, generation = self._current_state(self._clock())
            if generation == before and self._counts.requests > 0:
                self._counts.requests -= 1

    def _on_success(self, state: BreakerState, now: float) -> None:
        if state == BreakerState.CLOSED:
            self._counts.on_success()
        elif state == BreakerState.HALF_OPEN:
            self._counts.on_success()
            if self._counts.consecutive_successes >= self.max_requests:
                self._set_state(BreakerState.CLOSED, now)

    def _on_failure(self, state: BreakerState, now: float) -> None:
        if state == BreakerState.CLOSED:
            self._counts.on_failure()
            if self._ready_to_trip(self._counts):
                self._set_state(BreakerState.OPEN, now)
        elif state == BreakerState.HALF_OPEN:
            self._set_state(BreakerState.OPEN, now)

    def _current_state(self, now: float) -> tuple[BreakerState, int]:
        """Применяет переходы по времени и возвращает (состояние, поколение)."""
        if self._state == BreakerState.CLOSED:
            if self._expiry and self._expiry <= now:
                self._new_generation(now)
        elif self._state == BreakerState.OPEN:
            if self._expiry <= now:
                self._set_state(BreakerState.HALF_OPEN, now)
        return self._state, self._generation

    def _set_state(self, state: BreakerState, now: float) -> None:
        if self._state == state:
            return

        previous = self._state
        self._state = state
        self._new_generation(now)

        logger.warning(f"Circuit breaker '{self.name}': {previous.value} -> {state.value}")
        if self._on_state_change is not None:
            self._on_state_change(self.name, previous, state)

    def _new_generation(self, now: float) -> None:
        self._generation += 1
        self._counts.clear()

        if self._state == BreakerState.CLOSED:
            self._expiry = now + self.interval if self.interval > 0 else 0.0
        elif self._state == BreakerState.OPEN:
            self._expiry = now + self.timeout
        else:
            self._expiry = 0.0
