"""Token-bucket rate limiter."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field

INF = math.inf
"""The infinite rate limit; it allows all events, even with a zero burst."""

INF_DURATION = math.inf
"""The delay reported by a reservation that cannot be granted."""

_ZERO_TIME = float("-inf")


def every(interval: float) -> float:
    """Convert a minimum interval between events, in seconds, to a limit."""
    if interval <= 0:
        return INF
    return 1 / interval


def _duration_from_tokens(limit: float, tokens: float) -> float:
    """Seconds it takes to accumulate ``tokens`` at ``limit`` tokens per second."""
    if limit <= 0:
        return INF_DURATION
    return tokens / limit


def _tokens_from_duration(limit: float, duration: float) -> float:
    """Tokens accumulated during ``duration`` seconds at ``limit`` tokens per second."""
    if limit <= 0 or duration == 0:
        return 0.0
    return duration * limit


@dataclass
class Limiter:
    """A token bucket of size ``burst``, initially full, refilled at ``limit`` tokens per second.

    Times are seconds since the epoch. The default limiter rejects every event.
    """

    limit: float = 0.0
    burst: int = 0
    token_count: float = 0.0
    last: float = _ZERO_TIME
    last_event: float = _ZERO_TIME

    def tokens_at(self, t: float) -> float:
        """Return the number of tokens available at time ``t``."""
        _, tokens = self._advance(t)
        return tokens

    def tokens(self) -> float:
        """Return the number of tokens available now."""
        return self.tokens_at(time.time())

    def allow(self) -> bool:
        """Report whether one event may happen now."""
        return self.allow_n(time.time(), 1)

    def allow_n(self, t: float, n: int) -> bool:
        """Report whether ``n`` events may happen at time ``t``."""
        return self._reserve_n(t, n, 0.0).ok

    def reserve(self) -> Reservation:
        """Reserve one token now."""
        return self.reserve_n(time.time(), 1)

    def reserve_n(self, t: float, n: int) -> Reservation:
        """Return a reservation telling how long to wait before ``n`` events may happen."""
        return self._reserve_n(t, n, INF_DURATION)

    def wait(self, timeout: float | None = None) -> None:
        """Block until one event is permitted."""
        self.wait_n(1, timeout)

    def wait_n(self, n: int, timeout: float | None = None) -> None:
        """Block until ``n`` events are permitted.

        Raises ValueError when ``n`` exceeds the burst (unless the limit is
        infinite) and TimeoutError when the wait would outlast ``timeout``.
        """
        t = time.time()
        if n > self.burst and self.limit != INF:
            raise ValueError(f"rate: Wait(n={n}) exceeds limiter's burst {self.burst}")
        if timeout is not None and timeout <= 0:
            raise TimeoutError("context deadline exceeded")
        wait_limit = INF_DURATION if timeout is None else timeout
        reservation = self._reserve_n(t, n, wait_limit)
        if not reservation.ok:
            raise TimeoutError(f"rate: Wait(n={n}) would exceed context deadline")
        delay = reservation.delay_from(t)
        if delay > 0:
            time.sleep(delay)

    def set_limit(self, new_limit: float) -> None:
        self.set_limit_at(time.time(), new_limit)

    def set_limit_at(self, t: float, new_limit: float) -> None:
        """Set a new limit, keeping the tokens accumulated up to ``t``."""
        t, tokens = self._advance(t)
        self.last = t
        self.token_count = tokens
        self.limit = new_limit

    def set_burst(self, new_burst: int) -> None:
        self.set_burst_at(time.time(), new_burst)

    def set_burst_at(self, t: float, new_burst: int) -> None:
        """Set a new burst size, keeping the tokens accumulated up to ``t``."""
        t, tokens = self._advance(t)
        self.last = t
        self.token_count = tokens
        self.burst = new_burst

    def _reserve_n(self, t: float, n: int, max_future_reserve: float) -> Reservation:
        if self.limit == INF:
            return Reservation(ok=True, limiter=self, tokens=n, time_to_act=t)
        if self.limit == 0:
            ok = self.burst >= n
            if ok:
                self.burst -= n
            return Reservation(ok=ok, limiter=self, tokens=self.burst, time_to_act=t)

        t, tokens = self._advance(t)
        tokens -= n
        wait_duration = _duration_from_tokens(self.limit, -tokens) if tokens < 0 else 0.0
        ok = n <= self.burst and wait_duration <= max_future_reserve

        reservation = Reservation(ok=ok, limiter=self, limit=self.limit)
        if ok:
            reservation.tokens = n
            reservation.time_to_act = t + wait_duration
            self.last = t
            self.token_count = tokens
            self.last_event = reservation.time_to_act
        return reservation

    def _advance(self, t: float) -> tuple[float, float]:
        """Return the time and token count after time passes up to ``t``, without changing state."""
        last = min(self.last, t)
        elapsed = t - last
        tokens = self.token_count + _tokens_from_duration(self.limit, elapsed)
        return t, min(tokens, float(self.burst))


@dataclass
class Reservation:
    """Events permitted by a limiter to happen after a delay."""

    ok: bool = False
    limiter: Limiter | None = field(default=None, repr=False)
    tokens: int = 0
    time_to_act: float = _ZERO_TIME
    limit: float = 0.0

    def delay(self) -> float:
        return self.delay_from(time.time())

    def delay_from(self, t: float) -> float:
        """Seconds to wait from ``t`` before acting; INF_DURATION if not granted."""
        if not self.ok:
            return INF_DURATION
        return max(self.time_to_act - t, 0.0)

    def cancel(self) -> None:
        self.cancel_at(time.time())

    def cancel_at(self, t: float) -> None:
        """Give back the reserved tokens as far as later reservations allow."""
        lim = self.limiter
        if not self.ok or lim is None:
            return
        if lim.limit == INF or self.tokens == 0 or self.time_to_act < t:
            return

        restore = self.tokens - _tokens_from_duration(self.limit, lim.last_event - self.time_to_act)
        if restore <= 0:
            return
        t, tokens = lim._advance(t)
        tokens = min(tokens + restore, float(lim.burst))
        lim.last_event = t
        lim.token_count = tokens
        if self.time_to_act == lim.last_event:
            prev_event = self.time_to_act + _duration_from_tokens(self.limit, float(-self.tokens))
            if not prev_event < t:
                lim.last_event = prev_event