"""Fixed-window request counter kept in a cache, keyed by client identifier."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .context import Context
from .errors import ERR_GENERAL

_KEY_PREFIX = "rate_limiter"


class _CacheRepo(Protocol):
    def get(self, ctx: Context, key: str) -> bytes | None: ...

    def store(self, ctx: Context, key: str, value: bytes, expires_in: float) -> None: ...


@dataclass
class Visitor:
    counter: int = 0
    unix_time_visited: int = 0


def _encode_visitor(visitor: Visitor) -> bytes:
    return json.dumps(
        {"Counter": visitor.counter, "UnixTimeVisited": visitor.unix_time_visited},
        separators=(",", ":"),
    ).encode()


def _decode_visitor(data: bytes) -> Visitor:
    decoded: Any = json.loads(data)
    if decoded is None:
        return Visitor()
    if not isinstance(decoded, dict):
        raise ValueError("visitor record is not a JSON object")
    values = {}
    for name, key in (("counter", "Counter"), ("unix_time_visited", "UnixTimeVisited")):
        value = decoded.get(key, 0)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"visitor field {key} is not an integer")
        values[name] = value
    return Visitor(**values)


@dataclass
class RateLimiterSlidingWindowCacheStore:
    """Allows ``burst_limit`` requests per ``time_window`` seconds for each identifier."""

    time_window: int
    burst_limit: int
    expires_in: float
    cache: _CacheRepo
    clock: Callable[[], float] = field(default=time.time, repr=False)

    def allow(self, identifier: str) -> bool:
        """Count a request for ``identifier`` and report whether it is allowed.

        Cache and decoding failures are raised as the general error entity.
        """
        key = f"{_KEY_PREFIX}{identifier}"
        ctx = Context()

        try:
            data = self.cache.get(ctx, key)
        except Exception as exc:
            raise ERR_GENERAL.with_error(exc) from exc

        if data is None:
            visitor = Visitor(counter=1, unix_time_visited=self._now())
        else:
            try:
                visitor = _decode_visitor(data)
            except ValueError as exc:
                raise ERR_GENERAL.with_error(exc) from exc

        if not self._is_allowed(visitor):
            return False

        try:
            self.cache.store(ctx, key, _encode_visitor(visitor), self.expires_in)
        except Exception as exc:
            raise ERR_GENERAL.with_error(exc) from exc
        return True

    def _now(self) -> int:
        return int(self.clock())

    def _is_allowed(self, visitor: Visitor) -> bool:
        now = self._now()
        if now - visitor.unix_time_visited > self.time_window:
            visitor.counter = 1
            visitor.unix_time_visited = now
            return True
        if visitor.counter >= self.burst_limit:
            return False
        visitor.counter += 1
        return True