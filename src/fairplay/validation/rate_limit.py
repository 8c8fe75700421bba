from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    reason: str = ""
    retry_after_seconds: int = 0


class RateLimiter:
    """Sliding-window submission limiter keyed by player. One instance per runtime."""

    def __init__(
        self,
        max_submissions: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_submissions < 1 or window_seconds <= 0:
            raise ValueError("rate limit needs a positive count and window")
        self.max_submissions = max_submissions
        self.window_seconds = window_seconds
        self._clock = clock
        self._stamps: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _sweep(self, now: float) -> None:
        stale = [key for key, stamps in self._stamps.items() if now - stamps[-1] >= self.window_seconds]
        for key in stale:
            del self._stamps[key]
        self._last_sweep = now

    def check(self, player: str | None) -> RateDecision:
        key = player or "anonymous"
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            stamps = self._stamps.setdefault(key, deque())
            while stamps and now - stamps[0] >= self.window_seconds:
                stamps.popleft()
            if len(stamps) >= self.max_submissions:
                wait = self.window_seconds - (now - stamps[0])
                return RateDecision(
                    allowed=False,
                    reason=f"rate limit exceeded: {self.max_submissions} submissions per {self.window_seconds:g}s",
                    retry_after_seconds=math.ceil(wait),
                )
            stamps.append(now)
            return RateDecision(allowed=True)

    def reset(self, player: str | None = None) -> None:
        with self._lock:
            if player is None:
                self._stamps.clear()
            else:
                self._stamps.pop(player, None)
