import threading
import time
from typing import Callable, Dict, List

from fastapi import HTTPException, Request, status


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    """In-memory sliding window rate limiter keyed by client address."""

    def __init__(self, limit: int = 500, window_seconds: int = 15 * 60, clock: Callable[[], float] = time.time) -> None:
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: Dict[str, List[float]] = {}

    def hit(self, key: str) -> None:
        now = self._clock()
        window_start = now - self.window
        with self._lock:
            timestamps = self._requests.get(key, [])
            timestamps = [ts for ts in timestamps if ts >= window_start]
            if len(timestamps) >= self.limit:
                self._requests[key] = timestamps
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail="Too many requests from this IP, please try again later.",
                )
            timestamps.append(now)
            self._requests[key] = timestamps

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()

    def __call__(self, request: Request) -> None:
        self.hit(client_key(request))

