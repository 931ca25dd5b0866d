"""In-process sliding-window rate limiter for the admin batch endpoints."""
import threading
import time
from collections import deque
from functools import wraps

from flask import current_app, jsonify

from panel.auth import caller_key

EXTENSION_KEY = 'batch_rate_limiter'


class SlidingWindowLimiter:
    """Allow at most `max_requests` per `window_seconds` for each caller key."""

    def __init__(self, max_requests: int, window_seconds: float = 60, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits = {}
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float):
        """Drop hits outside the window; forget `key` once it has none left."""
        hits = self._hits.get(key)
        if hits is None:
            return None
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]
            return None
        return hits

    def hit(self, key: str):
        """
        Record a request for `key`.

        Returns:
            (allowed, retry_after_seconds)
        """
        now = self._clock()
        with self._lock:
            for other in [k for k in self._hits if k != key]:
                self._prune(other, now)
            hits = self._prune(key, now)
            if hits is None:
                hits = self._hits[key] = deque()
            if len(hits) >= self.max_requests:
                return False, max(0.0, self.window_seconds - (now - hits[0]))
            hits.append(now)
            return True, 0.0

    def __len__(self):
        """Number of callers with hits still inside the window."""
        with self._lock:
            return len(self._hits)

    def reset(self):
        with self._lock:
            self._hits.clear()


def rate_limited(view):
    """Reject the request with 429 once the caller exceeds the app's batch limit."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        limiter = current_app.extensions[EXTENSION_KEY]
        allowed, retry_after = limiter.hit(caller_key())
        if not allowed:
            response = jsonify({'error': 'Too many requests, please try again later.'})
            response.status_code = 429
            response.headers['Retry-After'] = str(int(retry_after) + 1)
            return response
        return view(*args, **kwargs)
    return wrapper
