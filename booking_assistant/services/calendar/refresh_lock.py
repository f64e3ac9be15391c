# booking_assistant/services/calendar/refresh_lock.py
"""Per-owner mutual exclusion around OAuth token refresh"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict

from redis.exceptions import LockError

from booking_assistant.config.settings import Settings, get_settings
from booking_assistant.core.exceptions import GatewayUnavailable

logger = logging.getLogger(__name__)


class LocalRefreshLock:
    """One threading.Lock per key, shared by every request in this process"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def hold(self, key: str):
        lock = self._lock_for(key)
        with lock:
            yield


class RedisRefreshLock:
    """Redis lock so refreshes are serialised across worker processes"""

    def __init__(self, client, timeout_seconds: int = 30):
        self.client = client
        self.timeout_seconds = timeout_seconds

    @contextmanager
    def hold(self, key: str):
        lock = self.client.lock(
            key,
            timeout=self.timeout_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        if not lock.acquire():
            logger.warning(f"Timed out waiting for token refresh lock {key}")
            raise GatewayUnavailable("Calendar token refresh is already in progress, try again shortly")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Expired while the refresh ran; another worker may hold it now
                logger.warning(f"Token refresh lock {key} was lost before release: {e}")


_local_lock = LocalRefreshLock()


def get_refresh_lock(settings: Settings = None):
    """Lock backend selected by CALENDAR_REFRESH_LOCK_BACKEND"""
    settings = settings or get_settings()
    backend = settings.CALENDAR_REFRESH_LOCK_BACKEND.lower()

    if backend == "redis":
        from booking_assistant.config.redis import get_redis
        return RedisRefreshLock(get_redis(), settings.CALENDAR_REFRESH_LOCK_TIMEOUT_SECONDS)
    if backend == "local":
        return _local_lock

    raise ValueError(f"Unknown CALENDAR_REFRESH_LOCK_BACKEND: {settings.CALENDAR_REFRESH_LOCK_BACKEND}")
