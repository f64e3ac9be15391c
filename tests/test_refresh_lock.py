import threading
from unittest.mock import MagicMock

import pytest

from booking_assistant.core.exceptions import GatewayUnavailable
from booking_assistant.services.calendar.refresh_lock import LocalRefreshLock, RedisRefreshLock
from booking_assistant.utils.encryption import TokenCipher


def test_local_lock_serialises_same_key():
    lock = LocalRefreshLock()
    inside = []
    overlap = []

    def worker():
        with lock.hold("calendar_refresh:1"):
            if inside:
                overlap.append(True)
            inside.append(True)
            threading.Event().wait(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlap == []


def test_local_lock_keys_are_independent():
    lock = LocalRefreshLock()
    with lock.hold("a"):
        with lock.hold("b"):
            pass


def test_redis_lock_releases_after_use():
    client = MagicMock()
    client.lock.return_value.acquire.return_value = True

    with RedisRefreshLock(client, timeout_seconds=5).hold("calendar_refresh:1"):
        pass

    client.lock.assert_called_once_with("calendar_refresh:1", timeout=5, blocking_timeout=5)
    client.lock.return_value.release.assert_called_once()


def test_redis_lock_timeout_is_unavailable():
    client = MagicMock()
    client.lock.return_value.acquire.return_value = False

    with pytest.raises(GatewayUnavailable):
        with RedisRefreshLock(client).hold("calendar_refresh:1"):
            pass


def test_cipher_round_trip_and_wrong_key():
    from cryptography.fernet import Fernet

    cipher = TokenCipher(Fernet.generate_key().decode())
    encrypted = cipher.encrypt("ya29.token")

    assert encrypted != b"ya29.token"
    assert cipher.decrypt(encrypted) == "ya29.token"
    with pytest.raises(ValueError):
        TokenCipher(Fernet.generate_key().decode()).decrypt(encrypted)


def test_redis_lock_lost_before_release_is_logged(caplog):
    from redis.exceptions import LockNotOwnedError

    client = MagicMock()
    client.lock.return_value.acquire.return_value = True
    client.lock.return_value.release.side_effect = LockNotOwnedError("Cannot release a lock that's no longer owned")

    with caplog.at_level("WARNING", logger="booking_assistant.services.calendar.refresh_lock"):
        with RedisRefreshLock(client, timeout_seconds=5).hold("calendar_refresh:1"):
            pass

    assert "calendar_refresh:1 was lost" in caplog.text


def test_redis_lock_loss_does_not_mask_refresh_error():
    from redis.exceptions import LockNotOwnedError

    client = MagicMock()
    client.lock.return_value.acquire.return_value = True
    client.lock.return_value.release.side_effect = LockNotOwnedError("expired")

    with pytest.raises(GatewayUnavailable):
        with RedisRefreshLock(client).hold("calendar_refresh:1"):
            raise GatewayUnavailable("token endpoint down")
