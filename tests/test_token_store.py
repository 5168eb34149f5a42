import threading
import time

from conftest import MemoryStorage
from infrastructure.token_store import TOKEN_KEY, TokenStore


class BlockingStorage(MemoryStorage):
    def __init__(self, items=None):
        super().__init__(items)
        self.read_started = threading.Event()
        self.release = threading.Event()

    def get_secure_item(self, key):
        self.reads += 1
        self.read_started.set()
        self.release.wait(timeout=5)
        return self.items.get(key)


class SlowWriteStorage(MemoryStorage):
    """Blocks inside the first write or delete until released."""

    def __init__(self, items=None):
        super().__init__(items)
        self.write_started = threading.Event()
        self.release = threading.Event()

    def _hold_first_write(self):
        if not self.write_started.is_set():
            self.write_started.set()
            self.release.wait(timeout=5)

    def set_secure_item(self, key, value):
        self._hold_first_write()
        super().set_secure_item(key, value)

    def delete_secure_item(self, key):
        self._hold_first_write()
        super().delete_secure_item(key)


class BrokenStorage(MemoryStorage):
    def get_secure_item(self, key):
        self.reads += 1
        raise RuntimeError("keychain locked")


def test_get_token_hydrates_once():
    storage = MemoryStorage({TOKEN_KEY: "abc"})
    store = TokenStore(storage)

    assert store.get_token() == "abc"
    assert store.get_token() == "abc"
    assert storage.reads == 1


def test_missing_token_is_cached(storage):
    store = TokenStore(storage)

    assert store.get_token() is None
    assert store.get_token() is None
    assert storage.reads == 1


def test_set_token_is_authoritative_and_mirrored(storage):
    store = TokenStore(storage)

    store.set_token("fresh")

    assert store.get_token() == "fresh"
    assert storage.items[TOKEN_KEY] == "fresh"
    assert storage.reads == 0


def test_set_token_none_deletes_persisted_copy():
    storage = MemoryStorage({TOKEN_KEY: "abc"})
    store = TokenStore(storage)

    store.set_token(None)

    assert TOKEN_KEY not in storage.items
    assert store.get_token() is None


def test_invalidate_forces_fresh_read():
    storage = MemoryStorage({TOKEN_KEY: "abc"})
    store = TokenStore(storage)
    assert store.get_token() == "abc"

    store.invalidate()

    assert TOKEN_KEY not in storage.items
    assert store.get_token() is None
    assert storage.reads == 2


def test_concurrent_callers_share_one_load():
    storage = BlockingStorage({TOKEN_KEY: "abc"})
    store = TokenStore(storage)
    results = []

    def worker():
        results.append(store.get_token())

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    assert storage.read_started.wait(timeout=5)
    storage.release.set()
    for t in threads:
        t.join(timeout=5)

    assert results == ["abc"] * 5
    assert storage.reads == 1


def test_set_token_during_load_is_not_overwritten():
    storage = BlockingStorage({TOKEN_KEY: "stale"})
    store = TokenStore(storage)
    results = []

    loader = threading.Thread(target=lambda: results.append(store.get_token()))
    loader.start()
    assert storage.read_started.wait(timeout=5)

    store.set_token("new")
    storage.release.set()
    loader.join(timeout=5)

    assert results == ["new"]
    assert store.get_token() == "new"


def test_storage_failure_returns_none_and_retries():
    storage = BrokenStorage()
    store = TokenStore(storage)

    assert store.get_token() is None
    assert store.get_token() is None
    assert storage.reads == 2


def test_read_during_invalidate_does_not_restore_purged_token():
    storage = SlowWriteStorage({TOKEN_KEY: "revoked"})
    store = TokenStore(storage)
    results = []

    purger = threading.Thread(target=store.invalidate)
    purger.start()
    assert storage.write_started.wait(timeout=5)

    reader = threading.Thread(target=lambda: results.append(store.get_token()))
    reader.start()
    time.sleep(0.05)
    storage.release.set()
    purger.join(timeout=5)
    reader.join(timeout=5)

    assert results == [None]
    assert store.get_token() is None
    assert TOKEN_KEY not in storage.items


def test_concurrent_set_token_keeps_storage_in_step_with_memory():
    storage = SlowWriteStorage()
    store = TokenStore(storage)

    first = threading.Thread(target=store.set_token, args=("first",))
    first.start()
    assert storage.write_started.wait(timeout=5)

    second = threading.Thread(target=store.set_token, args=("second",))
    second.start()
    time.sleep(0.05)
    storage.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert store.get_token() == "second"
    assert storage.items[TOKEN_KEY] == "second"
