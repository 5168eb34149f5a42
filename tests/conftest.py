import pytest


class MemoryStorage:
    """Secure storage double that counts reads."""

    def __init__(self, items=None):
        self.items = dict(items or {})
        self.reads = 0

    def get_secure_item(self, key):
        self.reads += 1
        return self.items.get(key)

    def set_secure_item(self, key, value):
        self.items[key] = value

    def delete_secure_item(self, key):
        self.items.pop(key, None)


@pytest.fixture
def storage():
    return MemoryStorage()
