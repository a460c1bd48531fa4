import base64

import pytest
from cryptography.fernet import Fernet

from config import Settings


class MemoryBackend:
    """In-process stand-in for the metafield backend."""

    def __init__(self):
        self.definitions = {}
        self.values = {}
        self.create_calls = 0
        self.fail_create = False
        self.set_result = None

    def find_definition(self, namespace, key):
        return self.definitions.get((namespace, key))

    def create_definition(self, namespace, key, shape):
        self.create_calls += 1
        if self.fail_create:
            return None
        self.definitions[(namespace, key)] = f"gid://test/MetafieldDefinition/{self.create_calls}"
        return self.definitions[(namespace, key)]

    def get(self, namespace, key):
        return self.values.get((namespace, key))

    def set(self, namespace, key, payload):
        if self.set_result is not None:
            return self.set_result
        self.values[(namespace, key)] = payload
        return {"ok": True}

    def fetch_products(self):
        return []


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def enc_key(monkeypatch):
    key = "base64:" + base64.urlsafe_b64encode(Fernet.generate_key()).decode()
    monkeypatch.setattr(Settings, "STORE_ENC_KEY", key)
    return key
