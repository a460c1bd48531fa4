# store.py
from __future__ import annotations
import json
from typing import Dict, Any, Mapping
from config import METAFIELD_NAMESPACE, METAFIELD_KEY
from errors import ConfigurationMissingError, PersistencePayloadError, PersistenceWriteError
from models import ConfigurationRecord, LimitMap, definition_shape

class ConfigurationStore:
    """Reads and writes the limits map through an injected backend.

    The backend is anything with these methods (see `secure_store.FileBackend`
    and `admin_api.AdminClient`):

        find_definition(namespace, key) -> Optional[str]
        create_definition(namespace, key, shape) -> Optional[str]
        get(namespace, key) -> Optional[str]
        set(namespace, key, payload) -> {"ok": bool, "errors": [...]}

    Payloads cross the backend boundary as opaque strings; JSON only lives here.
    """

    def __init__(self, backend, namespace: str = METAFIELD_NAMESPACE, key: str = METAFIELD_KEY):
        self.backend = backend
        self.namespace = namespace
        self.key = key

    def ensure_schema(self) -> str:
        existing = self.backend.find_definition(self.namespace, self.key)
        if existing:
            return existing
        created = self.backend.create_definition(
            self.namespace, self.key, definition_shape(self.namespace, self.key))
        if not created:
            raise ConfigurationMissingError(
                f"Failed to create metafield definition {self.namespace}.{self.key}")
        return created

    def load_record(self) -> ConfigurationRecord:
        return ConfigurationRecord(self.namespace, self.key, self.backend.get(self.namespace, self.key))

    def load_limit_map(self) -> LimitMap:
        raw = self.load_record().value
        if raw is None or raw == "":
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise PersistencePayloadError(
                f"Stored limits for {self.namespace}.{self.key} are not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PersistencePayloadError(
                f"Stored limits for {self.namespace}.{self.key} must be a JSON object, got {type(data).__name__}")
        return data

    def save_limit_map(self, limit_map: Mapping[str, int]) -> Dict[str, Any]:
        payload = json.dumps(dict(limit_map), sort_keys=True, separators=(",", ":"))
        try:
            definition = self.backend.find_definition(self.namespace, self.key)
            result = self.backend.set(self.namespace, self.key, payload) if definition else None
        except Exception as e:
            raise PersistenceWriteError(f"Failed to save limits: {e}") from e
        if not definition:
            raise ConfigurationMissingError(
                f"No metafield definition for {self.namespace}.{self.key}; run the bootstrap first")
        if not result or not result.get("ok"):
            messages = list((result or {}).get("errors") or [])
            raise PersistenceWriteError(messages[0] if messages else "Failed to save limits", messages)
        return result

def bootstrap_and_load(store: ConfigurationStore) -> LimitMap:
    """Bootstrap the definition if needed, then load the current map."""
    store.ensure_schema()
    return store.load_limit_map()
