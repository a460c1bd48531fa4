# secure_store.py
import base64, hashlib, json, os, uuid
from pathlib import Path
from typing import Optional, Dict, Any, List
from config import Settings
from errors import PersistencePayloadError

try:
    from cryptography.fernet import Fernet, InvalidToken
except Exception as e:
    raise RuntimeError("cryptography is required: pip install cryptography") from e

def _fernet() -> "Fernet":
    key = Settings.STORE_ENC_KEY or ""
    if not key.startswith("base64:"):
        raise RuntimeError("STORE_ENC_KEY must be set like 'base64:<fernet_key>'")
    b = key.split(":", 1)[1]
    return Fernet(base64.urlsafe_b64decode(b))

class FileBackend:
    """One Fernet blob per (namespace, key): definition plus string value."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or Settings.STORE_DIR)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, namespace: str, key: str) -> Path:
        digest = hashlib.sha256(f"{namespace}\0{key}".encode("utf-8")).hexdigest()[:32]
        return self.root / f"{digest}.bin"

    def _read(self, namespace: str, key: str) -> Optional[Dict[str, Any]]:
        p = self._path(namespace, key)
        if not p.exists():
            return None
        try:
            data = _fernet().decrypt(p.read_bytes())
            return json.loads(data.decode("utf-8"))
        except (InvalidToken, ValueError) as e:
            raise PersistencePayloadError(f"Record {namespace}.{key} at {p} is unreadable") from e

    def _write(self, namespace: str, key: str, record: Dict[str, Any]) -> None:
        p = self._path(namespace, key)
        blob = _fernet().encrypt(json.dumps(record).encode("utf-8"))
        tmp = p.with_suffix(".tmp")
        try:
            tmp.write_bytes(blob)
            os.replace(tmp, p)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def find_definition(self, namespace: str, key: str) -> Optional[str]:
        record = self._read(namespace, key)
        definition = (record or {}).get("definition") or {}
        return definition.get("id")

    def create_definition(self, namespace: str, key: str, shape: Dict[str, Any]) -> Optional[str]:
        record = self._read(namespace, key) or {"namespace": namespace, "key": key, "value": None}
        if record.get("definition"):
            return record["definition"]["id"]
        record["definition"] = {"id": f"gid://local/MetafieldDefinition/{uuid.uuid4().hex}", "shape": shape}
        self._write(namespace, key, record)
        return record["definition"]["id"]

    def get(self, namespace: str, key: str) -> Optional[str]:
        record = self._read(namespace, key)
        return (record or {}).get("value")

    def set(self, namespace: str, key: str, payload: str) -> Dict[str, Any]:
        record = self._read(namespace, key)
        if not record or not record.get("definition"):
            return {"ok": False, "errors": [f"No metafield definition for {namespace}.{key}"]}
        record["value"] = payload
        self._write(namespace, key, record)
        return {"ok": True}

    def fetch_products(self, first: int = 5, variants_first: int = 5) -> List[Dict[str, Any]]:
        # no catalog without a shop
        return []
