import pytest

import secure_store
from errors import ConfigurationMissingError, PersistencePayloadError
from secure_store import FileBackend
from store import ConfigurationStore


def test_set_requires_definition(tmp_path, enc_key):
    fb = FileBackend(str(tmp_path))
    result = fb.set("ns", "k", "{}")
    assert result["ok"] is False
    assert "ns.k" in result["errors"][0]


def test_definition_is_idempotent(tmp_path, enc_key):
    fb = FileBackend(str(tmp_path))
    assert fb.find_definition("ns", "k") is None
    first = fb.create_definition("ns", "k", {"type": "json"})
    assert fb.create_definition("ns", "k", {"type": "json"}) == first
    assert fb.find_definition("ns", "k") == first


def test_store_round_trip_on_disk(tmp_path, enc_key):
    store = ConfigurationStore(FileBackend(str(tmp_path)))
    store.ensure_schema()
    store.save_limit_map({"gid://variant/1": 4})
    # fresh backend over the same directory
    assert ConfigurationStore(FileBackend(str(tmp_path))).load_limit_map() == {"gid://variant/1": 4}
    assert not list(tmp_path.glob("*.tmp"))
    assert b"gid://variant/1" not in next(tmp_path.glob("*.bin")).read_bytes()


def test_unreadable_blob(tmp_path, enc_key):
    fb = FileBackend(str(tmp_path))
    fb.create_definition("ns", "k", {})
    next(tmp_path.glob("*.bin")).write_bytes(b"garbage")
    with pytest.raises(PersistencePayloadError):
        fb.get("ns", "k")


def test_key_must_be_configured(tmp_path, monkeypatch):
    from config import Settings
    monkeypatch.setattr(Settings, "STORE_ENC_KEY", "")
    with pytest.raises(RuntimeError, match="STORE_ENC_KEY"):
        FileBackend(str(tmp_path)).create_definition("ns", "k", {})


def test_store_save_without_definition(tmp_path, enc_key):
    with pytest.raises(ConfigurationMissingError):
        ConfigurationStore(FileBackend(str(tmp_path))).save_limit_map({"v1": 1})


def test_failed_write_leaves_no_temp_file(tmp_path, enc_key, monkeypatch):
    fb = FileBackend(str(tmp_path))

    def refuse(src, dst):
        raise OSError("read-only filesystem")
    monkeypatch.setattr(secure_store.os, "replace", refuse)
    with pytest.raises(OSError, match="read-only"):
        fb.create_definition("ns", "k", {})
    assert list(tmp_path.iterdir()) == []


def test_file_backend_has_empty_catalog(tmp_path, enc_key):
    assert FileBackend(str(tmp_path)).fetch_products() == []
