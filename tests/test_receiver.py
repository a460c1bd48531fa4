import base64
import json

import pytest

import receiver
from config import Settings


@pytest.fixture
def client(tmp_path, monkeypatch, backend):
    monkeypatch.setattr(Settings, "LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(Settings, "ADMIN_USER", "")
    monkeypatch.setattr(Settings, "ADMIN_PASS", "")
    monkeypatch.setattr(receiver, "_backend", lambda: backend)
    receiver.app.config["TESTING"] = True
    with receiver.app.test_client() as c:
        yield c


def _log_types(tmp_path):
    path = tmp_path / "logs" / "server.log"
    return [json.loads(line)["type"] for line in path.read_text().splitlines()]


def test_validate_endpoint(client, tmp_path):
    payload = {
        "cart": {"lines": [{"quantity": 5, "merchandise": {"id": "gid://variant/1",
                                                           "product": {"title": "Blue Shirt"}}}]},
        "validation": {"metafield": {"value": '{"gid://variant/1": 3}'}},
    }
    resp = client.post("/validate", json=payload)
    assert resp.status_code == 200
    assert resp.get_json()["errors"][0]["localizedMessage"] == \
        "Orders are limited to a maximum of 5 of Blue Shirt"
    assert "validate" in _log_types(tmp_path)


def test_settings_bootstraps_and_loads(client, backend):
    resp = client.get("/settings")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body == {"ok": True, "products": [], "settings": {}, "limits": {}}
    assert backend.create_calls == 1


def test_settings_merges_catalog(client, backend):
    backend.fetch_products = lambda: [{"title": "Shirt", "variants": [{"id": "v1"}, {"id": "v2"}]}]
    client.post("/admin/bootstrap")
    client.post("/settings", json={"settings": {"v1": 2, "gone": 7}})
    body = client.get("/settings").get_json()
    assert body["settings"] == {"v1": 2}
    assert body["limits"] == {"gone": 7, "v1": 2}


def test_save_and_reload(client):
    client.post("/admin/bootstrap")
    resp = client.post("/settings", json={"settings": {"gid://variant/2": 0}})
    assert resp.status_code == 200
    assert client.get("/settings").get_json()["limits"] == {"gid://variant/2": 0}


def test_save_rejects_out_of_range(client, backend):
    resp = client.post("/settings", json={"settings": {"v1": 150}})
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False
    assert backend.values == {}


def test_save_write_failure_lists_messages(client, backend):
    client.post("/admin/bootstrap")
    backend.set_result = {"ok": False, "errors": ["Owner not found"]}
    resp = client.post("/settings", json={"settings": {"v1": 1}})
    assert resp.status_code == 502
    assert resp.get_json() == {"ok": False, "errors": ["Owner not found"]}


def test_corrupt_payload_is_reported(client, backend):
    client.post("/admin/bootstrap")
    backend.values[("$app:product-limits", "product-limits-values")] = "not-json"
    resp = client.get("/settings")
    assert resp.status_code == 500
    assert resp.get_json()["ok"] is False


def test_bootstrap_failure(client, backend, tmp_path):
    backend.fail_create = True
    resp = client.post("/admin/bootstrap")
    assert resp.status_code == 500
    assert "bootstrap_error" in _log_types(tmp_path)


def test_basic_auth(client, monkeypatch):
    monkeypatch.setattr(Settings, "ADMIN_USER", "admin")
    monkeypatch.setattr(Settings, "ADMIN_PASS", "s3cret")
    assert client.get("/settings").status_code == 401
    token = base64.b64encode(b"admin:s3cret").decode()
    assert client.get("/settings", headers={"Authorization": f"Basic {token}"}).status_code == 200
    # checkout validation stays open
    assert client.post("/validate", json={}).status_code == 200


def test_metrics_and_health(client):
    client.post("/validate", json={})
    assert client.get("/healthz").get_json()["ok"] is True
    text = client.get("/metrics").get_data(as_text=True)
    assert "variant_limits_validations_total" in text
    assert 'path="/validate"' in text


def test_save_before_bootstrap(client, backend, tmp_path):
    resp = client.post("/settings", json={"settings": {"v1": 1}})
    assert resp.status_code == 500
    assert "run the bootstrap first" in resp.get_json()["errors"][0]
    assert backend.values == {}
    assert "settings_save_error" in _log_types(tmp_path)


def test_save_rejects_oversized_number(client, backend):
    client.post("/admin/bootstrap")
    resp = client.post("/settings", json={"settings": {"v1": "9" * 5000}})
    assert resp.status_code == 400
    assert "v1" in resp.get_json()["errors"][0]
    assert backend.values == {}


def test_validate_survives_oversized_limit(client):
    payload = {
        "cart": {"lines": [{"quantity": 5, "merchandise": {"id": "v1", "product": {"title": "T"}}}]},
        "validation": {"metafield": {"value": json.dumps({"v1": "9" * 5000})}},
    }
    resp = client.post("/validate", json=payload)
    assert resp.status_code == 200
    assert resp.get_json() == {"errors": []}
