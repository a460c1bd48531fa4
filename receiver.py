from flask import Flask, request, jsonify, Response
from pathlib import Path
import json, datetime, base64, threading

from config import Settings
from admin_api import AdminClient, AdminApiError
from errors import ConfigurationMissingError, PersistencePayloadError, PersistenceWriteError
from limits import run
from models import merge_settings, validate_edits
from secure_store import FileBackend
from store import ConfigurationStore, bootstrap_and_load

app = Flask(__name__)

_metrics_lock = threading.Lock()
_metrics = {
    "http_requests_total": {},
    "validations_total": 0,
    "validation_errors_total": 0,
    "settings_saves_total": 0,
    "settings_save_failures_total": 0,
}
def _inc_http(method, path, status):
    with _metrics_lock:
        key = (method, path, int(status))
        _metrics["http_requests_total"][key] = _metrics["http_requests_total"].get(key, 0) + 1
def _inc_validation(n_errors):
    with _metrics_lock:
        _metrics["validations_total"] += 1
        _metrics["validation_errors_total"] += n_errors
def _inc_save(ok):
    with _metrics_lock:
        _metrics["settings_saves_total" if ok else "settings_save_failures_total"] += 1

@app.after_request
def _after(resp):
    _inc_http(request.method, request.path, resp.status_code)
    return resp

def _prometheus_exposition():
    lines = []
    with _metrics_lock:
        for name, help_text in (
            ("validations_total", "Cart validations evaluated"),
            ("validation_errors_total", "Limit violations reported to checkout"),
            ("settings_saves_total", "Limit maps saved"),
            ("settings_save_failures_total", "Limit map saves that failed"),
        ):
            lines.append(f"# HELP variant_limits_{name} {help_text}")
            lines.append(f"# TYPE variant_limits_{name} counter")
            lines.append(f"variant_limits_{name} {_metrics[name]}")
        lines.append("# HELP variant_limits_http_requests_total HTTP requests by method, path and status")
        lines.append("# TYPE variant_limits_http_requests_total counter")
        for (method, path, status), count in sorted(_metrics["http_requests_total"].items()):
            plabel = path.replace('\\', '\\\\').replace('"', '\\"')
            lines.append(f'variant_limits_http_requests_total{{method="{method}",path="{plabel}",status="{status}"}} {count}')
    return "\n".join(lines) + "\n"

def _now():
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")

def _logs_dir() -> Path:
    d = Path(Settings.LOGS_DIR)
    d.mkdir(parents=True, exist_ok=True)
    return d

def _log_json(line: dict, file_name="server.log"):
    try:
        with (_logs_dir() / file_name).open("a", encoding="utf-8") as f:
            f.write(json.dumps(line, ensure_ascii=False) + "\n")
    except OSError:
        pass

def _check_basic_auth(auth_header: str) -> bool:
    if not Settings.ADMIN_USER or not Settings.ADMIN_PASS:
        return True
    if not auth_header or not auth_header.startswith("Basic "):
        return False
    try:
        b64 = auth_header.split(" ", 1)[1].strip()
        userpass = base64.b64decode(b64).decode("utf-8")
        user, pw = userpass.split(":", 1)
        return user == Settings.ADMIN_USER and pw == Settings.ADMIN_PASS
    except ValueError:
        return False

def _unauthorized():
    return Response("Unauthorized", status=401, headers={"WWW-Authenticate": "Basic realm='Variant Limits Admin'"})

def _backend():
    if Settings.LIMITS_BACKEND == "shopify":
        return AdminClient()
    return FileBackend()

def _fail(kind: str, messages, status: int):
    _log_json({"ts": _now(), "type": kind, "ok": False, "errors": list(messages)})
    return jsonify({"ok": False, "errors": list(messages)}), status

@app.route("/", methods=["GET"])
def root():
    return jsonify({"ok": True, "msg": "Variant limits receiver alive"}), 200

@app.route("/healthz", methods=["GET"])
def healthz():
    return jsonify({"ok": True, "backend": Settings.LIMITS_BACKEND, "ts": _now()}), 200

@app.route("/metrics", methods=["GET"])
def metrics():
    text = _prometheus_exposition()
    return Response(text, mimetype="text/plain; version=0.0.4; charset=utf-8")

@app.route("/admin/logs", methods=["GET"])
def admin_logs():
    if not _check_basic_auth(request.headers.get("Authorization", "")):
        return _unauthorized()
    try:
        n = int(request.args.get("n", "200"))
    except ValueError:
        n = 200
    n = max(1, min(n, 5000))
    fmt = (request.args.get("format", "jsonl") or "jsonl").lower()
    path = Path(Settings.LOGS_DIR) / "server.log"
    if not path.exists():
        return Response("", mimetype="text/plain" if fmt == "txt" else "application/x-ndjson")
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()[-n:]
    body = "\n".join(lines) + ("\n" if lines else "")
    return Response(body, mimetype="text/plain; charset=utf-8" if fmt == "txt" else "application/x-ndjson")

# ----- Checkout validation -----
@app.route("/validate", methods=["POST"])
def validate():
    data = request.get_json(force=True, silent=True) or {}
    result = run(data)
    _inc_validation(len(result["errors"]))
    _log_json({"ts": _now(), "type": "validate", "errors": len(result["errors"])})
    return jsonify(result), 200

# ----- Settings screen -----
@app.route("/admin/bootstrap", methods=["POST"])
def bootstrap():
    if not _check_basic_auth(request.headers.get("Authorization", "")):
        return _unauthorized()
    try:
        definition_id = ConfigurationStore(_backend()).ensure_schema()
    except (ConfigurationMissingError, PersistencePayloadError) as e:
        return _fail("bootstrap_error", [e.message], 500)
    except AdminApiError as e:
        return _fail("bootstrap_error", [str(e)], 502)
    _log_json({"ts": _now(), "type": "bootstrap", "ok": True, "definition": definition_id})
    return jsonify({"ok": True, "definition": definition_id}), 200

@app.route("/settings", methods=["GET"])
def get_settings():
    if not _check_basic_auth(request.headers.get("Authorization", "")):
        return _unauthorized()
    backend = _backend()
    store = ConfigurationStore(backend)
    try:
        limit_map = bootstrap_and_load(store)
        products = backend.fetch_products()
    except (ConfigurationMissingError, PersistencePayloadError) as e:
        return _fail("settings_load_error", [e.message], 500)
    except AdminApiError as e:
        return _fail("settings_load_error", [str(e)], 502)
    return jsonify({"ok": True, "products": products, "settings": merge_settings(products, limit_map),
                    "limits": limit_map}), 200

@app.route("/settings", methods=["POST"])
def save_settings():
    if not _check_basic_auth(request.headers.get("Authorization", "")):
        return _unauthorized()
    data = request.get_json(force=True, silent=True)
    edits = data.get("settings") if isinstance(data, dict) else None
    limit_map, errors = validate_edits(edits)
    if errors:
        return _fail("settings_invalid", errors, 400)
    try:
        ConfigurationStore(_backend()).save_limit_map(limit_map)
    except ConfigurationMissingError as e:
        _inc_save(False)
        return _fail("settings_save_error", [e.message], 500)
    except PersistenceWriteError as e:
        _inc_save(False)
        return _fail("settings_save_error", e.messages, 502)
    _inc_save(True)
    _log_json({"ts": _now(), "type": "settings_save", "ok": True, "variants": len(limit_map)})
    return jsonify({"ok": True, "settings": limit_map}), 200

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=Settings.PORT, debug=False)
