from __future__ import annotations

import io
import os
import threading
import time

from flask import Flask, jsonify, request, send_file

from camera_measure import config
from camera_measure.capture import decode_image_bytes
from camera_measure.errors import CaptureUnavailable
from camera_measure.export import FILE_PATTERNS
from camera_measure.geometry import DisplayRect
from camera_measure.logging_config import setup_logging
from camera_measure.session import CommandResult, MeasurementSession

app = Flask(__name__)

# One measurement session per server process
SESSION = MeasurementSession()
SESSION_LOCK = threading.Lock()

EXPORT_MIMETYPES = {"png": "image/png", "json": "application/json", "csv": "text/csv"}


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type,Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,OPTIONS"
    return response


@app.route("/healthz")
def health():
    return "ok"


def _reply(result: CommandResult):
    """Session state on success, {"error": ...} with 400 otherwise."""
    if not result.ok:
        return jsonify({"error": result.error, "state": SESSION.state()}), 400
    payload = SESSION.state()
    if result.entity is not None:
        payload["created"] = type(result.entity).__name__.lower()
    return jsonify(payload)


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _flag(data: dict, name: str = "enabled") -> bool:
    value = data.get(name, True)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _uploaded_frame():
    upload = request.files.get("frame")
    if not upload or not upload.filename:
        raise CaptureUnavailable("Missing 'frame' upload")
    return decode_image_bytes(upload.read())


@app.route("/api/state", methods=["GET"])
def api_state():
    with SESSION_LOCK:
        return jsonify(SESSION.state())


@app.route("/api/mode", methods=["POST"])
def api_mode():
    mode = _json_body().get("mode")
    if not mode:
        return jsonify({"error": "Missing mode"}), 400
    with SESSION_LOCK:
        return _reply(SESSION.set_mode(mode))


@app.route("/api/pointer", methods=["POST"])
def api_pointer():
    """Body: {"x", "y"} in surface pixels, or {"clientX", "clientY", "rect": {left, top, width, height}}."""
    data = _json_body()
    try:
        if "rect" in data:
            r = data["rect"]
            rect = DisplayRect(float(r["left"]), float(r["top"]), float(r["width"]), float(r["height"]))
            client_x, client_y = float(data["clientX"]), float(data["clientY"])
        else:
            x, y = float(data["x"]), float(data["y"])
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "Invalid pointer coordinates"}), 400

    with SESSION_LOCK:
        if "rect" in data:
            return _reply(SESSION.pointer_at_client(client_x, client_y, rect))
        return _reply(SESSION.pointer_at(x, y))


@app.route("/api/freeze", methods=["POST"])
def api_freeze():
    with SESSION_LOCK:
        try:
            frame = _uploaded_frame()
        except CaptureUnavailable as exc:
            return _reply(SESSION.capture_failed(str(exc)))
        return _reply(SESSION.freeze(frame))


@app.route("/api/refresh", methods=["POST"])
def api_refresh():
    with SESSION_LOCK:
        try:
            frame = _uploaded_frame()
        except CaptureUnavailable as exc:
            return _reply(SESSION.capture_failed(str(exc)))
        return _reply(SESSION.refresh_frame(frame))


@app.route("/api/resume", methods=["POST"])
def api_resume():
    with SESSION_LOCK:
        return _reply(SESSION.resume())


@app.route("/api/unit", methods=["POST"])
def api_unit():
    with SESSION_LOCK:
        return _reply(SESSION.set_unit(_json_body().get("unit", "")))


@app.route("/api/scale", methods=["POST"])
def api_scale():
    with SESSION_LOCK:
        return _reply(SESSION.set_scale(_json_body().get("scale")))


@app.route("/api/calibration-length", methods=["POST"])
def api_calibration_length():
    data = _json_body()
    with SESSION_LOCK:
        if data.get("cancel"):
            return _reply(SESSION.cancel_calibration())
        return _reply(SESSION.supply_calibration_length(data.get("length")))


@app.route("/api/grid", methods=["POST"])
def api_grid():
    with SESSION_LOCK:
        return _reply(SESSION.toggle_grid(_flag(_json_body())))


@app.route("/api/edges", methods=["POST"])
def api_edges():
    with SESSION_LOCK:
        return _reply(SESSION.toggle_edges(_flag(_json_body())))


@app.route("/api/mirror", methods=["POST"])
def api_mirror():
    with SESSION_LOCK:
        return _reply(SESSION.set_mirror(_flag(_json_body())))


@app.route("/api/clear", methods=["POST"])
def api_clear():
    with SESSION_LOCK:
        return _reply(SESSION.clear_measurements())


@app.route("/api/reset", methods=["POST"])
def api_reset():
    with SESSION_LOCK:
        return _reply(SESSION.reset_all())


@app.route("/api/entities/<entity_id>", methods=["DELETE"])
def api_delete_entity(entity_id: str):
    with SESSION_LOCK:
        return _reply(SESSION.delete_entity(entity_id))


@app.route("/api/export/<kind>", methods=["GET"])
def api_export(kind: str):
    if kind not in EXPORT_MIMETYPES:
        return jsonify({"error": f"Unsupported export {kind}"}), 400
    exporters = {"png": SESSION.export_png, "json": SESSION.export_json, "csv": SESSION.export_csv}
    with SESSION_LOCK:
        result = exporters[kind]()
    if not result.ok:
        return jsonify({"error": result.error}), 400

    data = result.data if isinstance(result.data, bytes) else result.data.encode("utf-8")
    return send_file(
        io.BytesIO(data),
        mimetype=EXPORT_MIMETYPES[kind],
        as_attachment=True,
        download_name=FILE_PATTERNS[kind].format(stamp=int(time.time() * 1000)),
    )


if __name__ == "__main__":
    setup_logging(config.LOG_LEVEL)
    app.run(host="127.0.0.1", port=int(os.getenv("PORT", "8000")), debug=True)
