from __future__ import annotations

import io
import logging

from flask import Flask, Response, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from conciliador.excel_export import backup_filename, export_logistics_backup, report_filename
from conciliador.excel_import import SpreadsheetError, read_workbook
from conciliador.logistics import LogisticsError, LogisticsService
from conciliador.reconciliation import ReconciliationError, config_from_mapping
from conciliador.reference_store import ReferenceStore
from conciliador.services import ReconciliationService
from conciliador.settings import Settings
from conciliador.tipos import ReconciliationConfig

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Problems the caller can fix; answered with 400 instead of 500.
USER_ERRORS = (ReconciliationError, SpreadsheetError, LogisticsError)


def _error(message: str, status: int = 400):
    return jsonify({"ok": False, "error": message}), status


def _xlsx(data: bytes, filename: str) -> Response:
    return send_file(io.BytesIO(data), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


def _json_object() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise LogisticsError("El cuerpo de la solicitud debe ser un objeto JSON")
    return data


def _uploaded_bytes(field: str) -> bytes:
    f = request.files.get(field)
    if f is None or not f.filename:
        raise SpreadsheetError(f"Archivo inválido o ausente: '{field}'")
    return f.read()


def create_app(store: ReferenceStore, settings: Settings) -> Flask:
    logistics = LogisticsService(store)
    reconciler = ReconciliationService(store)
    defaults = ReconciliationConfig(
        stock_publish_percent=settings.DEFAULT_STOCK_PERCENT,
        retention_percent=settings.DEFAULT_RETENTION_PERCENT,
        include_taxes_in_base_cost=settings.DEFAULT_INCLUDE_TAXES,
    )

    app = Flask(__name__, static_folder=None)
    app.config["MAX_CONTENT_LENGTH"] = int(settings.MAX_UPLOAD_MB) * 1024 * 1024

    def handle_user_error(e: Exception):
        logger.warning("Solicitud rechazada en %s: %s", request.path, e)
        return _error(str(e), 400)

    for exc in USER_ERRORS:
        app.register_error_handler(exc, handle_user_error)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        if e.code == 404:
            return _error("Ruta no encontrada", 404)
        return _error(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Error no controlado en %s", request.path)
        return jsonify({"ok": False, "error": "Error interno del servidor", "details": str(e)}), 500

    @app.get("/health")
    @app.get("/api/health")
    def health() -> Response:
        return jsonify({"ok": True, "status": "ok", "app": settings.APP_NAME})

    # --- Pesos ---
    @app.get("/api/weights")
    def api_list_weights():
        return jsonify([w.as_dict() for w in logistics.list_weights()])

    @app.post("/api/weights/bulk")
    def api_replace_weights():
        data = _json_object()
        saved = logistics.replace_weights(data.get("weights"))
        return jsonify({"ok": True, "saved": saved})

    @app.post("/api/weights")
    def api_save_weight():
        data = _json_object()
        entry = logistics.save_weight(
            str(data.get("sku") or ""),
            str(data.get("product") or ""),
            data.get("weight"),
            editing_sku=data.get("editingSku") or None,
        )
        return jsonify({"ok": True, "weight": entry.as_dict()})

    @app.post("/api/weights/import")
    def api_import_weights():
        sheets = read_workbook(_uploaded_bytes("file"))
        if not sheets:
            raise LogisticsError("El archivo no contiene datos")
        res = logistics.import_weights(sheets[0])
        return jsonify({"ok": True, "added": res.added, "updated": res.updated})

    @app.delete("/api/weights/<path:sku>")
    def api_delete_weight(sku: str):
        deleted = logistics.delete_weight(sku)
        return jsonify({"ok": True, "deleted": sku if deleted else None})

    # --- Escalas ---
    @app.get("/api/rates")
    def api_list_rates():
        return jsonify([r.as_dict() for r in logistics.list_rates()])

    @app.put("/api/rates")
    def api_replace_rates():
        data = _json_object()
        saved = logistics.replace_rates(data.get("rates"))
        return jsonify({"ok": True, "saved": saved})

    # --- Backup ---
    @app.get("/api/backup")
    def api_backup():
        data = export_logistics_backup(logistics.list_weights(), logistics.list_rates())
        return _xlsx(data, backup_filename())

    @app.post("/api/backup/restore")
    def api_restore_backup():
        res = logistics.restore_backup(read_workbook(_uploaded_bytes("file")))
        return jsonify({"ok": True, "weights": res.weights, "rates": res.rates})

    # --- Conciliación ---
    def _run_from_request():
        config = config_from_mapping(request.form, defaults=defaults)
        return reconciler.run_files(_uploaded_bytes("ml"), _uploaded_bytes("odoo"), config)

    @app.post("/api/reconcile")
    def api_reconcile():
        return jsonify(_run_from_request().as_dict())

    @app.post("/api/reconcile/export")
    def api_reconcile_export():
        run = _run_from_request()
        return _xlsx(reconciler.export(run.rows), report_filename())

    return app
