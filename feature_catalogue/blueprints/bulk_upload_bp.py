"""
Bulk Upload Blueprint

Spreadsheet-driven catalogue loading.

Endpoints:
  GET  /api/v1/admin/bulk-upload/template   — Download CSV template
  POST /api/v1/admin/bulk-upload            — Upload .xlsx/.csv and insert features
  GET  /api/v1/admin/replace-features       — What a replacement would archive
  POST /api/v1/admin/replace-features       — Archive the catalogue and load a new one

Uploads arrive as multipart ``file`` or as a raw CSV body.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from feature_catalogue.auth import current_actor
from feature_catalogue.services.bulk_ingestion_service import (
    CatalogueUploadError,
    bulk_upload,
    generate_template_csv,
    parse_upload,
)
from feature_catalogue.services.catalogue_replacement_service import (
    replace_catalogue,
    replacement_preview,
)
from feature_catalogue.utils.errors import E, api_error, register_core_error_handlers

logger = logging.getLogger(__name__)

bulk_upload_bp = Blueprint("bulk_upload", __name__, url_prefix="/api/v1/admin")
register_core_error_handlers(bulk_upload_bp)


# ═══════════════════════════════════════════════════════════════
# Error Handler
# ═══════════════════════════════════════════════════════════════
@bulk_upload_bp.errorhandler(CatalogueUploadError)
def handle_upload_error(e):
    logger.info("Upload rejected: %s", e.message)
    return api_error(E.UPLOAD_INVALID, e.message, status=e.status_code)


def _extract_upload() -> tuple[str, bytes]:
    """(filename, content) from a multipart ``file`` field or a raw CSV body."""
    file = request.files.get("file")
    if file and file.filename:
        return file.filename, file.read()
    if request.data:
        return "upload.csv", request.data
    raise CatalogueUploadError("No file uploaded")


# ═══════════════════════════════════════════════════════════════
# Template Download
# ═══════════════════════════════════════════════════════════════
@bulk_upload_bp.route("/bulk-upload/template", methods=["GET"])
def download_template():
    """Download a CSV template for bulk feature upload."""
    return Response(
        generate_template_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=feature_upload_template.csv"},
    )


# ═══════════════════════════════════════════════════════════════
# Bulk upload
# ═══════════════════════════════════════════════════════════════
@bulk_upload_bp.route("/bulk-upload", methods=["POST"])
def upload_features():
    """Insert the uploaded rows; bad rows are reported, not fatal."""
    filename, content = _extract_upload()
    rows = parse_upload(filename, content)
    results = bulk_upload(rows, actor=current_actor())
    return jsonify({
        "message": f"Processed {len(rows)} rows",
        "results": results,
    })


# ═══════════════════════════════════════════════════════════════
# Catalogue replacement
# ═══════════════════════════════════════════════════════════════
@bulk_upload_bp.route("/replace-features", methods=["GET"])
def preview_replacement():
    return jsonify(replacement_preview())


@bulk_upload_bp.route("/replace-features", methods=["POST"])
def replace_features():
    """Archive the active catalogue, flag its assessments legacy, load the upload."""
    filename, content = _extract_upload()
    rows = parse_upload(filename, content)
    result = replace_catalogue(rows, actor=current_actor())
    return jsonify(result)
