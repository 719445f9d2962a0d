"""
Feature Catalogue
Audit log blueprint.

Endpoints:
    GET  /api/v1/admin/audit-log                          — list / filter audit entries
    GET  /api/v1/admin/audit-log/<int:log_id>             — single audit entry
    POST /api/v1/admin/audit-log/<int:log_id>/revert-edit    — undo an edit
    POST /api/v1/admin/audit-log/<int:log_id>/revert-delete  — restore a deleted entity
"""

from flask import Blueprint, jsonify, request

from feature_catalogue.auth import current_actor
from feature_catalogue.services import audit_revert_service
from feature_catalogue.utils.errors import register_core_error_handlers

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1/admin/audit-log")
register_core_error_handlers(audit_bp)


# ── List / filter ────────────────────────────────────────────────────────────

@audit_bp.route("", methods=["GET"])
def list_audit_logs():
    """
    Return paginated audit entries, newest first.

    Query params:
        action       — action type (create, edit, delete, bulk-upload, replace-feature-set)
        entity_type  — component | feature_group | feature | features
        entity_id    — entity key
        username     — actor
        page         — page number (default 1)
        per_page     — items per page (default 50, max 200)
    """
    return jsonify(audit_revert_service.list_audit_logs(
        action_type=request.args.get("action"),
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id"),
        username=request.args.get("username"),
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 50, type=int),
    ))


# ── Single entry ─────────────────────────────────────────────────────────────

@audit_bp.route("/<int:log_id>", methods=["GET"])
def get_audit_log(log_id):
    return jsonify(audit_revert_service.get_audit_log(log_id).to_dict())


# ── Reverts ──────────────────────────────────────────────────────────────────

@audit_bp.route("/<int:log_id>/revert-edit", methods=["POST"])
def revert_edit(log_id):
    restored = audit_revert_service.revert_edit(log_id, actor=current_actor())
    return jsonify({"message": "Edit reverted", "restored": restored})


@audit_bp.route("/<int:log_id>/revert-delete", methods=["POST"])
def revert_delete(log_id):
    restored = audit_revert_service.revert_delete(log_id, actor=current_actor())
    return jsonify({"message": "Delete reverted", "restored": restored}), 201
