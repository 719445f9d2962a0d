"""
Admin Blueprint — catalogue maintenance.

Every mutation is audited under the actor named in the X-Admin-User header.

Endpoints:
  GET    /api/v1/admin/dashboard                                   — catalogue totals
  POST   /api/v1/admin/components                                  — create component
  PUT    /api/v1/admin/components/<code>                           — rename component
  DELETE /api/v1/admin/components/<code>                           — delete component (all rows)
  GET    /api/v1/admin/components/<code>/feature-groups            — groups incl. empty ones
  POST   /api/v1/admin/components/<code>/feature-groups            — create feature group
  GET    /api/v1/admin/components/<code>/feature-groups/<group>    — feature group with its count
  PUT    /api/v1/admin/components/<code>/feature-groups/<group>    — rename feature group
  DELETE /api/v1/admin/components/<code>/feature-groups/<group>    — delete feature group
  GET    /api/v1/admin/features                                    — real features (?component=)
  POST   /api/v1/admin/features                                    — create feature
  PUT    /api/v1/admin/features/<unique_id>                        — edit feature
  DELETE /api/v1/admin/features/<unique_id>                        — delete feature
  GET    /api/v1/admin/next-group-code/<code>                      — identifier preview
  GET    /api/v1/admin/next-feature-id/<code>/<group>              — identifier preview
  GET    /api/v1/admin/assessments                                 — assessments with progress
  DELETE /api/v1/admin/assessments/<id>                            — delete assessment
"""

import logging

from flask import Blueprint, jsonify, request

from feature_catalogue.auth import current_actor
from feature_catalogue.blueprints import json_body
from feature_catalogue.services import assessment_service, catalogue_service
from feature_catalogue.utils.errors import register_core_error_handlers

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")
register_core_error_handlers(admin_bp)


@admin_bp.route("/dashboard", methods=["GET"])
def dashboard():
    return jsonify(catalogue_service.catalogue_stats())


# ── Components ───────────────────────────────────────────────────────────────

@admin_bp.route("/components", methods=["POST"])
def create_component():
    data = json_body()
    result = catalogue_service.create_component(
        data.get("component_code"), data.get("component_name"), actor=current_actor(),
    )
    return jsonify(result), 201


@admin_bp.route("/components/<code>", methods=["PUT"])
def rename_component(code):
    data = json_body()
    return jsonify(catalogue_service.rename_component(code, data.get("component_name"), actor=current_actor()))


@admin_bp.route("/components/<code>", methods=["DELETE"])
def delete_component(code):
    catalogue_service.delete_component(code, actor=current_actor())
    return jsonify({"message": f"Component {code} deleted"})


# ── Feature groups ───────────────────────────────────────────────────────────

@admin_bp.route("/components/<code>/feature-groups", methods=["GET"])
def list_feature_groups(code):
    return jsonify({"items": catalogue_service.list_feature_groups(code)})


@admin_bp.route("/components/<code>/feature-groups", methods=["POST"])
def create_feature_group(code):
    data = json_body()
    result = catalogue_service.create_feature_group(code, data.get("feature_group_name"), actor=current_actor())
    return jsonify(result), 201


@admin_bp.route("/components/<code>/feature-groups/<group>", methods=["GET"])
def get_feature_group(code, group):
    return jsonify(catalogue_service.get_feature_group(code, group))


@admin_bp.route("/components/<code>/feature-groups/<group>", methods=["PUT"])
def rename_feature_group(code, group):
    data = json_body()
    result = catalogue_service.rename_feature_group(
        code, group, data.get("feature_group_name"), actor=current_actor(),
    )
    return jsonify(result)


@admin_bp.route("/components/<code>/feature-groups/<group>", methods=["DELETE"])
def delete_feature_group(code, group):
    rows = catalogue_service.delete_feature_group(code, group, actor=current_actor())
    return jsonify({"message": f"Feature group {code}-{group} deleted", "deleted": len(rows)})


# ── Features ─────────────────────────────────────────────────────────────────

@admin_bp.route("/features", methods=["GET"])
def list_features():
    component = request.args.get("component") or None
    return jsonify({"items": catalogue_service.list_features(component)})


@admin_bp.route("/features", methods=["POST"])
def create_feature():
    entry = catalogue_service.create_feature(json_body(), actor=current_actor())
    return jsonify(entry.to_dict()), 201


@admin_bp.route("/features/<unique_id>", methods=["PUT"])
def update_feature(unique_id):
    entry = catalogue_service.update_feature(unique_id, json_body(), actor=current_actor())
    return jsonify(entry.to_dict())


@admin_bp.route("/features/<unique_id>", methods=["DELETE"])
def delete_feature(unique_id):
    catalogue_service.delete_feature(unique_id, actor=current_actor())
    return jsonify({"message": f"Feature {unique_id} deleted"})


# ── Identifier previews ──────────────────────────────────────────────────────

@admin_bp.route("/next-group-code/<code>", methods=["GET"])
def next_group_code(code):
    return jsonify(catalogue_service.next_codes(code))


@admin_bp.route("/next-feature-id/<code>/<group>", methods=["GET"])
def next_feature_id(code, group):
    return jsonify(catalogue_service.next_codes(code, group))


# ── Assessments ──────────────────────────────────────────────────────────────

@admin_bp.route("/assessments", methods=["GET"])
def list_assessments():
    return jsonify({"items": assessment_service.list_assessments()})


@admin_bp.route("/assessments/<int:assessment_id>", methods=["DELETE"])
def delete_assessment(assessment_id):
    assessment_service.delete_assessment(assessment_id)
    logger.info("Assessment %d deleted by %s", assessment_id, current_actor())
    return jsonify({"message": "Assessment deleted"})
