"""
Legacy Blueprint — archived catalogue generations.

Endpoints:
  GET /api/v1/admin/legacy-sets                  — archived sets, newest first
  GET /api/v1/admin/legacy-sets/<id>             — set features by component + linked assessments
  GET /api/v1/admin/legacy-assessments/<id>      — legacy assessment over its archived features
"""

from flask import Blueprint, jsonify

from feature_catalogue.services import legacy_feature_service
from feature_catalogue.utils.errors import register_core_error_handlers

legacy_bp = Blueprint("legacy", __name__, url_prefix="/api/v1/admin")
register_core_error_handlers(legacy_bp)


@legacy_bp.route("/legacy-sets", methods=["GET"])
def list_legacy_sets():
    return jsonify({"items": legacy_feature_service.list_legacy_sets()})


@legacy_bp.route("/legacy-sets/<int:legacy_set_id>", methods=["GET"])
def get_legacy_set(legacy_set_id):
    return jsonify(legacy_feature_service.get_legacy_set(legacy_set_id))


@legacy_bp.route("/legacy-assessments/<int:assessment_id>", methods=["GET"])
def legacy_assessment(assessment_id):
    return jsonify(legacy_feature_service.legacy_assessment_view(assessment_id))
