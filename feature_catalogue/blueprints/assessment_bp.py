"""
Assessment Blueprint — public self-assessment against the catalogue.

Endpoints:
  POST /api/v1/assessments                                   — start (returns the shareable code)
  GET  /api/v1/assessments/resume/<code>                     — look up by code
  GET  /api/v1/assessments/<id>                              — assessment with its responses
  GET  /api/v1/assessments/<id>/components/<code>/intro      — component description and position
  PUT  /api/v1/assessments/<id>/components/<code>/responses  — replace one component's answers
  GET  /api/v1/assessments/<id>/summary                      — yes / no / maybe per component
  GET  /api/v1/assessments/<id>/report                       — every feature with its answer
  GET  /api/v1/assessments/<id>/export.csv                   — report as CSV
"""

from flask import Blueprint, Response, jsonify

from feature_catalogue.blueprints import json_body
from feature_catalogue.services import assessment_service
from feature_catalogue.utils.errors import register_core_error_handlers

assessment_bp = Blueprint("assessments", __name__, url_prefix="/api/v1/assessments")
register_core_error_handlers(assessment_bp)


@assessment_bp.route("", methods=["POST"])
def start():
    data = json_body()
    assessment = assessment_service.start_assessment(
        data.get("user_name"), data.get("service_name"), data.get("service_type"),
    )
    return jsonify(assessment.to_dict()), 201


@assessment_bp.route("/resume/<code>", methods=["GET"])
def resume(code):
    return jsonify(assessment_service.resume_assessment(code).to_dict())


@assessment_bp.route("/<int:assessment_id>", methods=["GET"])
def get_assessment(assessment_id):
    assessment = assessment_service.get_assessment(assessment_id)
    return jsonify({**assessment.to_dict(), "responses": assessment_service.response_map(assessment)})


@assessment_bp.route("/<int:assessment_id>/components/<code>/intro", methods=["GET"])
def component_intro(assessment_id, code):
    return jsonify(assessment_service.component_intro(assessment_id, code))


@assessment_bp.route("/<int:assessment_id>/components/<code>/responses", methods=["PUT"])
def save_responses(assessment_id, code):
    data = json_body()
    result = assessment_service.save_component_responses(assessment_id, code, data.get("responses") or {})
    return jsonify(result)


@assessment_bp.route("/<int:assessment_id>/summary", methods=["GET"])
def summary(assessment_id):
    return jsonify(assessment_service.assessment_summary(assessment_id))


@assessment_bp.route("/<int:assessment_id>/report", methods=["GET"])
def report(assessment_id):
    return jsonify(assessment_service.assessment_report(assessment_id))


@assessment_bp.route("/<int:assessment_id>/export.csv", methods=["GET"])
def export_csv(assessment_id):
    filename, content = assessment_service.export_assessment_csv(assessment_id)
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
