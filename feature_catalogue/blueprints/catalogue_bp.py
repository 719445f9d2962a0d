"""
Catalogue Blueprint — public, read-only browsing.

Endpoints:
  GET  /api/v1/catalogue/components                — components with feature counts
  GET  /api/v1/catalogue/components/<code>         — component with its features
  GET  /api/v1/catalogue/feature-groups            — feature groups (?component=)
  GET  /api/v1/catalogue/features                  — search (?q, component, role, service_type, page)
  GET  /api/v1/catalogue/features/<unique_id>      — single feature
  GET  /api/v1/catalogue/facets                    — filter options for search
  GET  /api/v1/catalogue/compare?ids=A,B,C         — side-by-side comparison (2–5)

Anchor rows are never returned.
"""

from flask import Blueprint, jsonify, request

from feature_catalogue.core.exceptions import NotFoundError
from feature_catalogue.services import catalogue_service
from feature_catalogue.utils.errors import register_core_error_handlers

catalogue_bp = Blueprint("catalogue", __name__, url_prefix="/api/v1/catalogue")
register_core_error_handlers(catalogue_bp)


@catalogue_bp.route("/components", methods=["GET"])
def list_components():
    return jsonify({"items": catalogue_service.list_components()})


@catalogue_bp.route("/components/<code>", methods=["GET"])
def get_component(code):
    return jsonify(catalogue_service.get_component(code))


@catalogue_bp.route("/feature-groups", methods=["GET"])
def list_feature_groups():
    component = request.args.get("component") or None
    return jsonify({"items": catalogue_service.list_feature_groups(component)})


@catalogue_bp.route("/features", methods=["GET"])
def search_features():
    """
    Query params:
        q             — free text (name, description, i want, outcomes, id)
        component     — component code
        role          — user role contained in ``as_a``
        service_type  — exact service type
        page          — default 1 (20 per page)
    """
    result = catalogue_service.search_features(
        q=request.args.get("q", ""),
        component=request.args.get("component", ""),
        role=request.args.get("role", ""),
        service_type=request.args.get("service_type", ""),
        page=request.args.get("page", 1, type=int),
    )
    return jsonify(result)


@catalogue_bp.route("/features/<unique_id>", methods=["GET"])
def get_feature(unique_id):
    entry = catalogue_service.get_feature(unique_id)
    if entry.is_placeholder:
        raise NotFoundError(resource="Feature", resource_id=unique_id)
    return jsonify(entry.to_dict())


@catalogue_bp.route("/facets", methods=["GET"])
def facets():
    return jsonify(catalogue_service.search_facets())


@catalogue_bp.route("/compare", methods=["GET"])
def compare():
    ids = []
    for raw in request.args.getlist("ids"):
        ids.extend(part for part in raw.split(",") if part.strip())
    return jsonify(catalogue_service.compare_features(ids))
