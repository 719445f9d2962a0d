"""
Assessment Service — response sets over the catalogue.

An assessment is identified to its user by a short shareable code and
answers features one component at a time.  Once the catalogue it was
answered against is replaced the assessment is flagged ``legacy`` and
becomes read-only; its reports are then built from the archived
feature set instead of the live catalogue.
"""

import csv
import io
import logging
import secrets

from feature_catalogue.core.exceptions import NotFoundError, ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.assessment import RESPONSE_VALUES, Assessment, AssessmentResponse
from feature_catalogue.models.catalogue import FeatureEntry
from feature_catalogue.models.legacy import LegacyFeatureSet
from feature_catalogue.services.component_descriptions import describe_component
from feature_catalogue.utils.helpers import clean, commit_or_raise, utcnow

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
CODE_ATTEMPTS = 10
NOT_ANSWERED = "Not answered"

CSV_HEADER = ["Component Code", "Component Name", "Feature ID", "Feature Name", "Description", "Response"]


# ── Lookups ──────────────────────────────────────────────────────────────────

def get_assessment(assessment_id: int) -> Assessment:
    assessment = db.session.get(Assessment, assessment_id)
    if assessment is None:
        raise NotFoundError(resource="Assessment", resource_id=assessment_id)
    return assessment


def _current_features() -> list[dict]:
    rows = (
        FeatureEntry.query
        .filter(FeatureEntry.real_clause())
        .order_by(FeatureEntry.component_code, FeatureEntry.feature_group_code, FeatureEntry.feature_id)
        .all()
    )
    return [r.to_dict() for r in rows]


def feature_source(assessment: Assessment) -> list[dict]:
    """The feature definitions the assessment was answered against."""
    if assessment.legacy:
        legacy_set = (
            db.session.get(LegacyFeatureSet, assessment.legacy_feature_set_id)
            if assessment.legacy_feature_set_id else None
        )
        return legacy_set.features if legacy_set else []
    return _current_features()


def response_map(assessment: Assessment) -> dict[str, str]:
    return {r.feature_id: r.response for r in assessment.responses}


def group_by_component(features: list[dict], responses: dict[str, str]) -> list[dict]:
    """Features grouped by component, each carrying its response or ``Not answered``."""
    groups: dict[str, dict] = {}
    for f in features:
        group = groups.setdefault(f["component_code"], {
            "component_code": f["component_code"],
            "component_name": f.get("component_name") or f["component_code"],
            "features": [],
        })
        group["features"].append({**f, "response": responses.get(f["unique_id"], NOT_ANSWERED)})
    return list(groups.values())


# ── Lifecycle ────────────────────────────────────────────────────────────────

def _generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def start_assessment(user_name: str, service_name: str, service_type: str) -> Assessment:
    values = {
        "user_name": clean(user_name),
        "service_name": clean(service_name),
        "service_type": clean(service_type),
    }
    missing = [k for k, v in values.items() if not v]
    if missing:
        raise ValidationError("All fields are required", details={k: "required" for k in missing})

    for _ in range(CODE_ATTEMPTS):
        code = _generate_code()
        if Assessment.query.filter_by(code=code).first() is None:
            break
    else:
        raise ValidationError("Could not generate a unique assessment code")

    assessment = Assessment(code=code, **values)
    db.session.add(assessment)
    commit_or_raise()
    logger.info("Assessment started: %s (%s)", code, values["service_name"])
    return assessment


def resume_assessment(code: str) -> Assessment:
    normalized = clean(code).upper()
    assessment = Assessment.query.filter_by(code=normalized).first() if normalized else None
    if assessment is None:
        raise NotFoundError(resource="Assessment", resource_id=normalized or None)
    return assessment


def save_component_responses(assessment_id: int, component_code: str, responses: dict) -> dict:
    """
    Replace the assessment's responses for one component.

    *responses* maps feature ``unique_id`` → ``yes`` / ``no`` / ``maybe``;
    blank values mean "not answered" and are dropped.
    """
    assessment = get_assessment(assessment_id)
    if assessment.legacy:
        raise ValidationError("Legacy assessments are read-only", details={"code": assessment.code})

    component_code = clean(component_code).upper()
    valid_ids = {
        uid for (uid,) in db.session.query(FeatureEntry.unique_id).filter(
            FeatureEntry.component_code == component_code,
            FeatureEntry.real_clause(),
        )
    }
    if not valid_ids:
        raise NotFoundError(resource="Component", resource_id=component_code)

    answers = {}
    errors = {}
    for uid, value in (responses or {}).items():
        value = clean(value).lower()
        if not value:
            continue
        if uid not in valid_ids:
            errors[uid] = "unknown feature for this component"
        elif value not in RESPONSE_VALUES:
            errors[uid] = f"response must be one of {', '.join(RESPONSE_VALUES)}"
        else:
            answers[uid] = value
    if errors:
        raise ValidationError("Invalid responses", details=errors)

    AssessmentResponse.query.filter_by(
        assessment_id=assessment.id, component_code=component_code,
    ).delete(synchronize_session="fetch")
    for uid, value in answers.items():
        db.session.add(AssessmentResponse(
            assessment_id=assessment.id,
            component_code=component_code,
            feature_id=uid,
            response=value,
        ))
    assessment.updated_at = utcnow()
    commit_or_raise()
    logger.info("Assessment %s: saved %d responses for %s", assessment.code, len(answers), component_code)
    return {"component_code": component_code, "saved": len(answers)}


def delete_assessment(assessment_id: int) -> None:
    assessment = get_assessment(assessment_id)
    code = assessment.code
    AssessmentResponse.query.filter_by(assessment_id=assessment.id).delete(synchronize_session="fetch")
    db.session.delete(assessment)
    commit_or_raise()
    logger.info("Assessment deleted: %s", code)


# ── Walkthrough ──────────────────────────────────────────────────────────────

def component_intro(assessment_id: int, component_code: str) -> dict:
    """
    The intro step shown before a component's questions.

    Position and neighbours follow component order in the assessment's
    feature source, so legacy assessments walk their archived components.
    """
    assessment = get_assessment(assessment_id)
    groups = group_by_component(feature_source(assessment), {})
    codes = [g["component_code"] for g in groups]

    component_code = clean(component_code).upper()
    if component_code not in codes:
        raise NotFoundError(resource="Component", resource_id=component_code or None)

    index = codes.index(component_code)
    group = groups[index]
    return {
        "assessment": assessment.to_dict(),
        "component": {
            "component_code": group["component_code"],
            "component_name": group["component_name"],
            "feature_count": len(group["features"]),
        },
        "position": index + 1,
        "total": len(codes),
        "previous_component_code": codes[index - 1] if index > 0 else None,
        "next_component_code": codes[index + 1] if index + 1 < len(codes) else None,
        "description": describe_component(component_code),
    }


# ── Reporting ────────────────────────────────────────────────────────────────

def assessment_summary(assessment_id: int) -> dict:
    assessment = get_assessment(assessment_id)
    groups = group_by_component(feature_source(assessment), response_map(assessment))

    components = []
    not_assessed = []
    for g in groups:
        counts = {v: 0 for v in RESPONSE_VALUES}
        for f in g["features"]:
            if f["response"] in counts:
                counts[f["response"]] += 1
        answered = sum(counts.values())
        components.append({
            "component_code": g["component_code"],
            "component_name": g["component_name"],
            "feature_count": len(g["features"]),
            **counts,
        })
        if answered == 0:
            not_assessed.append(g["component_code"])

    return {
        "assessment": assessment.to_dict(),
        "components": components,
        "totals": {v: sum(c[v] for c in components) for v in RESPONSE_VALUES},
        "not_assessed": not_assessed,
    }


def assessment_report(assessment_id: int) -> dict:
    assessment = get_assessment(assessment_id)
    return {
        "assessment": assessment.to_dict(),
        "components": group_by_component(feature_source(assessment), response_map(assessment)),
    }


def export_assessment_csv(assessment_id: int) -> tuple[str, str]:
    """Return (filename, csv_text) for the assessment report."""
    report = assessment_report(assessment_id)
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for group in report["components"]:
        for f in group["features"]:
            writer.writerow([
                group["component_code"],
                group["component_name"],
                f["unique_id"],
                f["feature_name"],
                f.get("description") or "",
                f["response"],
            ])
    return f"assessment-{report['assessment']['code']}.csv", output.getvalue()


def list_assessments() -> list[dict]:
    current_total = FeatureEntry.query.filter(FeatureEntry.real_clause()).count()
    counts = dict(
        db.session.query(AssessmentResponse.assessment_id, db.func.count(AssessmentResponse.id))
        .group_by(AssessmentResponse.assessment_id)
        .all()
    )
    legacy_totals = {
        s.id: len(s.features) for s in LegacyFeatureSet.query.all()
    }

    items = []
    for a in Assessment.query.order_by(Assessment.updated_at.desc(), Assessment.id.desc()).all():
        answered = counts.get(a.id, 0)
        total = legacy_totals.get(a.legacy_feature_set_id, 0) if a.legacy else current_total
        items.append({
            **a.to_dict(),
            "responses_count": answered,
            "percent_complete": round(answered * 100 / total) if total else 0,
        })
    return items
