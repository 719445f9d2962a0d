"""
Legacy Feature Service — read-only access to archived catalogue generations.
"""

from feature_catalogue.core.exceptions import NotFoundError, ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.assessment import Assessment
from feature_catalogue.models.legacy import LegacyFeatureSet
from feature_catalogue.services.assessment_service import (
    get_assessment,
    group_by_component,
    response_map,
)


def list_legacy_sets() -> list[dict]:
    sets = LegacyFeatureSet.query.order_by(
        LegacyFeatureSet.created_at.desc(), LegacyFeatureSet.id.desc(),
    ).all()
    return [s.to_dict() for s in sets]


def get_legacy_set(legacy_set_id: int) -> dict:
    legacy_set = db.session.get(LegacyFeatureSet, legacy_set_id)
    if legacy_set is None:
        raise NotFoundError(resource="Legacy feature set", resource_id=legacy_set_id)

    assessments = legacy_set.assessments.order_by(Assessment.created_at.desc()).all()
    return {
        **legacy_set.to_dict(),
        "components": group_by_component(legacy_set.features, {}),
        "assessments": [a.to_dict() for a in assessments],
    }


def legacy_assessment_view(assessment_id: int) -> dict:
    """A legacy assessment's responses laid over the features it answered."""
    assessment = get_assessment(assessment_id)
    if not assessment.legacy:
        raise ValidationError("Assessment is not legacy", details={"code": assessment.code})

    legacy_set = (
        db.session.get(LegacyFeatureSet, assessment.legacy_feature_set_id)
        if assessment.legacy_feature_set_id else None
    )
    if legacy_set is None:
        raise NotFoundError(resource="Legacy feature set", resource_id=assessment.legacy_feature_set_id)

    return {
        "assessment": assessment.to_dict(),
        "legacy_set": legacy_set.to_dict(),
        "components": group_by_component(legacy_set.features, response_map(assessment)),
    }
