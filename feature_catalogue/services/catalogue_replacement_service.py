"""
Catalogue Replacement Service — supersede the whole catalogue generation.

Sequence (each step committed before the next starts):

  1. Archive every real feature into a new LegacyFeatureSet.
  2. Flag every non-legacy assessment as legacy and link it to that set.
     This runs before the delete: it is the only link between historical
     responses and the feature definitions they answered.
  3. Delete every catalogue row, anchors included.
  4. Insert one component anchor per component code in the incoming rows,
     so the ingestion rule "component must already exist" holds for new ones.
  5. Run the bulk ingestion pipeline over the incoming rows.
  6. Record one ``replace-feature-set`` audit entry with the counts.

Structural problems (no rows, missing columns) are rejected before step 1.
There is no rollback across steps: an interruption leaves the state of the
last committed step, and the log lines below plus the audit trail are what
an operator uses to finish or repair it by hand.
"""

import json
import logging
from collections.abc import Mapping

from sqlalchemy import or_

from feature_catalogue.models import db
from feature_catalogue.models.assessment import Assessment
from feature_catalogue.models.audit import write_audit
from feature_catalogue.models.catalogue import ComponentAnchor, FeatureEntry
from feature_catalogue.models.legacy import LegacyFeatureSet
from feature_catalogue.services.bulk_ingestion_service import check_columns, ingest_rows
from feature_catalogue.services.row_validator import COL_COMPONENT_CODE
from feature_catalogue.utils.helpers import clean, commit_or_raise, utcnow

logger = logging.getLogger(__name__)


def _active_assessments_filter():
    return or_(Assessment.legacy.is_(False), Assessment.legacy.is_(None))


def replacement_preview() -> dict:
    """What a replacement would touch right now."""
    return {
        "feature_count": FeatureEntry.query.filter(FeatureEntry.real_clause()).count(),
        "assessment_count": Assessment.query.filter(_active_assessments_filter()).count(),
    }


def archive_name(when=None) -> str:
    """``Feature Set 2026-02-03 14-05-09.123456``: the archival timestamp, filename-safe.

    Microseconds keep names distinct when two replacements land in one second.
    """
    when = when or utcnow()
    return f"Feature Set {when:%Y-%m-%d} {when:%H-%M-%S}.{when:%f}"


def _incoming_component_codes(rows: list[Mapping]) -> list[str]:
    codes = []
    for row in rows:
        code = clean(row.get(COL_COMPONENT_CODE)).upper()
        if code and code not in codes:
            codes.append(code)
    return codes


# ── Steps ────────────────────────────────────────────────────────────────────

def _archive_current_generation() -> tuple[LegacyFeatureSet, int, dict[str, str]]:
    current = (
        FeatureEntry.query
        .filter(FeatureEntry.real_clause())
        .order_by(
            FeatureEntry.component_code,
            FeatureEntry.feature_group_code,
            FeatureEntry.feature_id,
        )
        .all()
    )
    component_names = {
        code: name
        for code, name in db.session.query(FeatureEntry.component_code, FeatureEntry.component_name)
    }
    legacy_set = LegacyFeatureSet(
        name=archive_name(),
        features_json=json.dumps([f.to_dict() for f in current]),
    )
    db.session.add(legacy_set)
    commit_or_raise()
    logger.info("Replacement step 1: archived %d features as legacy set %s", len(current), legacy_set.id)
    return legacy_set, len(current), component_names


def _flag_assessments_legacy(legacy_set_id: int) -> int:
    flagged = (
        Assessment.query
        .filter(_active_assessments_filter())
        .update(
            {Assessment.legacy: True, Assessment.legacy_feature_set_id: legacy_set_id},
            synchronize_session=False,
        )
    )
    commit_or_raise()
    logger.info("Replacement step 2: flagged %d assessments legacy (set %s)", flagged, legacy_set_id)
    return flagged


def _clear_catalogue() -> int:
    deleted = FeatureEntry.query.delete(synchronize_session=False)
    commit_or_raise()
    logger.info("Replacement step 3: deleted %d catalogue rows", deleted)
    return deleted


def _anchor_components(codes: list[str], previous_names: dict[str, str]) -> None:
    for code in codes:
        db.session.add(ComponentAnchor(code, previous_names.get(code, code)).to_entry())
    commit_or_raise()
    logger.info("Replacement step 4: anchored %d components", len(codes))


# ── Coordinator ──────────────────────────────────────────────────────────────

def replace_catalogue(rows: list[Mapping], actor: str | None = None) -> dict:
    """
    Replace the active catalogue with the generation described by *rows*.

    Returns {"results": <ingestion summary>, "archivedCount": int, "legacySetId": int}.

    Raises:
        CatalogueUploadError: empty input or missing required columns (no writes).
    """
    check_columns(rows)

    legacy_set, archived_count, previous_names = _archive_current_generation()
    _flag_assessments_legacy(legacy_set.id)
    _clear_catalogue()
    _anchor_components(_incoming_component_codes(rows), previous_names)

    results = ingest_rows(rows, actor)
    logger.info("Replacement step 5: inserted %d features", results["inserted"])

    write_audit(
        action_type="replace-feature-set",
        entity_type="features",
        old_data={"archivedCount": archived_count, "legacySetId": legacy_set.id},
        new_data={"insertedCount": results["inserted"]},
        username=actor,
    )
    commit_or_raise()
    logger.info("Catalogue replaced by %s: %d archived, %d inserted",
                actor or "Unknown", archived_count, results["inserted"])

    return {
        "results": results,
        "archivedCount": archived_count,
        "legacySetId": legacy_set.id,
    }
