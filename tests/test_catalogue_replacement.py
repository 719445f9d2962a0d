"""
Catalogue replacement tests.

Covers:
  - Archive content equals the real features present before replacement
  - Every active assessment flagged legacy and linked to the new set
  - Anchors for incoming components, ingestion of the new generation
  - Preconditions: empty input / missing columns perform no mutation
  - Single replace-feature-set audit entry with counts
"""

import json
import re
from datetime import datetime, timedelta

import pytest

from feature_catalogue.models import db
from feature_catalogue.models.assessment import Assessment
from feature_catalogue.models.audit import AuditLog
from feature_catalogue.models.catalogue import FeatureEntry
from feature_catalogue.models.legacy import LegacyFeatureSet
from feature_catalogue.services.bulk_ingestion_service import CatalogueUploadError
from feature_catalogue.services.catalogue_replacement_service import (
    archive_name,
    replace_catalogue,
    replacement_preview,
)


def _row(component, group, name, roles="Citizen"):
    return {
        "Component Code": component,
        "Feature Group Name": group,
        "Feature Name": name,
        "Description": f"About {name}",
        "User Roles": roles,
    }


def _make_assessment(code, legacy=False, legacy_set_id=None):
    a = Assessment(code=code, user_name="Sam", service_name="Civil", service_type="Digital",
                   legacy=legacy, legacy_feature_set_id=legacy_set_id)
    db.session.add(a)
    db.session.commit()
    return a.id


def _real_snapshot():
    rows = (
        FeatureEntry.query
        .filter(FeatureEntry.real_clause())
        .order_by(FeatureEntry.component_code, FeatureEntry.feature_group_code, FeatureEntry.feature_id)
        .all()
    )
    return [r.to_dict() for r in rows]


class TestReplaceCatalogue:
    def test_archive_equals_real_entries_before_replacement(self, catalogue):
        before = _real_snapshot()
        result = replace_catalogue([_row("NEW", "Start", "First")], actor="admin")

        legacy_set = db.session.get(LegacyFeatureSet, result["legacySetId"])
        assert legacy_set.features == before
        assert result["archivedCount"] == len(before) == 3
        assert all(f["feature_name"] != "_PLACEHOLDER_" for f in legacy_set.features)

    def test_assessments_flagged_legacy_and_linked(self, catalogue):
        first = _make_assessment("AAAAAA")
        second = _make_assessment("BBBBBB")

        result = replace_catalogue([_row("ACM", "Access", "Login")], actor="admin")

        for aid in (first, second):
            a = db.session.get(Assessment, aid)
            assert a.legacy is True
            assert a.legacy_feature_set_id == result["legacySetId"]

    def test_already_legacy_assessment_keeps_its_set(self, catalogue):
        old = replace_catalogue([_row("ACM", "Access", "Login")], actor="admin")
        aid = _make_assessment("CCCCCC", legacy=True, legacy_set_id=old["legacySetId"])

        newer = replace_catalogue([_row("ACM", "Access", "Login v2")], actor="admin")

        assert newer["legacySetId"] != old["legacySetId"]
        assert db.session.get(Assessment, aid).legacy_feature_set_id == old["legacySetId"]

    def test_new_generation_replaces_old(self, catalogue):
        result = replace_catalogue([
            _row("ACM", "Access", "Login"),
            _row("ACM", "Access", "Logout"),
            _row("NEW", "Start", "First"),
            _row("NEW", "", "Broken"),
        ], actor="admin")

        assert result["results"]["inserted"] == 3
        assert result["results"]["errors"] == [{"row": 5, "message": "Missing required fields"}]
        ids = sorted(f["unique_id"] for f in _real_snapshot())
        assert ids == ["ACM-010-001", "ACM-010-002", "NEW-010-001"]
        assert FeatureEntry.query.filter_by(component_code="FEE").count() == 0

    def test_anchors_for_incoming_components(self, catalogue):
        replace_catalogue([_row("new", "Start", "First"), _row("ACM", "Access", "Login")], actor="admin")

        anchor = db.session.get(FeatureEntry, "NEW-PLACEHOLDER")
        assert anchor is not None and anchor.is_placeholder
        assert anchor.component_name == "NEW"
        # Known components keep their previous name.
        assert db.session.get(FeatureEntry, "ACM-PLACEHOLDER").component_name == "Access Management"
        assert db.session.get(FeatureEntry, "ACM-010-001").component_name == "Access Management"

    def test_single_audit_entry_with_counts(self, catalogue):
        result = replace_catalogue([_row("ACM", "Access", "Login")], actor="carol")

        logs = AuditLog.query.all()
        assert len(logs) == 1
        log = logs[0]
        assert log.action_type == "replace-feature-set"
        assert log.entity_type == "features"
        assert log.username == "carol"
        assert log.old == {"archivedCount": 3, "legacySetId": result["legacySetId"]}
        assert log.new == {"insertedCount": 1}

    @pytest.mark.parametrize("rows", [
        [],
        [{"Component Code": "ACM", "Feature Name": "Login"}],
    ])
    def test_structural_rejection_mutates_nothing(self, catalogue, rows):
        aid = _make_assessment("DDDDDD")
        before = _real_snapshot()

        with pytest.raises(CatalogueUploadError):
            replace_catalogue(rows, actor="admin")

        assert _real_snapshot() == before
        assert LegacyFeatureSet.query.count() == 0
        assert db.session.get(Assessment, aid).legacy is False
        assert AuditLog.query.count() == 0

    def test_replacing_empty_catalogue_archives_empty_set(self):
        result = replace_catalogue([_row("ACM", "Access", "Login")], actor="admin")
        assert result["archivedCount"] == 0
        assert json.loads(db.session.get(LegacyFeatureSet, result["legacySetId"]).features_json) == []


class TestReplacementHelpers:
    def test_preview_counts(self, catalogue):
        _make_assessment("EEEEEE")
        _make_assessment("FFFFFF", legacy=True)
        assert replacement_preview() == {"feature_count": 3, "assessment_count": 1}

    def test_archive_name_is_timestamped(self):
        assert re.fullmatch(r"Feature Set \d{4}-\d{2}-\d{2} \d{2}-\d{2}-\d{2}\.\d{6}", archive_name())

    def test_archive_names_differ_within_one_second(self):
        first = datetime(2026, 2, 3, 14, 5, 9, 100)
        second = first + timedelta(microseconds=1)
        assert archive_name(first) == "Feature Set 2026-02-03 14-05-09.000100"
        assert archive_name(first) != archive_name(second)

    def test_legacy_set_is_immutable(self, catalogue):
        result = replace_catalogue([_row("ACM", "Access", "Login")], actor="admin")
        legacy_set = db.session.get(LegacyFeatureSet, result["legacySetId"])
        legacy_set.name = "renamed"
        with pytest.raises(ValueError):
            db.session.commit()
        db.session.rollback()
