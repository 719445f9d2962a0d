"""
Catalogue service tests — admin CRUD, rename propagation, browsing.
"""

import pytest

from feature_catalogue.core.exceptions import ConflictError, NotFoundError, ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.audit import AuditLog
from feature_catalogue.models.catalogue import ComponentAnchor, FeatureEntry, GroupAnchor, RealFeature
from feature_catalogue.services import catalogue_service as svc


def _logs(action=None):
    q = AuditLog.query.order_by(AuditLog.id)
    if action:
        q = q.filter_by(action_type=action)
    return q.all()


# ═════════════════════════════════════════════════════════════════════════════
# Components
# ═════════════════════════════════════════════════════════════════════════════


class TestComponents:
    def test_create_component_inserts_anchor_and_audits(self):
        result = svc.create_component("hrg", "Hearings", actor="alice")

        assert result == {"component_code": "HRG", "component_name": "Hearings"}
        anchor = db.session.get(FeatureEntry, "HRG-PLACEHOLDER")
        assert anchor.feature_group_code == "999"
        assert anchor.feature_id == "999"
        log = _logs("create")[0]
        assert (log.entity_type, log.entity_id, log.username) == ("component", "HRG", "alice")

    def test_create_duplicate_component_conflicts(self, catalogue):
        with pytest.raises(ConflictError):
            svc.create_component("ACM", "Again")

    @pytest.mark.parametrize("code, name", [("", "Name"), ("ABC", "  "), ("A-B", "Name")])
    def test_create_component_validation(self, code, name):
        with pytest.raises(ValidationError):
            svc.create_component(code, name)
        assert AuditLog.query.count() == 0

    def test_rename_propagates_to_every_row(self, catalogue):
        svc.create_feature_group("ACM", "Empty group")
        svc.rename_component("ACM", "Identity", actor="bob")

        names = {r.component_name for r in FeatureEntry.query.filter_by(component_code="ACM")}
        assert names == {"Identity"}
        log = _logs("edit")[0]
        assert log.old == {"component_code": "ACM", "component_name": "Access Management"}
        assert log.new == {"component_code": "ACM", "component_name": "Identity"}

    def test_rename_missing_component(self):
        with pytest.raises(NotFoundError):
            svc.rename_component("NOPE", "Name")

    def test_delete_component_removes_all_rows(self, catalogue):
        old = svc.delete_component("FEE", actor="bob")

        assert old == {"component_code": "FEE", "component_name": "Fees"}
        assert FeatureEntry.query.filter_by(component_code="FEE").count() == 0
        assert _logs("delete")[0].old == old

    def test_list_components_counts_real_features(self, catalogue):
        svc.create_component("EMP", "Empty")
        comps = {c["component_code"]: c["feature_count"] for c in svc.list_components()}
        assert comps == {"ACM": 1, "EMP": 0, "FEE": 2}

    def test_get_component(self, catalogue):
        comp = svc.get_component("FEE")
        assert comp["component_name"] == "Fees"
        assert [f["unique_id"] for f in comp["features"]] == ["FEE-010-001", "FEE-010-002"]


# ═════════════════════════════════════════════════════════════════════════════
# Feature groups
# ═════════════════════════════════════════════════════════════════════════════


class TestFeatureGroups:
    def test_create_group_allocates_next_code_with_anchor(self, catalogue):
        result = svc.create_feature_group("ACM", "Audit", actor="alice")

        assert result["feature_group_code"] == "020"
        anchor = db.session.get(FeatureEntry, "ACM-020-000")
        assert anchor.is_placeholder
        assert anchor.component_name == "Access Management"

    def test_successive_groups_step_by_ten(self):
        svc.create_component("NEW", "New")
        codes = [svc.create_feature_group("NEW", f"G{i}")["feature_group_code"] for i in range(3)]
        assert codes == ["010", "020", "030"]

    def test_empty_group_listed_with_zero_features(self, catalogue):
        svc.create_feature_group("ACM", "Audit")
        groups = {g["feature_group_code"]: g["feature_count"] for g in svc.list_feature_groups("ACM")}
        assert groups == {"010": 1, "020": 0}

    def test_rename_group_propagates(self, catalogue):
        svc.rename_feature_group("FEE", "010", "Payments", actor="bob")
        names = {r.feature_group_name for r in FeatureEntry.query.filter_by(component_code="FEE")}
        assert names == {"Payments"}

    def test_delete_group_captures_rows(self, catalogue):
        old = svc.delete_feature_group("FEE", "010")
        assert [r["unique_id"] for r in old] == ["FEE-010-001", "FEE-010-002"]
        assert FeatureEntry.query.filter_by(component_code="FEE").count() == 0

    def test_reserved_group_is_not_a_group(self, catalogue):
        with pytest.raises(NotFoundError):
            svc.delete_feature_group("ACM", "999")

    def test_group_in_unknown_component(self):
        with pytest.raises(NotFoundError):
            svc.create_feature_group("NOPE", "Group")


# ═════════════════════════════════════════════════════════════════════════════
# Features
# ═════════════════════════════════════════════════════════════════════════════


class TestFeatures:
    def test_create_in_existing_group(self, catalogue):
        entry = svc.create_feature({
            "component_code": "FEE",
            "feature_group_code": "010",
            "feature_name": "Fee remission",
            "description": "Apply for help with fees",
            "user_roles": ["Citizen", "Caseworker"],
        }, actor="alice")

        assert entry.unique_id == "FEE-010-003"
        assert entry.feature_group_name == "Fees"
        assert entry.as_a == "Citizen, Caseworker"
        assert entry.service_type == "Cross-cutting"
        assert _logs("create")[0].new["unique_id"] == "FEE-010-003"

    def test_create_in_new_group(self, catalogue):
        entry = svc.create_feature({
            "component_code": "ACM",
            "group_mode": "new",
            "new_group_name": "Audit",
            "feature_name": "Audit trail",
            "description": "d",
        })
        assert entry.unique_id == "ACM-020-001"
        assert entry.feature_group_name == "Audit"

    def test_first_feature_in_anchored_group_is_001(self, catalogue):
        svc.create_feature_group("ACM", "Audit")
        entry = svc.create_feature({
            "component_code": "ACM", "feature_group_code": "020",
            "feature_name": "Trail", "description": "d",
        })
        assert entry.unique_id == "ACM-020-001"

    def test_create_requires_name_and_description(self, catalogue):
        with pytest.raises(ValidationError):
            svc.create_feature({"component_code": "FEE", "feature_group_code": "010", "feature_name": "x"})

    def test_create_in_missing_group(self, catalogue):
        with pytest.raises(NotFoundError):
            svc.create_feature({
                "component_code": "FEE", "feature_group_code": "090",
                "feature_name": "x", "description": "d",
            })

    def test_update_changes_only_editable_fields(self, catalogue):
        entry = svc.update_feature("FEE-010-001", {
            "feature_name": "Pay a fee",
            "description": "Card payments",
            "unique_id": "HACK-1",
            "component_name": "Hacked",
        }, actor="bob")

        assert entry.unique_id == "FEE-010-001"
        assert entry.component_name == "Fees"
        assert entry.feature_name == "Pay a fee"
        log = _logs("edit")[0]
        assert log.old["feature_name"] == "Pay fee"
        assert log.new["feature_name"] == "Pay a fee"

    def test_update_placeholder_is_not_found(self, catalogue):
        with pytest.raises(NotFoundError):
            svc.update_feature("ACM-PLACEHOLDER", {"feature_name": "x", "description": "y"})

    def test_delete_feature_captures_full_row(self, catalogue):
        old = svc.delete_feature("FEE-010-002", actor="bob")
        assert old["i_want"] == "to get a refund"
        assert db.session.get(FeatureEntry, "FEE-010-002") is None
        assert _logs("delete")[0].old == old

    def test_deleting_highest_id_frees_it(self, catalogue):
        svc.delete_feature("FEE-010-002")
        entry = svc.create_feature({
            "component_code": "FEE", "feature_group_code": "010",
            "feature_name": "Again", "description": "d",
        })
        assert entry.unique_id == "FEE-010-002"

    def test_failed_mutation_leaves_no_audit_row(self, catalogue):
        with pytest.raises(NotFoundError):
            svc.delete_feature("FEE-010-999")
        assert AuditLog.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# Browsing
# ═════════════════════════════════════════════════════════════════════════════


class TestBrowsing:
    def test_search_excludes_anchors(self, catalogue):
        svc.create_feature_group("ACM", "Audit")
        result = svc.search_features()
        assert result["total"] == 3
        assert all(f["feature_name"] != "_PLACEHOLDER_" for f in result["items"])

    def test_search_filters(self, catalogue):
        assert svc.search_features(q="refund")["total"] == 1
        assert svc.search_features(component="FEE")["total"] == 2
        assert svc.search_features(role="Caseworker")["total"] == 1
        assert svc.search_features(service_type="Public")["total"] == 0

    def test_search_pagination(self, catalogue):
        page = svc.search_features(page=2, page_size=2)
        assert page["pages"] == 2
        assert [f["unique_id"] for f in page["items"]] == ["FEE-010-002"]

    def test_compare_two_to_five(self, catalogue):
        result = svc.compare_features(["FEE-010-001", "ACM-010-001", "FEE-010-001"])
        assert result["errors"] == []
        assert [f["unique_id"] for f in result["items"]] == ["ACM-010-001", "FEE-010-001"]

    def test_compare_reports_problems(self, catalogue):
        assert svc.compare_features(["ACM-010-001"])["errors"]
        result = svc.compare_features(["ACM-010-001", "ACM-PLACEHOLDER"])
        assert result["errors"] == ["One or more selected features could not be found."]

    def test_stats(self, catalogue):
        svc.create_component("EMP", "Empty")
        stats = svc.catalogue_stats()
        assert stats["total_features"] == 3
        assert stats["total_feature_groups"] == 2
        assert [c["component_code"] for c in stats["components"]] == ["ACM", "FEE"]

    def test_facets(self, catalogue):
        facets = svc.search_facets()
        assert facets["roles"] == ["Citizen", "Caseworker"]
        assert facets["service_types"] == ["Cross-cutting"]

    def test_next_codes_preview(self, catalogue):
        assert svc.next_codes("FEE", "010") == {
            "component_code": "FEE",
            "next_group_code": "020",
            "feature_group_code": "010",
            "next_feature_id": "003",
        }


# ═════════════════════════════════════════════════════════════════════════════
# Row variants
# ═════════════════════════════════════════════════════════════════════════════


class TestRowVariants:
    def test_each_stored_row_maps_to_its_variant(self, catalogue):
        svc.create_feature_group("ACM", "Audit")

        component = db.session.get(FeatureEntry, "ACM-PLACEHOLDER").variant
        group = db.session.get(FeatureEntry, "ACM-020-000").variant
        real = db.session.get(FeatureEntry, "ACM-010-001").variant

        assert component == ComponentAnchor("ACM", "Access Management")
        assert group == GroupAnchor("ACM", "Access Management", "020", "Audit")
        assert isinstance(real, RealFeature)
        assert real.entry.feature_name == "Login"

    def test_anchor_round_trips_through_storage_shape(self):
        entry = GroupAnchor("NEW", "New", "010", "Start").to_entry()
        assert entry.unique_id == "NEW-010-000"
        assert entry.feature_name == "_PLACEHOLDER_"
        assert entry.variant == GroupAnchor("NEW", "New", "010", "Start")
