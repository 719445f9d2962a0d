"""
Audit trail & revert tests.

Covers:
  - write_audit validation and append-only enforcement
  - revert-edit for features and components, revert of a revert
  - revert-delete for features and components, delete again after restore
  - wrong entry type / unsupported entity type / identifier reuse
"""

import pytest

from feature_catalogue.core.exceptions import ConflictError, NotFoundError, ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.audit import AuditLog, write_audit
from feature_catalogue.models.catalogue import FeatureEntry
from feature_catalogue.services import audit_revert_service as audit
from feature_catalogue.services import catalogue_service as svc


def _last_log():
    return AuditLog.query.order_by(AuditLog.id.desc()).first()


def _feature_state(uid):
    entry = db.session.get(FeatureEntry, uid)
    return entry.to_dict() if entry else None


# ═════════════════════════════════════════════════════════════════════════════
# Audit model
# ═════════════════════════════════════════════════════════════════════════════


class TestAuditLog:
    def test_write_audit_serialises_snapshots(self):
        log = write_audit(action_type="edit", entity_type="feature", entity_id="X-010-001",
                          old_data={"a": 1}, new_data={"a": 2}, username="alice")
        db.session.commit()
        d = log.to_dict()
        assert d["old_data"] == {"a": 1}
        assert d["new_data"] == {"a": 2}
        assert d["username"] == "alice"

    def test_missing_actor_recorded_as_unknown(self):
        log = write_audit(action_type="create", entity_type="component", entity_id="X")
        db.session.commit()
        assert log.username == "Unknown"

    @pytest.mark.parametrize("action, entity", [("revert", "feature"), ("edit", "tenant")])
    def test_unknown_action_or_entity_rejected(self, action, entity):
        with pytest.raises(ValueError):
            write_audit(action_type=action, entity_type=entity)

    def test_entries_are_append_only(self):
        log = write_audit(action_type="create", entity_type="component", entity_id="X")
        db.session.commit()
        log.username = "mallory"
        with pytest.raises(ValueError):
            db.session.commit()
        db.session.rollback()

    def test_list_is_newest_first_and_filterable(self, catalogue):
        svc.rename_component("ACM", "Identity", actor="alice")
        svc.delete_feature("FEE-010-001", actor="bob")

        listing = audit.list_audit_logs()
        assert listing["total"] == 2
        assert [l["action_type"] for l in listing["audit_logs"]] == ["delete", "edit"]
        assert audit.list_audit_logs(username="alice")["total"] == 1
        assert audit.list_audit_logs(entity_type="feature")["audit_logs"][0]["entity_id"] == "FEE-010-001"


# ═════════════════════════════════════════════════════════════════════════════
# Revert edit
# ═════════════════════════════════════════════════════════════════════════════


class TestRevertEdit:
    def test_restores_feature_and_logs_swapped_edit(self, catalogue):
        before = _feature_state("FEE-010-002")
        svc.update_feature("FEE-010-002", {"feature_name": "Refunds", "description": "new"}, actor="bob")
        edit_log = _last_log()

        audit.revert_edit(edit_log.id, actor="carol")

        assert _feature_state("FEE-010-002") == before
        revert_log = _last_log()
        assert revert_log.id != edit_log.id
        assert revert_log.action_type == "edit"
        assert revert_log.username == "carol"
        assert revert_log.old == edit_log.new
        assert revert_log.new == edit_log.old

    def test_revert_of_revert_restores_post_edit_state(self, catalogue):
        svc.update_feature("FEE-010-001", {"feature_name": "Pay", "description": "edited"})
        after_edit = _feature_state("FEE-010-001")
        edit_log = _last_log()

        audit.revert_edit(edit_log.id)
        audit.revert_edit(_last_log().id)

        assert _feature_state("FEE-010-001") == after_edit
        assert AuditLog.query.filter_by(action_type="edit").count() == 3

    def test_component_rename_reverted_everywhere(self, catalogue):
        svc.rename_component("ACM", "Identity")
        audit.revert_edit(_last_log().id)

        names = {r.component_name for r in FeatureEntry.query.filter_by(component_code="ACM")}
        assert names == {"Access Management"}

    def test_past_entries_untouched(self, catalogue):
        svc.update_feature("FEE-010-001", {"feature_name": "Pay", "description": "edited"})
        edit_log = _last_log()
        snapshot = (edit_log.old_data, edit_log.new_data, edit_log.username)

        audit.revert_edit(edit_log.id)

        db.session.expire_all()
        again = db.session.get(AuditLog, edit_log.id)
        assert (again.old_data, again.new_data, again.username) == snapshot

    def test_wrong_action_type_is_not_found(self, catalogue):
        svc.delete_feature("FEE-010-001")
        with pytest.raises(NotFoundError):
            audit.revert_edit(_last_log().id)

    def test_missing_entry_is_not_found(self):
        with pytest.raises(NotFoundError):
            audit.revert_edit(9999)

    def test_feature_group_edit_not_revertible(self, catalogue):
        svc.rename_feature_group("FEE", "010", "Payments")
        with pytest.raises(ValidationError):
            audit.revert_edit(_last_log().id)

    def test_feature_gone_since_edit(self, catalogue):
        svc.update_feature("FEE-010-001", {"feature_name": "Pay", "description": "edited"})
        edit_id = _last_log().id
        svc.delete_feature("FEE-010-001")
        with pytest.raises(NotFoundError):
            audit.revert_edit(edit_id)


# ═════════════════════════════════════════════════════════════════════════════
# Revert delete
# ═════════════════════════════════════════════════════════════════════════════


class TestRevertDelete:
    def test_deleted_feature_reappears_identically(self, catalogue):
        before = _feature_state("FEE-010-002")
        svc.delete_feature("FEE-010-002", actor="bob")
        delete_log = _last_log()

        audit.revert_delete(delete_log.id, actor="carol")

        assert _feature_state("FEE-010-002") == before
        create_log = _last_log()
        assert create_log.action_type == "create"
        assert create_log.entity_id == "FEE-010-002"
        assert create_log.new == delete_log.old
        assert AuditLog.query.count() == 2

    def test_delete_again_reproduces_identical_state(self, catalogue):
        svc.delete_feature("FEE-010-002")
        first_delete = _last_log()
        audit.revert_delete(first_delete.id)

        svc.delete_feature("FEE-010-002")
        second_delete = _last_log()

        assert second_delete.old == first_delete.old

    def test_restored_feature_takes_current_names(self, catalogue):
        svc.delete_feature("FEE-010-002")
        delete_id = _last_log().id
        svc.rename_component("FEE", "Fees and Payments")
        svc.rename_feature_group("FEE", "010", "Payments")

        restored = audit.revert_delete(delete_id)

        rows = FeatureEntry.query.filter_by(component_code="FEE").all()
        assert {(r.component_name, r.feature_group_name) for r in rows} == {("Fees and Payments", "Payments")}
        assert (restored["component_name"], restored["feature_group_name"]) == ("Fees and Payments", "Payments")
        assert _last_log().new["feature_group_name"] == "Payments"
        assert _feature_state("FEE-010-002")["i_want"] == "to get a refund"

    def test_component_restored_as_anchor(self, catalogue):
        svc.delete_component("FEE")
        audit.revert_delete(_last_log().id)

        rows = FeatureEntry.query.filter_by(component_code="FEE").all()
        assert [r.unique_id for r in rows] == ["FEE-PLACEHOLDER"]
        assert rows[0].component_name == "Fees"

    def test_identifier_taken_again_conflicts(self, catalogue):
        svc.delete_feature("FEE-010-002")
        delete_id = _last_log().id
        svc.create_feature({
            "component_code": "FEE", "feature_group_code": "010",
            "feature_name": "Reused", "description": "d",
        })
        with pytest.raises(ConflictError):
            audit.revert_delete(delete_id)

    def test_wrong_action_type_is_not_found(self, catalogue):
        svc.update_feature("FEE-010-001", {"feature_name": "Pay", "description": "edited"})
        with pytest.raises(NotFoundError):
            audit.revert_delete(_last_log().id)

    def test_feature_group_delete_not_revertible(self, catalogue):
        svc.delete_feature_group("FEE", "010")
        with pytest.raises(ValidationError):
            audit.revert_delete(_last_log().id)
