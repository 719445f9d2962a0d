"""
Identifier allocator tests.

Covers:
  - Pure rules: group codes start at 010 and step by 10, feature ids step by 1
  - Reserved group 999 is never handed out
  - Database maxima ignore anchors (component anchor 999, group anchor 000)
"""

import pytest

from feature_catalogue.core.exceptions import ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.catalogue import ComponentAnchor, FeatureEntry, GroupAnchor
from feature_catalogue.services import identifier_allocator as alloc


def _make_component(code):
    db.session.add(ComponentAnchor(code, f"{code} component").to_entry())
    db.session.commit()


def _make_group_anchor(code, group, name="Empty"):
    db.session.add(GroupAnchor(code, f"{code} component", group, name).to_entry())
    db.session.commit()


def _make_feature(code, group, feature_id):
    db.session.add(FeatureEntry(
        unique_id=f"{code}-{group}-{feature_id}",
        component_code=code,
        component_name=f"{code} component",
        feature_group_code=group,
        feature_group_name="Group",
        feature_id=feature_id,
        feature_name=f"Feature {feature_id}",
    ))
    db.session.commit()


# ═════════════════════════════════════════════════════════════════════════════
# Pure rules
# ═════════════════════════════════════════════════════════════════════════════


class TestNextGroupCodeAfter:
    @pytest.mark.parametrize("current, expected", [
        (None, "010"),
        (0, "010"),
        (10, "020"),
        (20, "030"),
        (25, "030"),
        (29, "030"),
        (980, "990"),
    ])
    def test_steps_of_ten(self, current, expected):
        assert alloc.next_group_code_after(current) == expected

    def test_sequence_is_strictly_increasing_by_ten_and_skips_999(self):
        codes = []
        current = 0
        while True:
            try:
                code = alloc.next_group_code_after(current)
            except ValidationError:
                break
            codes.append(code)
            current = int(code)
        assert codes[0] == "010"
        assert codes[-1] == "990"
        assert all(int(b) - int(a) == 10 for a, b in zip(codes, codes[1:]))
        assert "999" not in codes

    def test_exhausted_component_raises(self):
        with pytest.raises(ValidationError):
            alloc.next_group_code_after(990)


class TestNextFeatureIdAfter:
    @pytest.mark.parametrize("current, expected", [
        (None, "001"),
        (0, "001"),
        (1, "002"),
        (9, "010"),
        (998, "999"),
    ])
    def test_steps_of_one(self, current, expected):
        assert alloc.next_feature_id_after(current) == expected

    def test_exhausted_group_raises(self):
        with pytest.raises(ValidationError):
            alloc.next_feature_id_after(999)


# ═════════════════════════════════════════════════════════════════════════════
# Database-backed allocation
# ═════════════════════════════════════════════════════════════════════════════


class TestDatabaseAllocation:
    def test_component_with_only_anchor_starts_at_010(self):
        _make_component("ACM")
        assert alloc.next_group_code("ACM") == "010"

    def test_unknown_component_starts_at_010(self):
        assert alloc.next_group_code("NEW") == "010"

    def test_next_group_after_existing_groups(self):
        _make_component("ACM")
        _make_feature("ACM", "010", "001")
        _make_feature("ACM", "020", "001")
        assert alloc.next_group_code("ACM") == "030"

    def test_empty_group_anchor_keeps_its_code(self):
        _make_component("ACM")
        _make_group_anchor("ACM", "010")
        assert alloc.next_group_code("ACM") == "020"

    def test_groups_are_component_scoped(self):
        _make_feature("ACM", "040", "001")
        _make_feature("FEE", "010", "001")
        assert alloc.next_group_code("FEE") == "020"

    def test_first_feature_in_group_is_001(self):
        _make_component("ACM")
        _make_group_anchor("ACM", "010")
        assert alloc.next_feature_id("ACM", "010") == "001"

    def test_feature_ids_follow_current_max(self):
        _make_feature("ACM", "010", "001")
        _make_feature("ACM", "010", "004")
        _make_feature("ACM", "020", "007")
        assert alloc.next_feature_id("ACM", "010") == "005"
        assert alloc.next_feature_id("ACM", "020") == "008"

    def test_deleted_feature_id_is_not_reused(self):
        _make_feature("ACM", "010", "001")
        _make_feature("ACM", "010", "002")
        db.session.delete(db.session.get(FeatureEntry, "ACM-010-001"))
        db.session.commit()
        assert alloc.next_feature_id("ACM", "010") == "003"
