"""
Feature Catalogue
Catalogue domain model.

Models:
    - FeatureEntry: one row of the catalogue, keyed by ``unique_id``
      (``{component_code}-{feature_group_code}-{feature_id}``).

Row variants:
    A row whose ``feature_name`` is ``_PLACEHOLDER_`` is an anchor that keeps an
    otherwise empty component or group in existence.  Code outside this module
    works with the explicit variants instead of comparing the magic string:

    - RealFeature      — a real catalogue feature
    - ComponentAnchor  — ``{code}-PLACEHOLDER``, group ``999`` / feature ``999``
    - GroupAnchor      — ``{code}-{group}-000``, feature ``000``
"""

from __future__ import annotations

from dataclasses import dataclass

from feature_catalogue.models import db

# ── Constants ────────────────────────────────────────────────────────────────

PLACEHOLDER_NAME = "_PLACEHOLDER_"

# Reserved slot for component anchors; the allocator never hands this out.
COMPONENT_ANCHOR_GROUP_CODE = "999"
COMPONENT_ANCHOR_FEATURE_ID = "999"

GROUP_ANCHOR_FEATURE_ID = "000"

DEFAULT_SERVICE_TYPE = "Cross-cutting"

CORE_USER_ROLES = [
    "Citizen",
    "Professional User",
    "Caseworker",
    "Judicial Office Holder",
    "System/System Administrator",
    "Finance Administrator",
    "Listing Officer",
    "Bailiff Administrator",
    "HMCTS",
]

# Fields an edit may change; identifier and denormalised name fields are
# owned by allocation and the rename operations.
EDITABLE_FEATURE_FIELDS = (
    "feature_name",
    "description",
    "as_a",
    "i_want",
    "expected_outcomes",
    "service_type",
)


def compose_unique_id(component_code: str, feature_group_code: str, feature_id: str) -> str:
    return f"{component_code}-{feature_group_code}-{feature_id}"


class FeatureEntry(db.Model):
    """
    One catalogue row.  ``component_name`` and ``feature_group_name`` are
    denormalised onto every row of the component / group and are kept in
    step by the rename operations in ``catalogue_service``.
    """

    __tablename__ = "features"
    __table_args__ = (
        db.UniqueConstraint(
            "component_code", "feature_group_code", "feature_id",
            name="uq_features_component_group_feature",
        ),
        db.Index("idx_features_component_group", "component_code", "feature_group_code"),
    )

    unique_id = db.Column(db.String(40), primary_key=True)
    component_code = db.Column(db.String(20), nullable=False, index=True)
    component_name = db.Column(db.String(200), nullable=False)
    feature_group_code = db.Column(db.String(3), nullable=False)
    feature_group_name = db.Column(db.String(200), nullable=True)
    feature_id = db.Column(db.String(3), nullable=False)
    feature_name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    as_a = db.Column(db.String(500), default="", comment="comma-joined role list")
    i_want = db.Column(db.Text, default="")
    expected_outcomes = db.Column(db.Text, default="")
    service_type = db.Column(db.String(100), default=DEFAULT_SERVICE_TYPE)

    # ── Variant helpers ──────────────────────────────────────────────────

    @classmethod
    def real_clause(cls):
        """SQL filter selecting real features only (no anchors)."""
        return cls.feature_name != PLACEHOLDER_NAME

    @classmethod
    def not_component_anchor_clause(cls):
        """SQL filter excluding component anchors (group anchors kept)."""
        return db.or_(
            cls.feature_name != PLACEHOLDER_NAME,
            cls.feature_group_code != COMPONENT_ANCHOR_GROUP_CODE,
        )

    @property
    def is_placeholder(self) -> bool:
        return self.feature_name == PLACEHOLDER_NAME

    @property
    def variant(self) -> RealFeature | ComponentAnchor | GroupAnchor:
        if not self.is_placeholder:
            return RealFeature(self)
        if self.feature_group_code == COMPONENT_ANCHOR_GROUP_CODE:
            return ComponentAnchor(self.component_code, self.component_name)
        return GroupAnchor(
            self.component_code,
            self.component_name,
            self.feature_group_code,
            self.feature_group_name or "",
        )

    # ── Serialisation ────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "unique_id": self.unique_id,
            "component_code": self.component_code,
            "component_name": self.component_name,
            "feature_group_code": self.feature_group_code,
            "feature_group_name": self.feature_group_name,
            "feature_id": self.feature_id,
            "feature_name": self.feature_name,
            "description": self.description,
            "as_a": self.as_a,
            "i_want": self.i_want,
            "expected_outcomes": self.expected_outcomes,
            "service_type": self.service_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> FeatureEntry:
        """Rebuild a row from a ``to_dict`` snapshot (audit ``old_data``)."""
        return cls(
            unique_id=data["unique_id"],
            component_code=data["component_code"],
            component_name=data["component_name"],
            feature_group_code=data["feature_group_code"],
            feature_group_name=data.get("feature_group_name") or "",
            feature_id=data["feature_id"],
            feature_name=data["feature_name"],
            description=data.get("description") or "",
            as_a=data.get("as_a") or "",
            i_want=data.get("i_want") or "",
            expected_outcomes=data.get("expected_outcomes") or "",
            service_type=data.get("service_type") or DEFAULT_SERVICE_TYPE,
        )

    def __repr__(self):
        return f"<FeatureEntry {self.unique_id}: {self.feature_name}>"


# ── Row variants ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RealFeature:
    """A real catalogue feature."""

    entry: FeatureEntry


@dataclass(frozen=True)
class ComponentAnchor:
    """Keeps a component with no features visible in the catalogue."""

    component_code: str
    component_name: str

    @property
    def unique_id(self) -> str:
        return f"{self.component_code}-PLACEHOLDER"

    def to_entry(self) -> FeatureEntry:
        return FeatureEntry(
            unique_id=self.unique_id,
            component_code=self.component_code,
            component_name=self.component_name,
            feature_group_code=COMPONENT_ANCHOR_GROUP_CODE,
            feature_group_name=None,
            feature_id=COMPONENT_ANCHOR_FEATURE_ID,
            feature_name=PLACEHOLDER_NAME,
            description="Placeholder for component structure",
            as_a="System",
            i_want="maintain component structure",
            expected_outcomes="the component exists in the database",
            service_type=DEFAULT_SERVICE_TYPE,
        )


@dataclass(frozen=True)
class GroupAnchor:
    """Keeps a feature group with no features visible in the catalogue."""

    component_code: str
    component_name: str
    feature_group_code: str
    feature_group_name: str

    @property
    def unique_id(self) -> str:
        return compose_unique_id(self.component_code, self.feature_group_code, GROUP_ANCHOR_FEATURE_ID)

    def to_entry(self) -> FeatureEntry:
        return FeatureEntry(
            unique_id=self.unique_id,
            component_code=self.component_code,
            component_name=self.component_name,
            feature_group_code=self.feature_group_code,
            feature_group_name=self.feature_group_name,
            feature_id=GROUP_ANCHOR_FEATURE_ID,
            feature_name=PLACEHOLDER_NAME,
            description="",
            as_a="",
            i_want="",
            expected_outcomes="",
            service_type="",
        )
