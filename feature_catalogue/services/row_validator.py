"""
Row Validator — checks one raw tabular row before ingestion.

A row is a mapping of column name → cell value (blank / None allowed).
The result is either an ``EntryDraft`` (normalised, ready for identifier
allocation) or a ``RowRejection`` carrying the per-row message reported
back to the uploader.

Rules:
  - Required non-blank: Component Code, Feature Group Name, Feature Name,
    Description, User Roles
  - Component Code must already exist; bulk rows never create components.
    Matching is case-insensitive, the stored code is upper-cased.
  - Optional: I Want..., Expected Outcomes (default ""), Service Type
    (default "Cross-cutting")
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field

from feature_catalogue.models.catalogue import DEFAULT_SERVICE_TYPE
from feature_catalogue.utils.helpers import clean, split_roles

COL_COMPONENT_CODE = "Component Code"
COL_FEATURE_GROUP_NAME = "Feature Group Name"
COL_FEATURE_NAME = "Feature Name"
COL_DESCRIPTION = "Description"
COL_USER_ROLES = "User Roles"
COL_I_WANT = "I Want..."
COL_EXPECTED_OUTCOMES = "Expected Outcomes"
COL_SERVICE_TYPE = "Service Type"

REQUIRED_COLUMNS = (
    COL_COMPONENT_CODE,
    COL_FEATURE_GROUP_NAME,
    COL_FEATURE_NAME,
    COL_DESCRIPTION,
    COL_USER_ROLES,
)
OPTIONAL_COLUMNS = (COL_I_WANT, COL_EXPECTED_OUTCOMES, COL_SERVICE_TYPE)

MISSING_FIELDS = "missing_fields"
UNKNOWN_COMPONENT = "unknown_component"


@dataclass(frozen=True)
class EntryDraft:
    """A validated row, not yet given identifiers."""

    component_code: str
    feature_group_name: str
    feature_name: str
    description: str
    as_a: str
    i_want: str = ""
    expected_outcomes: str = ""
    service_type: str = DEFAULT_SERVICE_TYPE


@dataclass(frozen=True)
class RowRejection:
    reason: str
    message: str
    details: dict = field(default_factory=dict)


def validate_row(row: Mapping, known_components: Collection[str]) -> EntryDraft | RowRejection:
    """Validate and normalise one row against the known component codes."""
    component_code = clean(row.get(COL_COMPONENT_CODE)).upper()
    group_name = clean(row.get(COL_FEATURE_GROUP_NAME))
    feature_name = clean(row.get(COL_FEATURE_NAME))
    description = clean(row.get(COL_DESCRIPTION))
    as_a = split_roles(row.get(COL_USER_ROLES))

    values = {
        COL_COMPONENT_CODE: component_code,
        COL_FEATURE_GROUP_NAME: group_name,
        COL_FEATURE_NAME: feature_name,
        COL_DESCRIPTION: description,
        COL_USER_ROLES: as_a,
    }
    missing = [col for col in REQUIRED_COLUMNS if not values[col]]
    if missing:
        return RowRejection(MISSING_FIELDS, "Missing required fields", {"missing": missing})

    if component_code not in {c.upper() for c in known_components}:
        return RowRejection(
            UNKNOWN_COMPONENT,
            f"Unknown component code: {component_code}",
            {"component_code": component_code},
        )

    return EntryDraft(
        component_code=component_code,
        feature_group_name=group_name,
        feature_name=feature_name,
        description=description,
        as_a=as_a,
        i_want=clean(row.get(COL_I_WANT)),
        expected_outcomes=clean(row.get(COL_EXPECTED_OUTCOMES)),
        service_type=clean(row.get(COL_SERVICE_TYPE)) or DEFAULT_SERVICE_TYPE,
    )
