"""
Catalogue Identifier Allocator

Allocates the next code in the three-level hierarchy:

  - Feature groups:  3-digit, component-scoped, steps of 10   (010, 020, 030 …)
  - Features:        3-digit, group-scoped, steps of 1         (001, 002, 003 …)

Allocation is monotonic: the next code is derived from the current maximum,
so gaps below the maximum are never reused.  Group ``999`` is reserved for
component anchors and is never handed out.

The ``*_after`` functions are pure and are shared with the bulk ingestion
pipeline, which keeps its own per-call maxima.  ``next_group_code`` and
``next_feature_id`` re-read the maximum from the database on every call;
a collision between two writers surfaces as an IntegrityError on insert
(``unique_id`` and the component/group/feature constraint), which callers
turn into a retry or a ConflictError.
"""

from sqlalchemy import Integer, cast, func, select

from feature_catalogue.core.exceptions import ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.catalogue import COMPONENT_ANCHOR_GROUP_CODE, FeatureEntry
from feature_catalogue.utils.helpers import pad_code

GROUP_CODE_STEP = 10
MAX_CODE = 999
_RESERVED_GROUP = int(COMPONENT_ANCHOR_GROUP_CODE)


# ── Pure allocation rules ────────────────────────────────────────────────────

def next_group_code_after(current_max: int | None) -> str:
    """Next group code after *current_max*: ``ceil((max + 1) / 10) * 10``.

    >>> next_group_code_after(0)
    '010'
    >>> next_group_code_after(20)
    '030'
    >>> next_group_code_after(25)
    '030'
    """
    current = current_max or 0
    nxt = -(-(current + 1) // GROUP_CODE_STEP) * GROUP_CODE_STEP
    if nxt >= _RESERVED_GROUP:
        raise ValidationError(
            "No feature group codes left in this component",
            details={"current_max": pad_code(current)},
        )
    return pad_code(nxt)


def next_feature_id_after(current_max: int | None) -> str:
    """Next feature id after *current_max*: ``max + 1``, starting at ``001``."""
    nxt = (current_max or 0) + 1
    if nxt > MAX_CODE:
        raise ValidationError(
            "No feature ids left in this feature group",
            details={"current_max": pad_code(nxt - 1)},
        )
    return pad_code(nxt)


# ── Database-backed maxima ───────────────────────────────────────────────────

def current_max_group_code(component_code: str) -> int:
    """Highest allocated group code in the component.

    Group anchors count (they own their code); the component anchor's
    reserved ``999`` slot does not.
    """
    stmt = (
        select(func.max(cast(FeatureEntry.feature_group_code, Integer)))
        .where(
            FeatureEntry.component_code == component_code,
            FeatureEntry.not_component_anchor_clause(),
        )
    )
    return db.session.execute(stmt).scalar() or 0


def current_max_feature_id(component_code: str, feature_group_code: str) -> int:
    """Highest real feature id in the group; anchors are ignored."""
    stmt = (
        select(func.max(cast(FeatureEntry.feature_id, Integer)))
        .where(
            FeatureEntry.component_code == component_code,
            FeatureEntry.feature_group_code == feature_group_code,
            FeatureEntry.real_clause(),
        )
    )
    return db.session.execute(stmt).scalar() or 0


def next_group_code(component_code: str) -> str:
    """Next free group code for *component_code* (``"010"`` when it has none)."""
    return next_group_code_after(current_max_group_code(component_code))


def next_feature_id(component_code: str, feature_group_code: str) -> str:
    """Next free feature id within the group (``"001"`` when it has none)."""
    return next_feature_id_after(current_max_feature_id(component_code, feature_group_code))
