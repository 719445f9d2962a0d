"""
Catalogue Service — components, feature groups and features.

Every mutation follows the same shape:

    capture the before-state (edit / delete)
    → apply the change
    → write_audit(...)            (flushed in the same transaction)
    → commit_or_raise()

so an audit row exists only for a mutation that actually committed.

``component_name`` and ``feature_group_name`` are copied onto every row of
their component / group.  ``propagate_component_name`` and
``propagate_group_name`` are the only code paths that change them.
"""

import logging
import re

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError

from feature_catalogue.core.exceptions import ConflictError, NotFoundError, ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.assessment import Assessment
from feature_catalogue.models.audit import write_audit
from feature_catalogue.models.catalogue import (
    COMPONENT_ANCHOR_GROUP_CODE,
    CORE_USER_ROLES,
    DEFAULT_SERVICE_TYPE,
    EDITABLE_FEATURE_FIELDS,
    ComponentAnchor,
    FeatureEntry,
    GroupAnchor,
    compose_unique_id,
)
from feature_catalogue.services import identifier_allocator
from feature_catalogue.utils.helpers import clean, commit_or_raise, split_roles

logger = logging.getLogger(__name__)

ALLOCATION_RETRIES = 3
SEARCH_PAGE_SIZE = 20
COMPARE_MAX = 5

_COMPONENT_CODE_RE = re.compile(r"^[A-Z0-9]{1,20}$")


def _real_count():
    return func.sum(case((FeatureEntry.real_clause(), 1), else_=0))


# ═════════════════════════════════════════════════════════════════════════════
# Rename propagation
# ═════════════════════════════════════════════════════════════════════════════


def propagate_component_name(component_code: str, component_name: str) -> int:
    """Set ``component_name`` on every row of the component. No commit."""
    updated = (
        FeatureEntry.query
        .filter(FeatureEntry.component_code == component_code)
        .update({FeatureEntry.component_name: component_name}, synchronize_session="fetch")
    )
    logger.debug("Component %s renamed on %d rows", component_code, updated)
    return updated


def propagate_group_name(component_code: str, feature_group_code: str, group_name: str) -> int:
    """Set ``feature_group_name`` on every row of the group. No commit."""
    updated = (
        FeatureEntry.query
        .filter(
            FeatureEntry.component_code == component_code,
            FeatureEntry.feature_group_code == feature_group_code,
        )
        .update({FeatureEntry.feature_group_name: group_name}, synchronize_session="fetch")
    )
    logger.debug("Group %s-%s renamed on %d rows", component_code, feature_group_code, updated)
    return updated


# ═════════════════════════════════════════════════════════════════════════════
# Components
# ═════════════════════════════════════════════════════════════════════════════


def _component_snapshot(component_code: str) -> dict | None:
    row = (
        FeatureEntry.query
        .filter(FeatureEntry.component_code == component_code)
        .order_by(FeatureEntry.unique_id)
        .first()
    )
    if row is None:
        return None
    return {"component_code": row.component_code, "component_name": row.component_name}


def list_components() -> list[dict]:
    """Every existing component with its real-feature count."""
    rows = db.session.execute(
        select(
            FeatureEntry.component_code,
            func.max(FeatureEntry.component_name),
            _real_count(),
        )
        .group_by(FeatureEntry.component_code)
        .order_by(FeatureEntry.component_code)
    ).all()
    return [
        {"component_code": code, "component_name": name, "feature_count": int(count or 0)}
        for code, name, count in rows
    ]


def get_component(component_code: str) -> dict:
    """Component header plus its real features in catalogue order."""
    snapshot = _component_snapshot(component_code)
    if snapshot is None:
        raise NotFoundError(resource="Component", resource_id=component_code)
    features = list_features(component_code)
    return {**snapshot, "feature_count": len(features), "features": features}


def create_component(component_code: str, component_name: str, actor: str | None = None) -> dict:
    code = clean(component_code).upper()
    name = clean(component_name)
    if not code or not name:
        raise ValidationError(
            "All fields are required",
            details={"component_code": "required" if not code else None,
                     "component_name": "required" if not name else None},
        )
    if not _COMPONENT_CODE_RE.match(code):
        raise ValidationError("Component code must be 1-20 letters or digits")
    if _component_snapshot(code) is not None:
        raise ConflictError(resource="Component", field="component_code", value=code)

    db.session.add(ComponentAnchor(code, name).to_entry())
    new_data = {"component_code": code, "component_name": name}
    write_audit(action_type="create", entity_type="component", entity_id=code,
                new_data=new_data, username=actor)
    commit_or_raise()
    logger.info("Component created: %s", code)
    return new_data


def rename_component(component_code: str, component_name: str, actor: str | None = None) -> dict:
    name = clean(component_name)
    if not name:
        raise ValidationError("Component name is required")
    old_data = _component_snapshot(component_code)
    if old_data is None:
        raise NotFoundError(resource="Component", resource_id=component_code)

    propagate_component_name(component_code, name)
    new_data = {"component_code": component_code, "component_name": name}
    write_audit(action_type="edit", entity_type="component", entity_id=component_code,
                old_data=old_data, new_data=new_data, username=actor)
    commit_or_raise()
    logger.info("Component renamed: %s", component_code)
    return new_data


def delete_component(component_code: str, actor: str | None = None) -> dict:
    old_data = _component_snapshot(component_code)
    if old_data is None:
        raise NotFoundError(resource="Component", resource_id=component_code)

    deleted = (
        FeatureEntry.query
        .filter(FeatureEntry.component_code == component_code)
        .delete(synchronize_session="fetch")
    )
    write_audit(action_type="delete", entity_type="component", entity_id=component_code,
                old_data=old_data, username=actor)
    commit_or_raise()
    logger.info("Component deleted: %s (%d rows)", component_code, deleted)
    return old_data


# ═════════════════════════════════════════════════════════════════════════════
# Feature groups
# ═════════════════════════════════════════════════════════════════════════════


def _group_row(component_code: str, feature_group_code: str) -> FeatureEntry | None:
    if feature_group_code == COMPONENT_ANCHOR_GROUP_CODE:
        return None
    return (
        FeatureEntry.query
        .filter(
            FeatureEntry.component_code == component_code,
            FeatureEntry.feature_group_code == feature_group_code,
        )
        .order_by(FeatureEntry.feature_id.desc())
        .first()
    )


def list_feature_groups(component_code: str | None = None) -> list[dict]:
    """Feature groups with real-feature counts; empty (anchored) groups report 0."""
    stmt = (
        select(
            FeatureEntry.component_code,
            func.max(FeatureEntry.component_name),
            FeatureEntry.feature_group_code,
            func.max(FeatureEntry.feature_group_name),
            _real_count(),
        )
        .where(FeatureEntry.not_component_anchor_clause())
        .group_by(FeatureEntry.component_code, FeatureEntry.feature_group_code)
        .order_by(FeatureEntry.component_code, FeatureEntry.feature_group_code)
    )
    if component_code:
        stmt = stmt.where(FeatureEntry.component_code == component_code)
    return [
        {
            "component_code": code,
            "component_name": comp_name,
            "feature_group_code": group_code,
            "feature_group_name": group_name or "",
            "feature_count": int(count or 0),
        }
        for code, comp_name, group_code, group_name, count in db.session.execute(stmt).all()
    ]


def get_feature_group(component_code: str, feature_group_code: str) -> dict:
    row = _group_row(component_code, feature_group_code)
    if row is None:
        raise NotFoundError(resource="Feature group", resource_id=f"{component_code}-{feature_group_code}")
    count = (
        FeatureEntry.query
        .filter(
            FeatureEntry.component_code == component_code,
            FeatureEntry.feature_group_code == feature_group_code,
            FeatureEntry.real_clause(),
        )
        .count()
    )
    return {
        "component_code": row.component_code,
        "component_name": row.component_name,
        "feature_group_code": row.feature_group_code,
        "feature_group_name": row.feature_group_name or "",
        "feature_count": count,
    }


def create_feature_group(component_code: str, feature_group_name: str, actor: str | None = None) -> dict:
    name = clean(feature_group_name)
    if not component_code or not name:
        raise ValidationError("Component and feature group name are required")
    component = _component_snapshot(component_code)
    if component is None:
        raise NotFoundError(resource="Component", resource_id=component_code)

    for attempt in range(1, ALLOCATION_RETRIES + 1):
        group_code = identifier_allocator.next_group_code(component_code)
        anchor = GroupAnchor(component_code, component["component_name"], group_code, name)
        db.session.add(anchor.to_entry())
        try:
            db.session.flush()
            break
        except IntegrityError:
            db.session.rollback()
            logger.warning("Group code %s-%s taken (attempt %d)", component_code, group_code, attempt)
    else:
        raise ConflictError(resource="Feature group", field="feature_group_code", value=group_code)

    new_data = {
        "component_code": component_code,
        "feature_group_code": group_code,
        "feature_group_name": name,
    }
    write_audit(action_type="create", entity_type="feature_group",
                entity_id=f"{component_code}-{group_code}", new_data=new_data, username=actor)
    commit_or_raise()
    logger.info("Feature group created: %s-%s", component_code, group_code)
    return new_data


def rename_feature_group(component_code: str, feature_group_code: str, feature_group_name: str,
                         actor: str | None = None) -> dict:
    name = clean(feature_group_name)
    if not name:
        raise ValidationError("Feature group name is required")
    row = _group_row(component_code, feature_group_code)
    if row is None:
        raise NotFoundError(resource="Feature group", resource_id=f"{component_code}-{feature_group_code}")

    old_data = {"feature_group_name": row.feature_group_name or ""}
    propagate_group_name(component_code, feature_group_code, name)
    new_data = {"feature_group_name": name}
    write_audit(action_type="edit", entity_type="feature_group",
                entity_id=f"{component_code}-{feature_group_code}",
                old_data=old_data, new_data=new_data, username=actor)
    commit_or_raise()
    return {"component_code": component_code, "feature_group_code": feature_group_code, **new_data}


def delete_feature_group(component_code: str, feature_group_code: str, actor: str | None = None) -> list[dict]:
    rows = (
        FeatureEntry.query
        .filter(
            FeatureEntry.component_code == component_code,
            FeatureEntry.feature_group_code == feature_group_code,
        )
        .order_by(FeatureEntry.feature_id)
        .all()
    )
    if not rows or feature_group_code == COMPONENT_ANCHOR_GROUP_CODE:
        raise NotFoundError(resource="Feature group", resource_id=f"{component_code}-{feature_group_code}")

    old_data = [r.to_dict() for r in rows]
    for r in rows:
        db.session.delete(r)
    write_audit(action_type="delete", entity_type="feature_group",
                entity_id=f"{component_code}-{feature_group_code}",
                old_data=old_data, username=actor)
    commit_or_raise()
    logger.info("Feature group deleted: %s-%s (%d rows)", component_code, feature_group_code, len(rows))
    return old_data


# ═════════════════════════════════════════════════════════════════════════════
# Features
# ═════════════════════════════════════════════════════════════════════════════


def get_feature(unique_id: str) -> FeatureEntry:
    entry = db.session.get(FeatureEntry, unique_id)
    if entry is None:
        raise NotFoundError(resource="Feature", resource_id=unique_id)
    return entry


def list_features(component_code: str | None = None) -> list[dict]:
    q = FeatureEntry.query.filter(FeatureEntry.real_clause())
    if component_code:
        q = q.filter(FeatureEntry.component_code == component_code)
    q = q.order_by(FeatureEntry.component_code, FeatureEntry.feature_group_code, FeatureEntry.feature_id)
    return [f.to_dict() for f in q.all()]


def _editable_values(data: dict, current: dict | None = None) -> dict:
    """Normalise the editable fields of *data*, falling back to *current*."""
    current = current or {}
    values = {}
    for field in EDITABLE_FEATURE_FIELDS:
        if field == "as_a" and "user_roles" in data:
            values["as_a"] = split_roles(data["user_roles"])
        elif field in data:
            values[field] = split_roles(data[field]) if field == "as_a" else clean(data[field])
        else:
            values[field] = current.get(field, "")
    if not values["service_type"]:
        values["service_type"] = DEFAULT_SERVICE_TYPE
    return values


def apply_feature_fields(entry: FeatureEntry, values: dict) -> None:
    """Copy the editable fields from *values* onto *entry*. No commit."""
    for field in EDITABLE_FEATURE_FIELDS:
        if field in values:
            setattr(entry, field, values[field])


def create_feature(data: dict, actor: str | None = None) -> FeatureEntry:
    """
    Create a feature in an existing group (``feature_group_code``) or in a
    new group (``group_mode="new"`` + ``new_group_name``).

    The next feature id is read from the database right before the insert;
    if another writer took it first the insert is retried with a fresh read.
    """
    component_code = clean(data.get("component_code")).upper()
    values = _editable_values(data)
    if not component_code or not values["feature_name"] or not values["description"]:
        raise ValidationError("Component, feature name, and description are required")

    component = _component_snapshot(component_code)
    if component is None:
        raise NotFoundError(resource="Component", resource_id=component_code)

    new_group = data.get("group_mode") == "new"
    if new_group:
        group_name = clean(data.get("new_group_name"))
        if not group_name:
            raise ValidationError("New feature group name is required")
    else:
        group_code = clean(data.get("feature_group_code"))
        group = _group_row(component_code, group_code)
        if group is None:
            raise NotFoundError(resource="Feature group", resource_id=f"{component_code}-{group_code}")
        group_name = group.feature_group_name or ""

    for attempt in range(1, ALLOCATION_RETRIES + 1):
        if new_group:
            group_code = identifier_allocator.next_group_code(component_code)
        feature_id = identifier_allocator.next_feature_id(component_code, group_code)
        entry = FeatureEntry(
            unique_id=compose_unique_id(component_code, group_code, feature_id),
            component_code=component_code,
            component_name=component["component_name"],
            feature_group_code=group_code,
            feature_group_name=group_name,
            feature_id=feature_id,
            **values,
        )
        db.session.add(entry)
        try:
            db.session.flush()
            break
        except IntegrityError:
            db.session.rollback()
            logger.warning("Feature id %s taken (attempt %d)", entry.unique_id, attempt)
    else:
        raise ConflictError(resource="Feature", field="unique_id", value=entry.unique_id)

    write_audit(action_type="create", entity_type="feature", entity_id=entry.unique_id,
                new_data=entry.to_dict(), username=actor)
    commit_or_raise()
    logger.info("Feature created: %s", entry.unique_id)
    return entry


def update_feature(unique_id: str, data: dict, actor: str | None = None) -> FeatureEntry:
    entry = get_feature(unique_id)
    if entry.is_placeholder:
        raise NotFoundError(resource="Feature", resource_id=unique_id)

    old_data = entry.to_dict()
    values = _editable_values(data, current=old_data)
    if not values["feature_name"] or not values["description"]:
        raise ValidationError("Feature name and description are required")

    apply_feature_fields(entry, values)
    write_audit(action_type="edit", entity_type="feature", entity_id=unique_id,
                old_data=old_data, new_data=entry.to_dict(), username=actor)
    commit_or_raise()
    logger.info("Feature updated: %s", unique_id)
    return entry


def delete_feature(unique_id: str, actor: str | None = None) -> dict:
    entry = get_feature(unique_id)
    if entry.is_placeholder:
        raise NotFoundError(resource="Feature", resource_id=unique_id)

    old_data = entry.to_dict()
    db.session.delete(entry)
    write_audit(action_type="delete", entity_type="feature", entity_id=unique_id,
                old_data=old_data, username=actor)
    commit_or_raise()
    logger.info("Feature deleted: %s", unique_id)
    return old_data


# ═════════════════════════════════════════════════════════════════════════════
# Browsing
# ═════════════════════════════════════════════════════════════════════════════


def search_features(q: str = "", component: str = "", role: str = "", service_type: str = "",
                    page: int = 1, page_size: int = SEARCH_PAGE_SIZE) -> dict:
    """Filtered, paginated listing of real features."""
    query = FeatureEntry.query.filter(FeatureEntry.real_clause())
    q = clean(q)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(
            FeatureEntry.feature_name.ilike(like),
            FeatureEntry.description.ilike(like),
            FeatureEntry.i_want.ilike(like),
            FeatureEntry.expected_outcomes.ilike(like),
            FeatureEntry.unique_id.ilike(like),
        ))
    if clean(component):
        query = query.filter(FeatureEntry.component_code == clean(component))
    if clean(role):
        query = query.filter(FeatureEntry.as_a.ilike(f"%{clean(role)}%"))
    if clean(service_type):
        query = query.filter(FeatureEntry.service_type == clean(service_type))

    page = max(int(page or 1), 1)
    total = query.count()
    items = (
        query
        .order_by(FeatureEntry.component_code, FeatureEntry.feature_group_code, FeatureEntry.feature_id)
        .limit(page_size)
        .offset((page - 1) * page_size)
        .all()
    )
    return {
        "items": [f.to_dict() for f in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": -(-total // page_size),
    }


def search_facets() -> dict:
    """Filter options for the search page: components, core roles in use, service types."""
    role_strings = [
        r for (r,) in db.session.query(FeatureEntry.as_a)
        .filter(FeatureEntry.real_clause()).distinct()
    ]
    in_use = {role.strip() for s in role_strings if s for role in s.split(",")}
    service_types = [
        s for (s,) in db.session.query(FeatureEntry.service_type)
        .filter(FeatureEntry.real_clause()).distinct().order_by(FeatureEntry.service_type)
        if s
    ]
    return {
        "components": [
            {"component_code": c["component_code"], "component_name": c["component_name"]}
            for c in list_components()
        ],
        "roles": [r for r in CORE_USER_ROLES if r in in_use],
        "service_types": service_types,
    }


def compare_features(ids: list[str]) -> dict:
    """Side-by-side view of 2–5 features; problems are reported, not raised."""
    unique_ids = []
    for raw in ids:
        uid = clean(raw)
        if uid and uid not in unique_ids:
            unique_ids.append(uid)

    errors = []
    if len(unique_ids) > COMPARE_MAX:
        errors.append(f"You can compare up to {COMPARE_MAX} features. Only the first {COMPARE_MAX} have been used.")
    selected = unique_ids[:COMPARE_MAX]
    if len(selected) < 2:
        errors.append("Select at least two features to compare.")
    if not selected:
        return {"items": [], "errors": errors}

    rows = (
        FeatureEntry.query
        .filter(FeatureEntry.unique_id.in_(selected), FeatureEntry.real_clause())
        .order_by(FeatureEntry.component_code, FeatureEntry.feature_group_code, FeatureEntry.feature_id)
        .all()
    )
    if len(rows) < len(selected):
        errors.append("One or more selected features could not be found.")
    return {"items": [r.to_dict() for r in rows], "errors": errors}


def catalogue_stats() -> dict:
    """Dashboard totals; anchors never count."""
    components = [c for c in list_components() if c["feature_count"] > 0]
    group_count = db.session.execute(
        select(func.count()).select_from(
            select(FeatureEntry.component_code, FeatureEntry.feature_group_code)
            .where(FeatureEntry.real_clause())
            .distinct()
            .subquery()
        )
    ).scalar() or 0
    return {
        "components": components,
        "total_features": sum(c["feature_count"] for c in components),
        "total_feature_groups": int(group_count),
        "assessment_count": Assessment.query.count(),
    }


def next_codes(component_code: str, feature_group_code: str | None = None) -> dict:
    """Preview of the identifiers the next create would receive."""
    if _component_snapshot(component_code) is None:
        raise NotFoundError(resource="Component", resource_id=component_code)
    result = {"component_code": component_code,
              "next_group_code": identifier_allocator.next_group_code(component_code)}
    if feature_group_code:
        result["feature_group_code"] = feature_group_code
        result["next_feature_id"] = identifier_allocator.next_feature_id(component_code, feature_group_code)
    return result
