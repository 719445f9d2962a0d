"""
Audit Revert Service

Reads the audit trail and reverses single-entity edits and deletes.

  revert_edit(log_id)    — re-applies ``old_data`` of an ``edit`` entry and
                           logs the reversal as a new ``edit`` entry with the
                           before/after swapped, so a revert is itself revertible.
  revert_delete(log_id)  — re-inserts the entity captured in ``old_data`` of a
                           ``delete`` entry and logs it as a ``create`` entry.

Supported entity types are ``component`` and ``feature``.  Past entries are
never modified.
"""

import logging

from sqlalchemy.exc import IntegrityError

from feature_catalogue.core.exceptions import ConflictError, NotFoundError, ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.audit import AuditLog, write_audit
from feature_catalogue.models.catalogue import ComponentAnchor, FeatureEntry
from feature_catalogue.services import catalogue_service
from feature_catalogue.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

REVERTIBLE_ENTITY_TYPES = ("component", "feature")
AUDIT_PAGE_SIZE = 50
AUDIT_PAGE_MAX = 200


# ── Reading the trail ────────────────────────────────────────────────────────

def list_audit_logs(*, action_type=None, entity_type=None, entity_id=None, username=None,
                    page=1, per_page=AUDIT_PAGE_SIZE) -> dict:
    """Newest-first, paginated audit entries with optional exact-match filters."""
    q = AuditLog.query
    if action_type:
        q = q.filter(AuditLog.action_type == action_type)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)
    if username:
        q = q.filter(AuditLog.username == username)

    q = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    page = max(1, int(page or 1))
    per_page = min(AUDIT_PAGE_MAX, max(1, int(per_page or AUDIT_PAGE_SIZE)))
    paginated = q.paginate(page=page, per_page=per_page, error_out=False)

    return {
        "audit_logs": [log.to_dict() for log in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }


def get_audit_log(log_id: int) -> AuditLog:
    log = db.session.get(AuditLog, log_id)
    if log is None:
        raise NotFoundError(resource="Audit log", resource_id=log_id)
    return log


def _entry_of_type(log_id: int, action_type: str) -> AuditLog:
    log = db.session.get(AuditLog, log_id)
    if log is None or log.action_type != action_type:
        raise NotFoundError(resource=f"Audit {action_type} entry", resource_id=log_id)
    if log.entity_type not in REVERTIBLE_ENTITY_TYPES:
        raise ValidationError(
            f"Cannot revert a {log.entity_type} {action_type}",
            details={"entity_type": log.entity_type},
        )
    if not isinstance(log.old, dict):
        raise ValidationError("Audit entry has no captured previous state", details={"id": log_id})
    return log


# ── Revert edit ──────────────────────────────────────────────────────────────

def revert_edit(log_id: int, actor: str | None = None) -> dict:
    """Restore the state recorded before edit *log_id*.

    Returns the restored snapshot.

    Raises:
        NotFoundError:   no such entry, it is not an edit, or the entity is gone
        ValidationError: entity type cannot be reverted
    """
    log = _entry_of_type(log_id, "edit")
    old = log.old

    if log.entity_type == "component":
        component_code = old.get("component_code") or log.entity_id
        if FeatureEntry.query.filter_by(component_code=component_code).first() is None:
            raise NotFoundError(resource="Component", resource_id=component_code)
        catalogue_service.propagate_component_name(component_code, old.get("component_name") or "")
    else:
        entry = db.session.get(FeatureEntry, log.entity_id)
        if entry is None:
            raise NotFoundError(resource="Feature", resource_id=log.entity_id)
        catalogue_service.apply_feature_fields(entry, old)

    write_audit(
        action_type="edit",
        entity_type=log.entity_type,
        entity_id=log.entity_id,
        old_data=log.new,
        new_data=old,
        username=actor,
    )
    commit_or_raise()
    logger.info("Reverted edit #%d on %s %s", log_id, log.entity_type, log.entity_id)
    return old


# ── Revert delete ────────────────────────────────────────────────────────────

def revert_delete(log_id: int, actor: str | None = None) -> dict:
    """Re-insert the entity removed by delete *log_id*.

    A component comes back as its placeholder anchor (its features are not
    restored); a feature comes back as the full captured row, carrying the
    component and group names currently in use.

    Raises:
        NotFoundError:   no such entry or it is not a delete
        ValidationError: entity type cannot be reverted
        ConflictError:   the identifier is in use again
    """
    log = _entry_of_type(log_id, "delete")
    old = log.old

    if log.entity_type == "component":
        component_code = old.get("component_code") or log.entity_id
        if FeatureEntry.query.filter_by(component_code=component_code).first() is not None:
            raise ConflictError(resource="Component", field="component_code", value=component_code)
        entry = ComponentAnchor(component_code, old.get("component_name") or component_code).to_entry()
    else:
        entry = FeatureEntry.from_dict(old)
        if db.session.get(FeatureEntry, entry.unique_id) is not None:
            raise ConflictError(resource="Feature", field="unique_id", value=entry.unique_id)
        # names follow any rename made since the delete
        component = catalogue_service._component_snapshot(entry.component_code)
        if component is not None:
            entry.component_name = component["component_name"]
        group = catalogue_service._group_row(entry.component_code, entry.feature_group_code)
        if group is not None:
            entry.feature_group_name = group.feature_group_name or ""

    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(resource=log.entity_type.capitalize(), field="unique_id", value=entry.unique_id)

    restored = old if log.entity_type == "component" else entry.to_dict()
    write_audit(
        action_type="create",
        entity_type=log.entity_type,
        entity_id=log.entity_id,
        new_data=restored,
        username=actor,
    )
    commit_or_raise()
    logger.info("Reverted delete #%d on %s %s", log_id, log.entity_type, log.entity_id)
    return restored
