"""
Feature Catalogue
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for catalogue mutations.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import event as _sa_event

from feature_catalogue.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {
    "create",
    "edit",
    "delete",
    "bulk-upload",
    "replace-feature-set",
}

AUDIT_ENTITY_TYPES = {
    "component",
    "feature_group",
    "feature",
    "features",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every catalogue mutation.

    One row per action.  ``old_data`` / ``new_data`` carry JSON snapshots of
    the entity before and after; either may be NULL (create has no before,
    delete has no after, bulk actions carry summaries).
    """

    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_action", "action_type"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)

    action_type = db.Column(
        db.String(30), nullable=False,
        comment="create | edit | delete | bulk-upload | replace-feature-set",
    )
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="component | feature_group | feature | features",
    )
    entity_id = db.Column(db.String(60), nullable=True)

    old_data = db.Column(db.Text, nullable=True)
    new_data = db.Column(db.Text, nullable=True)

    username = db.Column(db.String(150), nullable=False, default="Unknown")

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _parse(payload):
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except (json.JSONDecodeError, TypeError):
            return None

    @property
    def old(self):
        """Deserialise *old_data*; None when absent or unreadable."""
        return self._parse(self.old_data)

    @property
    def new(self):
        """Deserialise *new_data*; None when absent or unreadable."""
        return self._parse(self.new_data)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action_type": self.action_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "old_data": self.old,
            "new_data": self.new,
            "username": self.username,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action_type} on {self.entity_type}/{self.entity_id}>"


@_sa_event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise ValueError(f"Audit log entry {target.id} is append-only")


@_sa_event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise ValueError(f"Audit log entry {target.id} cannot be deleted")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    action_type: str,
    entity_type: str,
    entity_id: str | None = None,
    old_data=None,
    new_data=None,
    username: str | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control: the row commits together with the mutation
    it describes, or not at all.

    Returns the (flushed) AuditLog instance.
    """
    if action_type not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action_type}")
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type}")

    log = AuditLog(
        action_type=action_type,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        old_data=json.dumps(old_data, default=str) if old_data is not None else None,
        new_data=json.dumps(new_data, default=str) if new_data is not None else None,
        username=username or "Unknown",
    )
    db.session.add(log)
    db.session.flush()
    return log
