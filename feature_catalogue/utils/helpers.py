"""Shared utility functions.

commit_or_raise:  commit the session; roll back and re-raise on failure
split_roles:      normalise a role list / comma string into the stored ``as_a`` form
pad_code:         3-digit zero-padded catalogue code
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from feature_catalogue.models import db

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pad_code(value: int) -> str:
    """Format an integer as a 3-digit zero-padded code string (``7`` → ``"007"``)."""
    return f"{int(value):03d}"


def clean(value) -> str:
    """Coerce a tabular cell / form value to a stripped string ("" for None)."""
    if value is None:
        return ""
    return str(value).strip()


def split_roles(value) -> str:
    """Return the comma-joined role string stored in ``as_a``.

    Accepts a list of roles (form multi-select) or an already-joined string.
    """
    if isinstance(value, (list, tuple)):
        roles = [clean(r) for r in value]
    else:
        roles = [clean(r) for r in clean(value).split(",")]
    return ", ".join(r for r in roles if r)


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise():
    """Commit the current SQLAlchemy session.

    On failure the session is rolled back and the original exception is
    re-raised, so a single-entity mutation and its audit row either both
    land or neither does.

    IntegrityError → logged at WARNING (duplicate / constraint violation)
    Other SQLAlchemyError → logged with traceback
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise
