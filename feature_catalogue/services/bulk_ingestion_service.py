"""
Bulk Feature Ingestion Service

Spreadsheet-based bulk insert of catalogue features with per-row fault
isolation.

Features:
  - Parse .xlsx (openpyxl) or .csv uploads into string-keyed rows
  - Structural checks (empty file, missing required columns) before any write
  - Per-row validation against existing components
  - Feature-group resolution by name, new group codes allocated in steps of 10
  - Feature ids allocated in row order from an in-batch cache
  - Each row committed on its own; a storage error skips only that row
  - Template CSV generation
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import Integer, cast, func, select
from sqlalchemy.exc import SQLAlchemyError

from feature_catalogue.core.exceptions import ValidationError
from feature_catalogue.models import db
from feature_catalogue.models.audit import write_audit
from feature_catalogue.models.catalogue import FeatureEntry, compose_unique_id
from feature_catalogue.services.identifier_allocator import (
    next_feature_id_after,
    next_group_code_after,
)
from feature_catalogue.services.row_validator import (
    OPTIONAL_COLUMNS,
    REQUIRED_COLUMNS,
    EntryDraft,
    RowRejection,
    validate_row,
)
from feature_catalogue.utils.helpers import clean, commit_or_raise

logger = logging.getLogger(__name__)

# Row numbers in error reports are 1-based and the header occupies row 1.
HEADER_ROW_OFFSET = 2


class CatalogueUploadError(Exception):
    """Structural upload error: the whole operation is rejected before any write."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# Template
# ═══════════════════════════════════════════════════════════════

TEMPLATE_HEADER = list(REQUIRED_COLUMNS) + list(OPTIONAL_COLUMNS)
TEMPLATE_EXAMPLE = [
    "ACM", "Access", "Login", "Sign in to the service", "Citizen, Caseworker",
    "to sign in securely", "I can reach my case", "Cross-cutting",
]


def generate_template_csv() -> str:
    """Generate a CSV template string for bulk feature upload."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(TEMPLATE_HEADER)
    writer.writerow(TEMPLATE_EXAMPLE)
    return output.getvalue()


# ═══════════════════════════════════════════════════════════════
# Parsing & structural checks
# ═══════════════════════════════════════════════════════════════

def _is_blank_row(values: Iterable) -> bool:
    return all(clean(v) == "" for v in values)


def _parse_xlsx(content: bytes) -> list[dict]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as exc:
        logger.info("Rejected unreadable workbook: %s", exc)
        raise CatalogueUploadError("Error reading file. Please ensure it is a valid Excel file.")

    try:
        sheet = workbook.worksheets[0]
        row_iter = sheet.iter_rows(values_only=True)
        header_cells = next(row_iter, None)
        if header_cells is None:
            return []
        header = [clean(h) for h in header_cells]
        rows = []
        for values in row_iter:
            if _is_blank_row(values):
                continue
            rows.append({
                col: values[i] if i < len(values) else None
                for i, col in enumerate(header)
                if col
            })
        return rows
    finally:
        workbook.close()


def _parse_csv(content: bytes | str) -> list[dict]:
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")  # Handle BOM
        except UnicodeDecodeError:
            raise CatalogueUploadError("Error reading file. CSV uploads must be UTF-8 encoded.")

    reader = csv.DictReader(io.StringIO(content))
    reader.fieldnames = [clean(f) for f in (reader.fieldnames or [])]
    return [
        {k: v for k, v in row.items() if k}
        for row in reader
        if not _is_blank_row(row.values())
    ]


def parse_upload(filename: str, content: bytes | str) -> list[dict]:
    """
    Parse an uploaded spreadsheet into a list of row dicts keyed by header.

    .xlsx / .xlsm → first worksheet via openpyxl; .csv → csv.DictReader.
    Blank rows are dropped so reported row numbers follow the data rows.
    """
    name = (filename or "").lower()
    if name.endswith((".xlsx", ".xlsm")):
        return _parse_xlsx(content if isinstance(content, bytes) else content.encode())
    if name.endswith(".csv"):
        return _parse_csv(content)
    raise CatalogueUploadError("Unsupported file type. Upload an .xlsx or .csv file.")


def check_columns(rows: list[Mapping]) -> None:
    """Reject empty input or input missing required columns (no writes happen)."""
    if not rows:
        raise CatalogueUploadError("The uploaded file contains no data")
    first = rows[0]
    missing = [col for col in REQUIRED_COLUMNS if col not in first]
    if missing:
        raise CatalogueUploadError(f"Missing required columns: {', '.join(missing)}")


# ═══════════════════════════════════════════════════════════════
# Per-call allocation context
# ═══════════════════════════════════════════════════════════════

@dataclass
class IngestionContext:
    """
    Catalogue state preloaded once per ingestion call.

    The maxima are bumped as rows are allocated, so the context must not
    outlive the call that built it: a reused context would hand out
    identifiers that are already taken.
    """

    component_names: dict[str, str] = field(default_factory=dict)
    group_codes: dict[str, dict[str, str]] = field(default_factory=dict)
    group_names: dict[tuple[str, str], str] = field(default_factory=dict)
    max_feature_ids: dict[tuple[str, str], int] = field(default_factory=dict)
    max_group_codes: dict[str, int] = field(default_factory=dict)

    @classmethod
    def preload(cls) -> IngestionContext:
        ctx = cls()

        for code, name in db.session.execute(
            select(FeatureEntry.component_code, FeatureEntry.component_name)
            .order_by(FeatureEntry.component_code)
        ):
            ctx.component_names.setdefault(code.upper(), name)

        for code, group_code, group_name in db.session.execute(
            select(
                FeatureEntry.component_code,
                FeatureEntry.feature_group_code,
                FeatureEntry.feature_group_name,
            )
            .where(FeatureEntry.not_component_anchor_clause())
            .distinct()
        ):
            if group_name:
                ctx.group_codes.setdefault(code.upper(), {}).setdefault(group_name.lower(), group_code)
                ctx.group_names.setdefault((code.upper(), group_code), group_name)

        for code, group_code, max_id in db.session.execute(
            select(
                FeatureEntry.component_code,
                FeatureEntry.feature_group_code,
                func.max(cast(FeatureEntry.feature_id, Integer)),
            )
            .where(FeatureEntry.real_clause())
            .group_by(FeatureEntry.component_code, FeatureEntry.feature_group_code)
        ):
            ctx.max_feature_ids[(code.upper(), group_code)] = max_id or 0

        for code, max_code in db.session.execute(
            select(
                FeatureEntry.component_code,
                func.max(cast(FeatureEntry.feature_group_code, Integer)),
            )
            .where(FeatureEntry.not_component_anchor_clause())
            .group_by(FeatureEntry.component_code)
        ):
            ctx.max_group_codes[code.upper()] = max_code or 0

        return ctx

    def resolve_group(self, component_code: str, group_name: str) -> str:
        """Existing group code for *group_name* (case-insensitive) or a newly allocated one."""
        groups = self.group_codes.setdefault(component_code, {})
        key = group_name.lower()
        if key not in groups:
            code = next_group_code_after(self.max_group_codes.get(component_code, 0))
            groups[key] = code
            self.group_names[(component_code, code)] = group_name
            self.max_group_codes[component_code] = int(code)
        return groups[key]

    def allocate_feature_id(self, component_code: str, group_code: str) -> str:
        key = (component_code, group_code)
        feature_id = next_feature_id_after(self.max_feature_ids.get(key, 0))
        self.max_feature_ids[key] = int(feature_id)
        return feature_id


# ═══════════════════════════════════════════════════════════════
# Pipeline
# ═══════════════════════════════════════════════════════════════

def _build_entry(draft: EntryDraft, ctx: IngestionContext, group_code: str, feature_id: str) -> FeatureEntry:
    return FeatureEntry(
        unique_id=compose_unique_id(draft.component_code, group_code, feature_id),
        component_code=draft.component_code,
        component_name=ctx.component_names[draft.component_code],
        feature_group_code=group_code,
        feature_group_name=ctx.group_names.get((draft.component_code, group_code), draft.feature_group_name),
        feature_id=feature_id,
        feature_name=draft.feature_name,
        description=draft.description,
        as_a=draft.as_a,
        i_want=draft.i_want,
        expected_outcomes=draft.expected_outcomes,
        service_type=draft.service_type,
    )


def ingest_rows(rows: Iterable[Mapping], actor: str | None = None) -> dict:
    """
    Insert catalogue features from raw rows, best effort.

    Returns {"inserted": int, "skipped": int, "errors": [{"row", "message"}]}.
    A bad row never aborts the batch; identifiers are allocated in row order
    and a rejected row consumes none.
    """
    results = {"inserted": 0, "skipped": 0, "errors": []}
    ctx = IngestionContext.preload()

    for index, row in enumerate(rows):
        row_num = index + HEADER_ROW_OFFSET
        outcome = validate_row(row, ctx.component_names.keys())
        if isinstance(outcome, RowRejection):
            results["errors"].append({"row": row_num, "message": outcome.message})
            results["skipped"] += 1
            continue

        try:
            group_code = ctx.resolve_group(outcome.component_code, outcome.feature_group_name)
            feature_id = ctx.allocate_feature_id(outcome.component_code, group_code)
        except ValidationError as exc:
            results["errors"].append({"row": row_num, "message": str(exc)})
            results["skipped"] += 1
            continue

        entry = _build_entry(outcome, ctx, group_code, feature_id)
        try:
            db.session.add(entry)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            reason = getattr(exc, "orig", None) or exc
            logger.warning("Bulk row %d (%s) not stored: %s", row_num, entry.unique_id, reason)
            results["errors"].append({"row": row_num, "message": f"Database error: {reason}"})
            results["skipped"] += 1
            continue

        results["inserted"] += 1

    logger.info(
        "Ingested %d features (%d skipped) for %s",
        results["inserted"], results["skipped"], actor or "Unknown",
    )
    return results


def bulk_upload(rows: list[Mapping], actor: str | None = None) -> dict:
    """Check structure, ingest, and record one ``bulk-upload`` audit entry."""
    check_columns(rows)
    results = ingest_rows(rows, actor)

    write_audit(
        action_type="bulk-upload",
        entity_type="features",
        new_data={"count": results["inserted"], "errors": len(results["errors"])},
        username=actor,
    )
    commit_or_raise()
    return results
