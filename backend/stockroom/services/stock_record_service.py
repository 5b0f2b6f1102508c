# Overview: Stock-in / stock-out documents: draft editing and the submission transaction.

"""
Stock Record Service

Stock-in and stock-out records share one lifecycle:

    draft --submit--> submitted (terminal)

While draft, a record can be edited or deleted. Submission applies every line
to the variant ledger (+quantity for stock-in, -quantity for stock-out), stores
the final line set and flips the status, all in one transaction. Any failed
precondition rolls the whole thing back; nothing is ever partially applied and
nothing is retried.

Every mutating function takes the acting principal and the AuthorizationService
explicitly and checks the permission before touching the database.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..errors import FieldErrors, NotFound, ValidationFailed
from ..extensions import db
from ..models import (
    ProductVariant,
    StockInItem,
    StockInRecord,
    StockOutItem,
    StockOutRecord,
    RECORD_STATUSES,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
)
from ..validation import LineItemInput, clean_date, clean_line_items
from .concurrency import atomic, flush_unique, lock_for_update
from .stock_ledger_service import apply_delta, insufficient_stock_message, lock_variants
from stockroom.time_utils import utcnow


logger = logging.getLogger(__name__)


TRANSACTION_CODE_DIGITS = 12
TRANSACTION_CODE_ATTEMPTS = 5


@dataclass(frozen=True)
class StockKind:
    """Which document family an operation works on and which way it moves stock."""
    name: str
    label: str
    record_model: type
    item_model: type
    sign: int
    has_note: bool

    def permission(self, verb: str) -> str:
        return f"{self.name}.{verb}"


STOCK_IN = StockKind("stock-in", "Stock in record", StockInRecord, StockInItem, +1, True)
STOCK_OUT = StockKind("stock-out", "Stock out record", StockOutRecord, StockOutItem, -1, False)


# -- Draft-state guard --

def can_mutate(record) -> bool:
    """Only draft records may be edited, deleted or submitted."""
    return record.status == STATUS_DRAFT


def ensure_draft(record, verb: str) -> None:
    if not can_mutate(record):
        raise ValidationFailed.single(
            "status",
            f"Only draft records can be {verb}; this record is {record.status}.",
        )


# -- Lookups --

def generate_transaction_code(kind: StockKind) -> str:
    """
    PREFIX-############ with 12 random digits, unique within the record table.

    After TRANSACTION_CODE_ATTEMPTS collisions falls back to a timestamp in the
    same 12-digit shape.
    """
    prefix = current_app.config.get("TRANSACTION_CODE_PREFIX", "ALBR")
    model = kind.record_model
    for _ in range(TRANSACTION_CODE_ATTEMPTS):
        code = f"{prefix}-{secrets.randbelow(10 ** TRANSACTION_CODE_DIGITS):0{TRANSACTION_CODE_DIGITS}d}"
        taken = db.session.query(model.id).filter(model.transaction_code == code).first()
        if not taken:
            return code
    logger.warning("transaction code collisions exhausted for %s, using timestamp", kind.name)
    return f"{prefix}-{utcnow().strftime('%y%m%d%H%M%S')}"


def get_record(kind: StockKind, record_id: int):
    record = db.session.get(kind.record_model, record_id)
    if record is None:
        raise NotFound(kind.label, record_id)
    return record


def _lock_record(kind: StockKind, record_id: int):
    query = db.session.query(kind.record_model).filter(kind.record_model.id == record_id)
    record = lock_for_update(query).populate_existing().first()
    if record is None:
        raise NotFound(kind.label, record_id)
    return record


def list_records(
    kind: StockKind,
    *,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    limit: int = 15,
    offset: int = 0,
):
    """Newest first. Returns (records, total)."""
    model = kind.record_model
    query = db.session.query(model)

    if status:
        if status not in RECORD_STATUSES:
            raise ValidationFailed.single("status", f"status must be one of: {', '.join(RECORD_STATUSES)}")
        query = query.filter(model.status == status)
    if date_from:
        query = query.filter(model.date >= date_from)
    if date_to:
        query = query.filter(model.date <= date_to)
    if search:
        pattern = f"%{search.strip()}%"
        if kind.has_note:
            query = query.filter(db.or_(model.transaction_code.ilike(pattern), model.note.ilike(pattern)))
        else:
            query = query.filter(model.transaction_code.ilike(pattern))

    total = query.count()
    records = query.order_by(model.date.desc(), model.id.desc()).offset(offset).limit(limit).all()
    return records, total


def record_statistics(kind: StockKind) -> dict:
    model = kind.record_model
    item = kind.item_model
    counts = dict(
        db.session.query(model.status, db.func.count(model.id)).group_by(model.status).all()
    )
    submitted_quantity = (
        db.session.query(db.func.coalesce(db.func.sum(item.quantity), 0))
        .join(model, model.id == item.record_id)
        .filter(model.status == STATUS_SUBMITTED)
        .scalar()
    )
    total_items = db.session.query(db.func.count(item.id)).scalar()
    return {
        "total_records": sum(counts.values()),
        "total_items": int(total_items or 0),
        "total_draft": counts.get(STATUS_DRAFT, 0),
        "total_submitted": counts.get(STATUS_SUBMITTED, 0),
        "total_submitted_quantity": int(submitted_quantity or 0),
    }


# -- Validation --

def _check_variants(lines: list[LineItemInput], variants: dict[int, ProductVariant], errors: FieldErrors,
                    field: str = "items") -> None:
    """Every line must reference an existing, non-tombstoned variant."""
    for line in lines:
        variant = variants.get(line.product_variant_id)
        if variant is None or variant.is_tombstoned:
            errors.add(f"{field}.{line.index}.product_variant_id", "The selected product variant is invalid.")


def _validated_lines(raw_items, errors: FieldErrors) -> list[LineItemInput]:
    lines = clean_line_items(raw_items, errors)
    if lines:
        ids = [line.product_variant_id for line in lines]
        variants = {
            v.id: v for v in db.session.query(ProductVariant).filter(ProductVariant.id.in_(ids)).all()
        }
        _check_variants(lines, variants, errors)
    return lines


def _clean_note(kind: StockKind, payload: dict, errors: FieldErrors) -> str | None:
    note = payload.get("note")
    if note is None:
        return None
    if not kind.has_note:
        errors.add("note", "Notes are only kept on stock-in records.")
        return None
    if not isinstance(note, str):
        errors.add("note", "The note field must be a string.")
        return None
    return note.strip() or None


def _replace_items(kind: StockKind, record, lines: list[LineItemInput]) -> None:
    record.items.clear()
    db.session.flush()
    for line in lines:
        record.items.append(kind.item_model(product_variant_id=line.product_variant_id, quantity=line.quantity))


# -- Draft operations --

def create_record(kind: StockKind, payload: dict, *, principal, authz):
    """
    Create a draft record.

    payload: {"date": "YYYY-MM-DD", "items": [{"product_variant_id", "quantity"}], "note"?}
    """
    authz.require(principal, kind.permission("create"))

    errors = FieldErrors()
    record_date = clean_date(payload, "date", errors)
    lines = _validated_lines(payload.get("items"), errors)
    note = _clean_note(kind, payload, errors)
    errors.raise_if_any()

    with atomic():
        record = kind.record_model(
            transaction_code=generate_transaction_code(kind),
            date=record_date,
            status=STATUS_DRAFT,
            created_by_user_id=principal.id,
        )
        if kind.has_note:
            record.note = note
        db.session.add(record)
        for line in lines:
            record.items.append(kind.item_model(product_variant_id=line.product_variant_id, quantity=line.quantity))
        flush_unique("transaction_code", "The transaction code has already been taken. Please try again.")

    logger.info("%s created id=%s code=%s by user_id=%s", kind.name, record.id, record.transaction_code, principal.id)
    return record


def update_record(kind: StockKind, record_id: int, payload: dict, *, principal, authz):
    """
    Edit a draft. Any of date, items (replaces the whole set) and note may be
    given; omitted fields are left alone.
    """
    authz.require(principal, kind.permission("edit"))

    record = get_record(kind, record_id)
    ensure_draft(record, "updated")

    errors = FieldErrors()
    record_date = clean_date(payload, "date", errors, required=False)
    lines = _validated_lines(payload["items"], errors) if "items" in payload else None
    note = _clean_note(kind, payload, errors)
    errors.raise_if_any()

    with atomic():
        record = _lock_record(kind, record_id)
        ensure_draft(record, "updated")
        if record_date is not None:
            record.date = record_date
        if lines is not None:
            _replace_items(kind, record, lines)
        if kind.has_note and "note" in payload:
            record.note = note

    logger.info("%s updated id=%s by user_id=%s", kind.name, record.id, principal.id)
    return record


def delete_record(kind: StockKind, record_id: int, *, principal, authz) -> bool:
    authz.require(principal, kind.permission("delete"))

    with atomic():
        record = _lock_record(kind, record_id)
        ensure_draft(record, "deleted")
        code = record.transaction_code
        db.session.delete(record)

    logger.info("%s deleted id=%s code=%s by user_id=%s", kind.name, record_id, code, principal.id)
    return True


# -- Submission transaction --

def _available_quantities(variants: dict[int, ProductVariant]) -> dict[int, int]:
    """Ledger values of the locked variant rows, as read at validation time."""
    return {variant_id: variant.stock_current for variant_id, variant in variants.items()}


def submit_record(kind: StockKind, record_id: int, *, principal, authz, items=None):
    """
    Submit a draft record to the ledger.

    items, when given, replaces the saved lines before they are applied;
    otherwise the saved lines are used.

    Preconditions, checked in order, each aborting with no ledger change:
    1. principal holds "<kind>.submit" (AuthorizationDenied)
    2. record exists (NotFound)
    3. record is draft (ValidationFailed on "status")
    4. at least one line, every variant exists and is not tombstoned,
       every quantity is an integer >= 0 (ValidationFailed on "items...")
    5. stock-out only: quantity <= available for every line, reported per line
       as "items.<i>.quantity" with the requested and available amounts

    The ledger write re-checks sufficiency in the database, so a concurrent
    submission that committed after step 5 still causes a clean rejection.
    """
    authz.require(principal, kind.permission("submit"))

    with atomic():
        record = _lock_record(kind, record_id)
        ensure_draft(record, "submitted")

        errors = FieldErrors()
        if items is not None:
            lines = clean_line_items(items, errors)
        else:
            lines = [
                LineItemInput(item.product_variant_id, item.quantity, index)
                for index, item in enumerate(record.items)
            ]
            if not lines:
                errors.add("items", "The items field must have at least 1 items.")
        errors.raise_if_any()

        variants = lock_variants(line.product_variant_id for line in lines)
        _check_variants(lines, variants, errors)
        errors.raise_if_any()

        if kind.sign < 0:
            available = _available_quantities(variants)
            for line in lines:
                on_hand = available[line.product_variant_id]
                if line.quantity > on_hand:
                    errors.add(f"items.{line.index}.quantity", insufficient_stock_message(line.quantity, on_hand))
            errors.raise_if_any()

        if items is not None:
            _replace_items(kind, record, lines)

        for line in lines:
            if line.quantity == 0:
                continue
            apply_delta(
                line.product_variant_id, kind.sign * line.quantity, field=f"items.{line.index}.quantity"
            )

        record.status = STATUS_SUBMITTED
        record.submitted_at = utcnow()
        record.submitted_by_user_id = principal.id

    logger.info(
        "%s submitted id=%s code=%s lines=%s by user_id=%s",
        kind.name, record.id, record.transaction_code, len(lines), principal.id,
    )
    return record
