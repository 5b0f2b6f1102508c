# Overview: Per-variant on-hand quantity (stock_current) reads and guarded writes.

"""
Stock Quantity Ledger

stock_current on product_variants is the ledger. Only stock submissions move
it, and always through apply_delta inside the submission's transaction.

apply_delta is a single conditional UPDATE:

    UPDATE product_variants
       SET stock_current = stock_current + :delta
     WHERE id = :id AND stock_current + :delta >= 0

so the non-negative rule is checked by the database against the value it is
about to overwrite, not against whatever the caller read earlier. A competing
submission that committed in between makes the row fail the predicate, the
rowcount comes back 0, and the caller's transaction is aborted instead of
writing a lost update.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import NotFound, ValidationFailed
from ..extensions import db
from ..models import ProductVariant
from .concurrency import lock_for_update


logger = logging.getLogger(__name__)


def insufficient_stock_message(requested: int, available: int) -> str:
    return f"Insufficient stock: requested {requested}, available {available}."


def current_quantity(variant_id: int) -> int:
    """Ledger value as committed (or as written earlier in this transaction)."""
    value = db.session.execute(
        db.select(ProductVariant.stock_current).where(ProductVariant.id == variant_id)
    ).scalar_one_or_none()
    if value is None:
        raise NotFound("Product variant", variant_id)
    return value


def lock_variants(variant_ids) -> dict[int, ProductVariant]:
    """
    SELECT ... FOR UPDATE the given variant rows, in id order to keep lock
    acquisition deterministic across concurrent submissions.
    """
    ids = sorted(set(variant_ids))
    if not ids:
        return {}
    query = db.session.query(ProductVariant).filter(ProductVariant.id.in_(ids)).order_by(ProductVariant.id)
    variants = lock_for_update(query).populate_existing().all()
    return {v.id: v for v in variants}


def apply_delta(variant_id: int, delta: int, *, field: str = "quantity") -> int:
    """
    Add a signed delta to a variant's stock_current. Must run inside the
    caller's transaction.

    Raises ValidationFailed (keyed on field) when the result would be negative;
    the ledger is left untouched. Returns the new quantity.
    """
    result = db.session.execute(
        update(ProductVariant.__table__)
        .where(ProductVariant.__table__.c.id == variant_id)
        .where(ProductVariant.__table__.c.stock_current + delta >= 0)
        .values(stock_current=ProductVariant.__table__.c.stock_current + delta)
    )

    if result.rowcount != 1:
        available = current_quantity(variant_id)
        logger.info(
            "ledger write rejected variant_id=%s delta=%s available=%s",
            variant_id, delta, available,
        )
        raise ValidationFailed.single(field, insufficient_stock_message(-delta, available))

    # The ORM copy is stale after a Core UPDATE
    variant = db.session.get(ProductVariant, variant_id)
    if variant is not None:
        db.session.expire(variant, ["stock_current"])

    return current_quantity(variant_id)
