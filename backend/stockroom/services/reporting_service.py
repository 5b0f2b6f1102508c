# Overview: Read-only stock movement reports over submitted records.

"""
Stock movement report.

For a date range (default: the last 7 days) totals, per variant and per day,
the quantities moved by submitted stock-in or stock-out records. Drafts never
count. Each variant also gets the average over the days it actually moved.
"""

from __future__ import annotations

from datetime import date, timedelta

from ..errors import ValidationFailed
from ..extensions import db
from ..models import Product, ProductVariant, STATUS_SUBMITTED
from .stock_record_service import StockKind
from stockroom.time_utils import date_range, today


DEFAULT_REPORT_DAYS = 7
MAX_REPORT_DAYS = 366


def _resolve_range(start_date: date | None, end_date: date | None) -> tuple[date, date]:
    if not start_date or not end_date:
        end_date = today()
        start_date = end_date - timedelta(days=DEFAULT_REPORT_DAYS - 1)
    if start_date > end_date:
        raise ValidationFailed.single("start_date", "The start date must be on or before the end date.")
    if (end_date - start_date).days >= MAX_REPORT_DAYS:
        raise ValidationFailed.single("end_date", f"The report range cannot exceed {MAX_REPORT_DAYS} days.")
    return start_date, end_date


def stock_movement_report(
    kind: StockKind,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    product_id: int | None = None,
) -> dict:
    start_date, end_date = _resolve_range(start_date, end_date)
    record = kind.record_model
    item = kind.item_model

    query = (
        db.session.query(item.product_variant_id, record.date, db.func.sum(item.quantity))
        .join(record, record.id == item.record_id)
        .filter(
            record.status == STATUS_SUBMITTED,
            record.date >= start_date,
            record.date <= end_date,
        )
        .group_by(item.product_variant_id, record.date)
    )
    if product_id is not None:
        query = query.join(ProductVariant, ProductVariant.id == item.product_variant_id).filter(
            ProductVariant.product_id == product_id
        )

    moved: dict[int, dict[date, int]] = {}
    for variant_id, day, quantity in query.all():
        moved.setdefault(variant_id, {})[day] = int(quantity or 0)

    days = date_range(start_date, end_date)

    products_query = db.session.query(Product).filter(Product.deleted_at.is_(None))
    if product_id is not None:
        products_query = products_query.filter(Product.id == product_id)

    products = []
    for product in products_query.order_by(Product.name).all():
        variants = []
        for variant in sorted(product.variants, key=lambda v: v.name):
            if variant.is_tombstoned and variant.id not in moved:
                continue
            per_day = moved.get(variant.id, {})
            by_date = {day.isoformat(): per_day.get(day, 0) for day in days}
            nonzero = [q for q in by_date.values() if q > 0]
            variants.append({
                "id": variant.id,
                "name": variant.name,
                "sku": variant.sku,
                "stock": variant.stock_current,
                "by_date": by_date,
                "total": sum(by_date.values()),
                "average": round(sum(nonzero) / len(nonzero), 2) if nonzero else 0,
            })
        products.append({"id": product.id, "name": product.name, "variants": variants})

    return {
        "kind": kind.name,
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "dates": [day.isoformat() for day in days],
        "products": products,
    }
