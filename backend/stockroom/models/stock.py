from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from stockroom.time_utils import to_utc_z


STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
RECORD_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED)


class StockRecordMixin:
    """
    Columns shared by stock-in and stock-out documents.

    LIFECYCLE:
    1. draft: created, lines editable, deletable
    2. submitted: lines applied to the variant ledger (terminal, immutable)
    """
    id = db.Column(db.Integer, primary_key=True)

    # Human-readable code, e.g. "ALBR-004812937561"
    transaction_code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    # Business date of the movement
    date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_DRAFT, index=True)

    @declared_attr
    def created_by_user_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @declared_attr
    def submitted_by_user_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_draft(self) -> bool:
        return self.status == STATUS_DRAFT

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_code": self.transaction_code,
            "date": self.date.isoformat() if self.date else None,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "submitted_by_user_id": self.submitted_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "submitted_at": to_utc_z(self.submitted_at),
            "items_count": len(self.items),
            "total_quantity": self.total_quantity,
            "items": [item.to_dict() for item in self.items],
        }


class StockItemMixin:
    id = db.Column(db.Integer, primary_key=True)
    @declared_attr
    def product_variant_id(cls):
        return db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        variant = self.variant
        return {
            "id": self.id,
            "product_variant_id": self.product_variant_id,
            "quantity": self.quantity,
            "variant_name": variant.name if variant else None,
            "variant_sku": variant.sku if variant else None,
            "product_name": variant.product.name if variant and variant.product else None,
            "stock_current": variant.stock_current if variant else None,
        }


class StockInRecord(StockRecordMixin, db.Model):
    """Incoming stock document. Submission increases stock_current."""
    __tablename__ = "stock_in_records"
    __table_args__ = {"sqlite_autoincrement": True}

    note = db.Column(db.Text, nullable=True)

    items = db.relationship(
        "StockInItem",
        back_populates="record",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockInItem.id",
    )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["note"] = self.note
        return data


class StockInItem(StockItemMixin, db.Model):
    __tablename__ = "stock_in_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_in_items_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    record_id = db.Column(db.Integer, db.ForeignKey("stock_in_records.id", ondelete="CASCADE"), nullable=False, index=True)

    record = db.relationship("StockInRecord", back_populates="items")
    variant = db.relationship("ProductVariant")


class StockOutRecord(StockRecordMixin, db.Model):
    """Outgoing stock document. Submission decreases stock_current and may never drive it negative."""
    __tablename__ = "stock_out_records"
    __table_args__ = {"sqlite_autoincrement": True}

    items = db.relationship(
        "StockOutItem",
        back_populates="record",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockOutItem.id",
    )


class StockOutItem(StockItemMixin, db.Model):
    __tablename__ = "stock_out_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_out_items_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    record_id = db.Column(db.Integer, db.ForeignKey("stock_out_records.id", ondelete="CASCADE"), nullable=False, index=True)

    record = db.relationship("StockOutRecord", back_populates="items")
    variant = db.relationship("ProductVariant")
