from __future__ import annotations

from ..extensions import db
from .lifecycle import SoftDeleteMixin
from stockroom.time_utils import to_utc_z


class Product(SoftDeleteMixin, db.Model):
    """
    Catalog product. Owns one or more variants.

    Soft delete tombstones the product and every variant with it; restore brings
    the variants back. Permanent removal (purge) is only legal once tombstoned.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )

    def to_dict(self, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "lifecycle": self.lifecycle.value,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
            data["total_stock"] = sum(v.stock_current for v in self.variants if not v.is_tombstoned)
        return data


class ProductVariant(SoftDeleteMixin, db.Model):
    """
    Sellable/stockable variant of a product.

    stock_current is the ledger value. It is written only by stock submissions
    (and once, as the opening balance, when the variant is created).
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_product_variants_sku"),
        db.CheckConstraint("stock_current >= 0", name="ck_product_variants_stock_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    sku = db.Column(db.String(50), nullable=False, index=True)
    stock_current = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product", back_populates="variants")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "stock_current": self.stock_current,
            "lifecycle": self.lifecycle.value,
            "deleted_at": to_utc_z(self.deleted_at),
        }
