from __future__ import annotations

from ..extensions import db
from .lifecycle import SoftDeleteMixin
from stockroom.time_utils import to_utc_z


class Template(SoftDeleteMixin, db.Model):
    """
    Named set of product variants used to pre-fill stock-out forms.

    At most one template is active system-wide; template_service.set_active is
    the only writer of is_active=True.
    """
    __tablename__ = "templates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "TemplateItem",
        back_populates="template",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TemplateItem.id",
    )

    @property
    def variant_ids(self) -> list[int]:
        return [item.product_variant_id for item in self.items]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "lifecycle": self.lifecycle.value,
            "items_count": len(self.items),
            "items": [item.to_dict() for item in self.items],
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TemplateItem(db.Model):
    """Template -> ProductVariant link; a variant appears at most once per template."""
    __tablename__ = "template_items"
    __table_args__ = (
        db.UniqueConstraint("template_id", "product_variant_id", name="uq_template_items_variant"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    template = db.relationship("Template", back_populates="items")
    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        variant = self.variant
        return {
            "id": self.id,
            "product_variant_id": self.product_variant_id,
            "variant_name": variant.name if variant else None,
            "variant_sku": variant.sku if variant else None,
            "product_name": variant.product.name if variant and variant.product else None,
        }
