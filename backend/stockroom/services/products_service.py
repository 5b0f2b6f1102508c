# Overview: Service-layer operations for products and variants; encapsulates business logic and database work.

"""
Catalog Service

Products own variants. Soft delete tombstones a product together with its live
variants (same timestamp); restore brings back exactly the variants that went
down with it. Purge is only allowed for a tombstoned product whose variants
are not referenced by any stock record or template.

stock_current is accepted once, as the opening balance of a new variant.
Updates never write it: after creation only stock submissions move the ledger.
"""

from __future__ import annotations

import logging

from ..errors import FieldErrors, NotFound, ValidationFailed
from ..extensions import db
from ..models import Product, ProductVariant, StockInItem, StockOutItem, TemplateItem
from ..validation import clean_int, clean_string, coerce_strict_int, ValidationError
from .concurrency import atomic, flush_unique
from stockroom.time_utils import utcnow


logger = logging.getLogger(__name__)


SKU_TAKEN = "The sku has already been taken."

SORTABLE_FIELDS = {
    "name": Product.name,
    "sku": Product.sku,
    "created_at": Product.created_at,
}


def get_product(product_id: int, *, with_trashed: bool = False, only_trashed: bool = False) -> Product:
    query = Product.visible(
        db.session.query(Product).filter(Product.id == product_id),
        with_trashed=with_trashed,
        only_trashed=only_trashed,
    )
    product = query.first()
    if product is None:
        raise NotFound("Product", product_id)
    return product


def list_products(
    *,
    search: str | None = None,
    with_trashed: bool = False,
    only_trashed: bool = False,
    sort: str = "created_at",
    direction: str = "desc",
    limit: int = 15,
    offset: int = 0,
):
    """Returns (products, total). Search matches product name/sku and variant sku."""
    query = Product.visible(db.session.query(Product), with_trashed=with_trashed, only_trashed=only_trashed)

    if search:
        pattern = f"%{search.strip()}%"
        variant_match = (
            db.session.query(ProductVariant.id)
            .filter(ProductVariant.product_id == Product.id, ProductVariant.sku.ilike(pattern))
            .exists()
        )
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern), variant_match))

    column = SORTABLE_FIELDS.get(sort, Product.created_at)
    ordering = column.asc() if direction == "asc" else column.desc()

    total = query.count()
    products = query.order_by(ordering, Product.id.desc()).offset(offset).limit(limit).all()
    return products, total


def list_variants(*, search: str | None = None, limit: int = 50) -> list[ProductVariant]:
    """Live variants of live products, for stock and template pickers."""
    query = (
        db.session.query(ProductVariant)
        .join(Product, Product.id == ProductVariant.product_id)
        .filter(ProductVariant.deleted_at.is_(None), Product.deleted_at.is_(None))
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            ProductVariant.name.ilike(pattern),
            ProductVariant.sku.ilike(pattern),
            Product.name.ilike(pattern),
        ))
    return query.order_by(Product.name, ProductVariant.name).limit(limit).all()


def _sku_taken(model, sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(model.id).filter(model.sku == sku)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query.first() is not None


def _clean_variants(raw, errors: FieldErrors, *, product: Product | None) -> list[dict]:
    """
    Validate the variants array. Each entry: name, sku, and either an id of a
    variant of this product (update) or an opening stock_current (new).
    """
    if raw is None or not isinstance(raw, list):
        errors.add("variants", "The variants field must be an array.")
        return []
    if not raw:
        errors.add("variants", "The variants field must have at least 1 items.")
        return []

    own_ids = {v.id for v in product.variants} if product is not None else set()
    seen_skus: set[str] = set()
    cleaned = []

    for index, entry in enumerate(raw):
        prefix = f"variants.{index}"
        if not isinstance(entry, dict):
            errors.add(prefix, f"The {prefix} field must be an object.")
            continue

        variant_id = None
        if entry.get("id") is not None:
            try:
                variant_id = coerce_strict_int(entry["id"], f"{prefix}.id")
            except ValidationError as e:
                errors.add(f"{prefix}.id", str(e))
                continue
            if variant_id not in own_ids:
                errors.add(f"{prefix}.id", "The selected variant does not belong to this product.")
                continue

        name = clean_string(entry, "name", errors, max_length=100, path=f"{prefix}.name")
        sku = clean_string(entry, "sku", errors, max_length=50, path=f"{prefix}.sku")
        stock = None
        if variant_id is None:
            stock = clean_int(entry, "stock_current", errors, minimum=0, required=False,
                              path=f"{prefix}.stock_current")

        if sku is not None:
            if sku in seen_skus:
                errors.add(f"{prefix}.sku", "The sku has already been listed.")
            elif _sku_taken(ProductVariant, sku, exclude_id=variant_id):
                errors.add(f"{prefix}.sku", SKU_TAKEN)
            seen_skus.add(sku)

        cleaned.append({"id": variant_id, "name": name, "sku": sku, "stock_current": stock or 0})

    return cleaned


def create_product(payload: dict, *, principal, authz) -> Product:
    """
    payload: {"name", "sku", "description"?, "variants": [{"name", "sku", "stock_current"?}]}
    """
    authz.require(principal, "products.create")

    errors = FieldErrors()
    name = clean_string(payload, "name", errors, max_length=255)
    sku = clean_string(payload, "sku", errors, max_length=50)
    description = clean_string(payload, "description", errors, required=False)
    if sku is not None and _sku_taken(Product, sku):
        errors.add("sku", SKU_TAKEN)
    variants = _clean_variants(payload.get("variants"), errors, product=None)
    errors.raise_if_any()

    with atomic():
        product = Product(name=name, sku=sku, description=description)
        db.session.add(product)
        for data in variants:
            product.variants.append(
                ProductVariant(name=data["name"], sku=data["sku"], stock_current=data["stock_current"])
            )
        flush_unique("sku", SKU_TAKEN)

    logger.info("product created id=%s sku=%s variants=%s by user_id=%s",
                product.id, product.sku, len(variants), principal.id)
    return product


def update_product(product_id: int, payload: dict, *, principal, authz) -> Product:
    """
    Partial update. When variants is given it is the full desired list:
    entries with an id update that variant (name, sku), entries without one
    are created, live variants left out are tombstoned.
    """
    authz.require(principal, "products.edit")
    product = get_product(product_id)

    errors = FieldErrors()
    name = clean_string(payload, "name", errors, max_length=255, required="name" in payload)
    sku = clean_string(payload, "sku", errors, max_length=50, required="sku" in payload)
    description = clean_string(payload, "description", errors, required=False)
    if sku is not None and _sku_taken(Product, sku, exclude_id=product.id):
        errors.add("sku", SKU_TAKEN)
    variants = _clean_variants(payload["variants"], errors, product=product) if "variants" in payload else None
    errors.raise_if_any()

    with atomic():
        if name is not None:
            product.name = name
        if sku is not None:
            product.sku = sku
        if "description" in payload:
            product.description = description

        if variants is not None:
            now = utcnow()
            by_id = {v.id: v for v in product.variants}
            kept = {data["id"] for data in variants if data["id"] is not None}
            for variant in product.variants:
                if variant.id not in kept and not variant.is_tombstoned:
                    variant.tombstone(now)
            for data in variants:
                if data["id"] is not None:
                    variant = by_id[data["id"]]
                    variant.name = data["name"]
                    variant.sku = data["sku"]
                    variant.restore()
                else:
                    product.variants.append(
                        ProductVariant(name=data["name"], sku=data["sku"], stock_current=data["stock_current"])
                    )
        flush_unique("sku", SKU_TAKEN)

    logger.info("product updated id=%s by user_id=%s", product_id, principal.id)
    return product


def delete_product(product_id: int, *, principal, authz) -> bool:
    """Tombstone the product and its live variants with one shared timestamp."""
    authz.require(principal, "products.delete")

    with atomic():
        product = get_product(product_id)
        now = utcnow()
        product.tombstone(now)
        for variant in product.variants:
            if not variant.is_tombstoned:
                variant.tombstone(now)

    logger.info("product deleted id=%s by user_id=%s", product_id, principal.id)
    return True


def restore_product(product_id: int, *, principal, authz) -> Product:
    """Restore the product and the variants tombstoned together with it."""
    authz.require(principal, "products.restore")

    with atomic():
        product = get_product(product_id, with_trashed=True)
        if not product.is_tombstoned:
            raise ValidationFailed.single("deleted_at", "Only deleted products can be restored.")
        deleted_at = product.deleted_at
        for variant in product.variants:
            if variant.deleted_at == deleted_at:
                variant.restore()
        product.restore()

    logger.info("product restored id=%s by user_id=%s", product_id, principal.id)
    return product


def _variant_references(variant_ids: list[int]) -> int:
    if not variant_ids:
        return 0
    total = 0
    for model in (StockInItem, StockOutItem, TemplateItem):
        total += (
            db.session.query(db.func.count(model.id))
            .filter(model.product_variant_id.in_(variant_ids))
            .scalar()
        )
    return total


def force_delete_product(product_id: int, *, principal, authz) -> bool:
    """Permanent removal of a tombstoned product and its variants."""
    authz.require(principal, "products.force-delete")

    with atomic():
        product = get_product(product_id, with_trashed=True)
        if not product.is_tombstoned:
            raise ValidationFailed.single("deleted_at", "Only deleted products can be permanently removed.")
        if _variant_references([v.id for v in product.variants]):
            raise ValidationFailed.single(
                "variants",
                "This product's variants are referenced by stock records or templates and cannot be removed.",
            )
        db.session.delete(product)

    logger.info("product purged id=%s by user_id=%s", product_id, principal.id)
    return True
