# Overview: Stock-out templates: CRUD, the single-active rule, and resolution into pre-filled lines.

"""
Template Service

A template is a named set of product variants. The active template
pre-populates new stock-out records.

INVARIANTS:
- A variant appears at most once per template. A duplicate id in the input is
  a validation error at "variants.<index>", never silently dropped.
- At most one template is active. set_active locks every template row and
  then deactivates the others and activates the target in the same
  transaction, so concurrent calls serialize instead of interleaving.
- Soft delete needs the template inactive and empty, checked on the locked row
  so a concurrent set_active cannot slip in between; restore and force delete
  need it tombstoned.
"""

from __future__ import annotations

import logging

from ..errors import FieldErrors, NotFound, ValidationFailed
from ..extensions import db
from ..models import ProductVariant, Template, TemplateItem
from ..validation import clean_bool, clean_id_list, clean_string, coerce_strict_int
from .concurrency import atomic, lock_for_update
from stockroom.time_utils import utcnow


logger = logging.getLogger(__name__)


def get_template(template_id: int, *, with_trashed: bool = False, only_trashed: bool = False) -> Template:
    query = Template.visible(
        db.session.query(Template).filter(Template.id == template_id),
        with_trashed=with_trashed,
        only_trashed=only_trashed,
    )
    template = query.first()
    if template is None:
        raise NotFound("Template", template_id)
    return template


def _lock_template(template_id: int, *, with_trashed: bool = False) -> Template:
    """Row-locked, freshly read template; blocks behind a concurrent set_active."""
    query = Template.visible(
        db.session.query(Template).filter(Template.id == template_id),
        with_trashed=with_trashed,
    )
    template = lock_for_update(query).populate_existing().first()
    if template is None:
        raise NotFound("Template", template_id)
    return template


def list_templates(
    *,
    search: str | None = None,
    with_trashed: bool = False,
    only_trashed: bool = False,
    limit: int = 15,
    offset: int = 0,
):
    """Active template first, then newest. Returns (templates, total)."""
    query = Template.visible(db.session.query(Template), with_trashed=with_trashed, only_trashed=only_trashed)
    if search:
        query = query.filter(Template.name.ilike(f"%{search.strip()}%"))
    total = query.count()
    templates = (
        query.order_by(Template.is_active.desc(), Template.created_at.desc(), Template.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return templates, total


def get_active_template() -> Template | None:
    return (
        db.session.query(Template)
        .filter(Template.is_active.is_(True), Template.deleted_at.is_(None))
        .first()
    )


def resolve_active() -> dict:
    """
    Pre-filled stock-out lines from the active template.

    Tombstoned variants are skipped. Quantities start at 0.
    """
    template = get_active_template()
    if template is None:
        return {"template": None, "items": []}

    items = []
    for item in template.items:
        variant = item.variant
        if variant is None or variant.is_tombstoned:
            continue
        items.append({
            "product_variant_id": variant.id,
            "quantity": 0,
            "variant_name": variant.name,
            "variant_sku": variant.sku,
            "product_name": variant.product.name if variant.product else None,
            "stock_current": variant.stock_current,
        })
    return {"template": {"id": template.id, "name": template.name}, "items": items}


def _clean_template_payload(payload: dict, *, partial: bool) -> tuple[str | None, list[int] | None]:
    """
    Create needs a name and at least one variant. Update takes either; an
    update may empty the variant list so the template can then be deleted.
    """
    errors = FieldErrors()
    name = clean_string(payload, "name", errors, max_length=255, required=not partial or "name" in payload)

    variant_ids = None
    if not partial or "variants" in payload:
        raw = payload.get("variants")
        variant_ids = clean_id_list(raw, "variants", errors, min_items=0 if partial else 1)
        if variant_ids:
            existing = {
                variant_id for (variant_id,) in db.session.query(ProductVariant.id)
                .filter(ProductVariant.id.in_(variant_ids), ProductVariant.deleted_at.is_(None))
                .all()
            }
            for index, value in enumerate(raw):
                path = f"variants.{index}"
                if path in errors:
                    continue
                if coerce_strict_int(value, path) not in existing:
                    errors.add(path, "The selected variant is invalid.")
    errors.raise_if_any()
    return name, variant_ids


def _activate_exclusively(template: Template) -> None:
    """
    Deactivate every other template and activate this one. Caller owns the
    transaction; all template rows are locked first.
    """
    lock_for_update(db.session.query(Template).order_by(Template.id)).populate_existing().all()
    db.session.query(Template).filter(Template.id != template.id, Template.is_active.is_(True)).update(
        {Template.is_active: False}, synchronize_session="fetch"
    )
    template.is_active = True


def create_template(payload: dict, *, principal, authz) -> Template:
    """
    payload: {"name": str, "variants": [variant_id, ...], "is_active"?: bool}

    A template created active takes the active slot from whichever template
    held it.
    """
    authz.require(principal, "templates.create")
    name, variant_ids = _clean_template_payload(payload, partial=False)
    make_active = clean_bool(payload.get("is_active"), default=False)

    with atomic():
        template = Template(name=name, is_active=False)
        db.session.add(template)
        for variant_id in variant_ids:
            template.items.append(TemplateItem(product_variant_id=variant_id))
        db.session.flush()
        if make_active:
            _activate_exclusively(template)

    logger.info("template created id=%s active=%s by user_id=%s", template.id, make_active, principal.id)
    return template


def update_template(template_id: int, payload: dict, *, principal, authz) -> Template:
    """
    Rename and/or replace the variant set. Items are diffed: variants no longer
    listed are removed, new ones added, unchanged ones kept.
    """
    authz.require(principal, "templates.edit")
    get_template(template_id)
    name, variant_ids = _clean_template_payload(payload, partial=True)

    with atomic():
        template = _lock_template(template_id)
        if name is not None:
            template.name = name
        if variant_ids is not None:
            wanted = set(variant_ids)
            current = {item.product_variant_id: item for item in template.items}
            for variant_id, item in current.items():
                if variant_id not in wanted:
                    template.items.remove(item)
            for variant_id in variant_ids:
                if variant_id not in current:
                    template.items.append(TemplateItem(product_variant_id=variant_id))

    logger.info("template updated id=%s by user_id=%s", template_id, principal.id)
    return template


def set_active(template_id: int, *, principal, authz) -> Template:
    authz.require(principal, "templates.set-active")

    with atomic():
        template = get_template(template_id)
        _activate_exclusively(template)

    logger.info("template activated id=%s by user_id=%s", template_id, principal.id)
    return template


def deactivate(template_id: int, *, principal, authz) -> Template:
    authz.require(principal, "templates.set-active")

    with atomic():
        template = _lock_template(template_id)
        template.is_active = False

    logger.info("template deactivated id=%s by user_id=%s", template_id, principal.id)
    return template


def _ensure_removable(template: Template) -> None:
    errors = FieldErrors()
    if template.is_active:
        errors.add("is_active", "An active template cannot be deleted. Deactivate it first.")
    if template.items:
        errors.add("items", "A template that still has variants cannot be deleted. Remove its variants first.")
    errors.raise_if_any()


def delete_template(template_id: int, *, principal, authz) -> bool:
    """Soft delete (tombstone). Requires is_active=False and no items."""
    authz.require(principal, "templates.delete")

    with atomic():
        template = _lock_template(template_id)
        _ensure_removable(template)
        template.tombstone(utcnow())

    logger.info("template deleted id=%s by user_id=%s", template_id, principal.id)
    return True


def restore_template(template_id: int, *, principal, authz) -> Template:
    authz.require(principal, "templates.restore")

    with atomic():
        template = _lock_template(template_id, with_trashed=True)
        if not template.is_tombstoned:
            raise ValidationFailed.single("deleted_at", "Only deleted templates can be restored.")
        template.restore()

    logger.info("template restored id=%s by user_id=%s", template_id, principal.id)
    return template


def force_delete_template(template_id: int, *, principal, authz) -> bool:
    """Permanent removal. Only a tombstoned, inactive, empty template can be purged."""
    authz.require(principal, "templates.force-delete")

    with atomic():
        template = _lock_template(template_id, with_trashed=True)
        if not template.is_tombstoned:
            raise ValidationFailed.single("deleted_at", "Only deleted templates can be permanently removed.")
        _ensure_removable(template)
        db.session.delete(template)

    logger.info("template purged id=%s by user_id=%s", template_id, principal.id)
    return True
