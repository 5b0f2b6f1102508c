# Overview: Flask API routes for products and their variants; parses input and returns JSON responses.

"""
Product catalog routes.

SECURITY: All routes require authentication.
- Reads require products.view
- Writes are checked in the service layer (products.create/edit/delete/
  restore/force-delete)
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..services import products_service
from ..services.authorization_service import get_authorization
from .common import flag_arg, json_body, page_args, paginated


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("products.view")
def list_products_route():
    """
    Query params:
    - search: str (optional) - product name/sku or variant sku
    - with_trashed / only_trashed: bool (optional)
    - sort: name|sku|created_at, direction: asc|desc
    - limit, offset: int
    """
    limit, offset = page_args()
    products, total = products_service.list_products(
        search=request.args.get("search"),
        with_trashed=flag_arg("with_trashed"),
        only_trashed=flag_arg("only_trashed"),
        sort=request.args.get("sort", "created_at"),
        direction=request.args.get("direction", "desc"),
        limit=limit,
        offset=offset,
    )
    return paginated(products, total, limit, offset)


@products_bp.get("/variants")
@require_auth
@require_permission("products.view")
def list_variants_route():
    """Live variants for pickers. Query params: search, limit (max 100)."""
    limit, _offset = page_args()
    variants = products_service.list_variants(search=request.args.get("search"), limit=limit)
    return {"items": [v.to_dict() for v in variants]}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("products.view")
def get_product_route(product_id: int):
    product = products_service.get_product(product_id, with_trashed=flag_arg("with_trashed"))
    return product.to_dict()


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Request body:
    {
        "name": "Arabica Beans",
        "sku": "ARB",
        "description": "...",
        "variants": [{"name": "250g", "sku": "ARB-250", "stock_current": 10}]
    }
    """
    product = products_service.create_product(json_body(), principal=g.current_user, authz=get_authorization())
    return product.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """
    Partial update. "variants", when present, is the full desired list;
    entries with "id" are edited (stock_current is ignored), entries without
    are created, live variants not listed are soft-deleted.
    """
    product = products_service.update_product(
        product_id, json_body(), principal=g.current_user, authz=get_authorization()
    )
    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    products_service.delete_product(product_id, principal=g.current_user, authz=get_authorization())
    return {"success": True}


@products_bp.post("/<int:product_id>/restore")
@require_auth
def restore_product_route(product_id: int):
    product = products_service.restore_product(product_id, principal=g.current_user, authz=get_authorization())
    return product.to_dict()


@products_bp.delete("/<int:product_id>/force")
@require_auth
def force_delete_product_route(product_id: int):
    products_service.force_delete_product(product_id, principal=g.current_user, authz=get_authorization())
    return {"success": True}
