# Overview: Flask API routes for stock-out templates.

"""
Template routes.

At most one template is active; its variants pre-fill new stock-out records
(see GET /api/templates/active/resolve).
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..services import template_service
from ..services.authorization_service import get_authorization
from .common import flag_arg, json_body, page_args, paginated


templates_bp = Blueprint("templates", __name__, url_prefix="/api/templates")


@templates_bp.get("")
@require_auth
@require_permission("templates.view")
def list_templates_route():
    limit, offset = page_args()
    templates, total = template_service.list_templates(
        search=request.args.get("search"),
        with_trashed=flag_arg("with_trashed"),
        only_trashed=flag_arg("only_trashed"),
        limit=limit,
        offset=offset,
    )
    return paginated(templates, total, limit, offset)


@templates_bp.get("/active")
@require_auth
@require_permission("templates.view")
def active_template_route():
    template = template_service.get_active_template()
    return {"template": template.to_dict() if template else None}


@templates_bp.get("/active/resolve")
@require_auth
@require_permission("stock-out.create")
def resolve_active_template_route():
    """Pre-filled stock-out lines (quantity 0) from the active template."""
    return template_service.resolve_active()


@templates_bp.get("/<int:template_id>")
@require_auth
@require_permission("templates.view")
def get_template_route(template_id: int):
    template = template_service.get_template(template_id, with_trashed=flag_arg("with_trashed"))
    return template.to_dict()


@templates_bp.post("")
@require_auth
def create_template_route():
    """
    Request body:
    {
        "name": "Morning run",
        "variants": [3, 5, 8],
        "is_active": false
    }
    """
    template = template_service.create_template(json_body(), principal=g.current_user, authz=get_authorization())
    return template.to_dict(), 201


@templates_bp.put("/<int:template_id>")
@require_auth
def update_template_route(template_id: int):
    """Request body: {"name"?, "variants"?: [variant_id, ...]} ("variants": [] empties it)."""
    template = template_service.update_template(
        template_id, json_body(), principal=g.current_user, authz=get_authorization()
    )
    return template.to_dict()


@templates_bp.post("/<int:template_id>/activate")
@require_auth
def activate_template_route(template_id: int):
    template = template_service.set_active(template_id, principal=g.current_user, authz=get_authorization())
    return template.to_dict()


@templates_bp.post("/<int:template_id>/deactivate")
@require_auth
def deactivate_template_route(template_id: int):
    template = template_service.deactivate(template_id, principal=g.current_user, authz=get_authorization())
    return template.to_dict()


@templates_bp.delete("/<int:template_id>")
@require_auth
def delete_template_route(template_id: int):
    template_service.delete_template(template_id, principal=g.current_user, authz=get_authorization())
    return {"success": True}


@templates_bp.post("/<int:template_id>/restore")
@require_auth
def restore_template_route(template_id: int):
    template = template_service.restore_template(template_id, principal=g.current_user, authz=get_authorization())
    return template.to_dict()


@templates_bp.delete("/<int:template_id>/force")
@require_auth
def force_delete_template_route(template_id: int):
    template_service.force_delete_template(template_id, principal=g.current_user, authz=get_authorization())
    return {"success": True}
