# Overview: Flask API routes for stock-in and stock-out records, including submission.

"""
Stock record routes.

Both document families expose the same surface, built by
build_stock_blueprint() from a StockKind:

    GET    <prefix>                    list (+ statistics)
    GET    <prefix>/statistics
    GET    <prefix>/<id>
    POST   <prefix>                    create draft
    PUT    <prefix>/<id>               edit draft
    DELETE <prefix>/<id>               delete draft
    POST   <prefix>/<id>/submit        apply to the ledger

Stock-out additionally serves GET /api/stock-out/prefill, the active
template's lines for a new record.
"""
from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import stock_record_service, template_service
from ..services.authorization_service import get_authorization
from ..services.stock_record_service import StockKind, STOCK_IN, STOCK_OUT
from .common import date_arg, json_body, page_args, paginated


def build_stock_blueprint(kind: StockKind, name: str, url_prefix: str) -> Blueprint:
    bp = Blueprint(name, __name__, url_prefix=url_prefix)

    @bp.get("")
    @require_auth
    @require_permission(kind.permission("view"))
    def list_records_route():
        """
        Query params:
        - status: draft|submitted (optional)
        - date_from, date_to: YYYY-MM-DD (optional)
        - search: transaction code (and note for stock-in)
        - limit, offset: int
        """
        limit, offset = page_args()
        records, total = stock_record_service.list_records(
            kind,
            status=request.args.get("status"),
            date_from=date_arg("date_from"),
            date_to=date_arg("date_to"),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
        return paginated(
            records, total, limit, offset,
            statistics=stock_record_service.record_statistics(kind),
        )

    @bp.get("/statistics")
    @require_auth
    @require_permission(kind.permission("view"))
    def statistics_route():
        return stock_record_service.record_statistics(kind)

    @bp.get("/<int:record_id>")
    @require_auth
    @require_permission(kind.permission("view"))
    def get_record_route(record_id: int):
        record = stock_record_service.get_record(kind, record_id)
        data = record.to_dict()
        data["can_edit"] = stock_record_service.can_mutate(record)
        return data

    @bp.post("")
    @require_auth
    def create_record_route():
        """
        Request body:
        {
            "date": "2026-03-01",
            "items": [{"product_variant_id": 1, "quantity": 5}],
            "note": "..."        // stock-in only
        }
        """
        record = stock_record_service.create_record(
            kind, json_body(), principal=g.current_user, authz=get_authorization()
        )
        return record.to_dict(), 201

    @bp.put("/<int:record_id>")
    @require_auth
    def update_record_route(record_id: int):
        record = stock_record_service.update_record(
            kind, record_id, json_body(), principal=g.current_user, authz=get_authorization()
        )
        return record.to_dict()

    @bp.delete("/<int:record_id>")
    @require_auth
    def delete_record_route(record_id: int):
        stock_record_service.delete_record(kind, record_id, principal=g.current_user, authz=get_authorization())
        return {"success": True}

    @bp.post("/<int:record_id>/submit")
    @require_auth
    def submit_record_route(record_id: int):
        """
        Request body (optional):
        {
            "items": [{"product_variant_id": 1, "quantity": 5}]
        }

        When items is given it replaces the saved lines before they are
        applied. Insufficient stock comes back as 422 keyed on
        items.<index>.quantity.
        """
        items = json_body().get("items")
        record = stock_record_service.submit_record(
            kind, record_id, principal=g.current_user, authz=get_authorization(), items=items
        )
        current_app.logger.info("%s %s submitted via API", kind.name, record.transaction_code)
        return record.to_dict()

    return bp


stock_in_bp = build_stock_blueprint(STOCK_IN, "stock_in", "/api/stock-in")
stock_out_bp = build_stock_blueprint(STOCK_OUT, "stock_out", "/api/stock-out")


@stock_out_bp.get("/prefill")
@require_auth
@require_permission(STOCK_OUT.permission("create"))
def stock_out_prefill_route():
    return template_service.resolve_active()
