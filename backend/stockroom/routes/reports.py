# Overview: Flask API routes for stock movement reports.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services.reporting_service import stock_movement_report
from ..services.stock_record_service import STOCK_IN, STOCK_OUT
from .common import date_arg


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report(kind):
    """
    Query params:
    - start_date, end_date: YYYY-MM-DD (both or neither; default last 7 days)
    - product_id: int (optional)
    """
    return stock_movement_report(
        kind,
        start_date=date_arg("start_date"),
        end_date=date_arg("end_date"),
        product_id=request.args.get("product_id", type=int),
    )


@reports_bp.get("/stock-in")
@require_auth
@require_permission("reports.view")
def stock_in_report_route():
    return _report(STOCK_IN)


@reports_bp.get("/stock-out")
@require_auth
@require_permission("reports.view")
def stock_out_report_route():
    return _report(STOCK_OUT)
