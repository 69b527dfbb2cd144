# Overview: Flask API routes for sales history; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import sales_service
from ..validation import NotFoundError
from posdesk.time_utils import parse_iso_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - search: str (optional) - product name or payment method
    - start, end: YYYY-MM-DD (optional) - inclusive calendar-day range
    - limit: int (optional) - capped at SALES_FETCH_LIMIT
    """
    try:
        start = parse_iso_date(request.args.get("start"))
        end = parse_iso_date(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be YYYY-MM-DD dates"}), 400
    if start and end and start > end:
        return jsonify({"error": "start must be on or before end", "field": "start"}), 400

    limit = request.args.get("limit", type=int)
    if limit is not None and limit <= 0:
        return jsonify({"error": "limit must be > 0", "field": "limit"}), 400

    sales = sales_service.list_sales(
        g.current_user.id,
        search=request.args.get("search"),
        start=start,
        end=end,
        limit=limit,
    )
    return jsonify({
        "items": [s.to_dict() for s in sales],
        "summary": sales_service.sales_summary(sales),
    })


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.current_user.id, sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(sale.to_dict())
