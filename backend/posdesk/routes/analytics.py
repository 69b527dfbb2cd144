# Overview: Flask API routes for analytics; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g

from ..decorators import require_auth
from ..services import analytics_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("")
@require_auth
def dashboard_route():
    """Revenue, invoice status mix, payment methods and low-stock products."""
    return jsonify(analytics_service.dashboard(g.current_user.id))
