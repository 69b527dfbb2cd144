# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/posdesk/routes/products.py
"""
Product catalog routes.

All product operations are scoped to the signed-in user (g.current_user).
All routes require authentication.
"""
from flask import Blueprint, request, g, jsonify, current_app

from ..extensions import db
from ..services import products_service
from ..models import Product, PRODUCT_CATEGORIES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    apply_threshold_default,
    enforce_rules_product,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "description", "barcode", "price_cents", "stock", "low_stock_threshold"},
    required_on_create={"name", "category"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _clean_patch(payload: dict, *, partial: bool) -> dict:
    payload = apply_threshold_default(
        payload,
        partial=partial,
        default=current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"],
    )
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch, PRODUCT_CATEGORIES)
    return patch


@products_bp.get("")
@require_auth
def list_products():
    """
    List the user's products ordered by name.

    Query params:
    - category: str (optional) - one category label, or "All"
    - low_stock: bool (optional) - only products at or below their threshold
    """
    category = request.args.get("category")
    low_stock_only = request.args.get("low_stock", "false").lower() in {"1", "true", "yes"}

    if category and category != "All" and category not in PRODUCT_CATEGORIES:
        return jsonify({"error": f"category must be one of: All, {', '.join(PRODUCT_CATEGORIES)}"}), 400

    products = products_service.list_products(
        g.current_user.id,
        category=category,
        low_stock_only=low_stock_only,
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/categories")
@require_auth
def list_categories():
    return jsonify({"categories": list(PRODUCT_CATEGORIES)})


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        p = products_service.get_product(g.current_user.id, product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(p.to_dict())


@products_bp.get("/barcode/<string:barcode>")
@require_auth
def get_product_by_barcode_route(barcode: str):
    """Scanner lookup used by the POS screen."""
    try:
        p = products_service.find_by_barcode(g.current_user.id, barcode)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(p.to_dict())


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = _clean_patch(payload, partial=False)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        created = products_service.create_product(user_id=g.current_user.id, patch=patch)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created.to_dict()), 201


@products_bp.route("/<int:product_id>", methods=["PUT", "PATCH"])
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = _clean_patch(payload, partial=True)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        updated = products_service.update_product(user_id=g.current_user.id, product_id=product_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(updated.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(user_id=g.current_user.id, product_id=product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True}), 200
