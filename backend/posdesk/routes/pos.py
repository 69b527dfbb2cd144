# Overview: Flask API routes for the POS screen: cart editing and checkout.

"""
POS Routes

The cart belongs to the caller's session (one cart per signed-in token) and
lives in process memory until checkout, clear or logout.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..extensions import db
from ..services import products_service
from ..services.cart_service import CartError, get_cart_registry
from ..services.checkout_service import CheckoutError, checkout
from ..validation import NotFoundError, ValidationError


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _cart_key() -> int:
    return g.session_context.session.id


def _current_cart():
    return get_cart_registry().get(_cart_key())


def _parse_quantity(data: dict, default: int | None = None) -> int:
    raw = data.get("quantity", default)
    if raw is None:
        raise ValidationError("quantity is required", field="quantity")
    if isinstance(raw, bool):
        raise ValidationError("quantity must be an integer", field="quantity")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer", field="quantity")
    if isinstance(raw, float) and not raw.is_integer():
        raise ValidationError("quantity must be an integer", field="quantity")
    return value


@pos_bp.get("/cart")
@require_auth
def get_cart_route():
    return jsonify(_current_cart().to_dict())


@pos_bp.post("/cart/items")
@require_auth
def add_to_cart_route():
    """
    Add a product to the cart (quantity 1 unless given).

    Body: {product_id} or {barcode}, optional quantity.
    Name and unit price are snapshotted from the catalog on first add.
    """
    data = request.get_json(silent=True) or {}

    try:
        quantity = _parse_quantity(data, default=1)
        if quantity <= 0:
            raise ValidationError("quantity must be > 0", field="quantity")
        if data.get("barcode"):
            product = products_service.find_by_barcode(g.current_user.id, str(data["barcode"]))
        elif data.get("product_id") is not None:
            product = products_service.get_product(g.current_user.id, int(data["product_id"]))
        else:
            return jsonify({"error": "product_id or barcode required", "field": "product_id"}), 400
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except (TypeError, ValueError):
        return jsonify({"error": "product_id must be an integer", "field": "product_id"}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    if product.stock <= 0 and not current_app.config["ALLOW_NEGATIVE_STOCK"]:
        return jsonify({"error": "Product is out of stock", "details": {"product_id": product.id}}), 409

    cart = _current_cart()
    try:
        cart.add(product.id, product.name, product.price_cents, quantity=quantity)
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 409

    return jsonify(cart.to_dict()), 200


@pos_bp.post("/cart/items/<int:product_id>/decrement")
@require_auth
def decrement_cart_item_route(product_id: int):
    cart = _current_cart()
    try:
        cart.decrement(product_id)
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify(cart.to_dict()), 200


@pos_bp.put("/cart/items/<int:product_id>")
@require_auth
def set_cart_quantity_route(product_id: int):
    """Set a line's quantity; zero or less removes the line."""
    data = request.get_json(silent=True) or {}
    try:
        quantity = _parse_quantity(data)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    cart = _current_cart()
    try:
        cart.set_quantity(product_id, quantity)
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify(cart.to_dict()), 200


@pos_bp.delete("/cart/items/<int:product_id>")
@require_auth
def remove_cart_item_route(product_id: int):
    cart = _current_cart()
    try:
        cart.remove(product_id)
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify(cart.to_dict()), 200


@pos_bp.delete("/cart")
@require_auth
def clear_cart_route():
    cart = _current_cart()
    try:
        cart.empty()
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify(cart.to_dict()), 200


@pos_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Complete the sale.

    Body: {payment_method, customer_name?, customer_email?}

    Returns 201 {sale, invoice, email}. `email` is null when no address was
    given; otherwise it reports whether the notification went out. A failed
    email never undoes the sale.
    """
    data = request.get_json(silent=True) or {}

    try:
        with get_cart_registry().checkout(_cart_key()) as cart:
            result = checkout(
                cart=cart,
                user_id=g.current_user.id,
                payment_method=data.get("payment_method") or "",
                customer_name=data.get("customer_name"),
                customer_email=data.get("customer_email"),
                allow_negative_stock=current_app.config["ALLOW_NEGATIVE_STOCK"],
            )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except (CartError, CheckoutError) as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to complete checkout")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result.to_dict()), 201
