# backend/posdesk/services/products_service.py
"""
Products Service

All product operations are scoped to the owning user. A product id that
belongs to someone else behaves exactly like a missing one.
"""
from __future__ import annotations
from ..extensions import db
from ..models import Product
from ..validation import NotFoundError
from .change_feed import publish_changes

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "category",
    "description",
    "barcode",
    "price_cents",
    "stock",
    "low_stock_threshold",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _query_user_products(user_id: int):
    return db.session.query(Product).filter(Product.user_id == user_id)


def list_products(
    user_id: int,
    category: str | None = None,
    low_stock_only: bool = False,
) -> list[Product]:
    """
    User-scoped product listing ordered by name.

    Args:
        user_id: Owning user
        category: Only products in this category ("All" or None = every category)
        low_stock_only: Only products whose stock is at or below their threshold
    """
    query = _query_user_products(user_id)

    if category and category != "All":
        query = query.filter(Product.category == category)

    if low_stock_only:
        query = query.filter(Product.stock <= Product.low_stock_threshold)

    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def products_snapshot(user_id: int) -> list[dict]:
    return [p.to_dict() for p in list_products(user_id)]


def get_product(user_id: int, product_id: int) -> Product:
    p = _query_user_products(user_id).filter(Product.id == product_id).first()
    if not p:
        raise NotFoundError("Product not found")
    return p


def find_by_barcode(user_id: int, barcode: str) -> Product:
    p = _query_user_products(user_id).filter(Product.barcode == barcode.strip()).first()
    if not p:
        raise NotFoundError("Product not found")
    return p


def create_product(*, user_id: int, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    The patch must already have passed validate_payload/enforce_rules_product.
    """
    p = Product(user_id=user_id)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    publish_changes(user_id, "products")
    return p


def update_product(*, user_id: int, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    Raises:
        NotFoundError: If the product doesn't exist for this user
    """
    p = get_product(user_id, product_id)
    apply_product_patch(p, patch)
    db.session.commit()

    publish_changes(user_id, "products")
    return p


def delete_product(*, user_id: int, product_id: int) -> None:
    """
    Hard-delete a product.

    Sales and invoices keep their own name/price snapshots, so nothing else
    is touched.

    Raises:
        NotFoundError: If the product doesn't exist for this user
    """
    p = get_product(user_id, product_id)
    db.session.delete(p)
    db.session.commit()

    publish_changes(user_id, "products")
