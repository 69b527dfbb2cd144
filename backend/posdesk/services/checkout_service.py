"""
POS checkout: turns a cart into a sale, its derived invoice, and stock
decrements.

The three writes share one database transaction. Either all of them are
committed or none is; a missing product or insufficient stock aborts the
whole checkout. The optional invoice email is sent only after the commit
and its outcome is reported alongside the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..models import Product, Sale, SaleLine, Invoice, InvoiceLine, PAYMENT_METHODS
from ..models.invoices import STATUS_PAID
from ..validation import ValidationError
from posdesk.time_utils import today as utc_today
from .cart_service import Cart, CartError, CartItem
from .change_feed import publish_changes
from .concurrency import lock_for_update
from . import email_service
from .email_service import EmailOutcome

logger = logging.getLogger(__name__)

WALK_IN_CLIENT = "Walk-in Customer"


class CheckoutError(Exception):
    """Raised when a checkout is rejected; nothing has been written."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class CheckoutResult:
    sale: Sale
    invoice: Invoice
    email: EmailOutcome | None

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "invoice": self.invoice.to_dict(),
            "email": self.email.to_dict() if self.email else None,
        }


def describe_lines(items: list[CartItem]) -> str:
    """"POS Sale - Tea (2), Chips (1)" """
    parts = ", ".join(f"{item.name} ({item.quantity})" for item in items)
    return f"POS Sale - {parts}"


def _lock_products(user_id: int, product_ids: list[int]) -> dict[int, Product]:
    rows = lock_for_update(
        db.session.query(Product).filter(
            Product.user_id == user_id,
            Product.id.in_(product_ids),
        )
    ).all()
    return {p.id: p for p in rows}


def _check_stock(items: list[CartItem], products: dict[int, Product], allow_negative_stock: bool) -> None:
    missing = [
        {"product_id": item.product_id, "name": item.name, "reason": "missing"}
        for item in items
        if item.product_id not in products
    ]
    if missing:
        raise CheckoutError("Some products in the cart no longer exist", details={"items": missing})

    if allow_negative_stock:
        return

    insufficient = []
    for item in items:
        product = products[item.product_id]
        if product.stock < item.quantity:
            insufficient.append({
                "product_id": item.product_id,
                "name": product.name,
                "requested_quantity": item.quantity,
                "stock": product.stock,
                "reason": "insufficient_stock",
            })
    if insufficient:
        raise CheckoutError("Insufficient stock to complete sale", details={"items": insufficient})


def _write_records(
    *,
    items: list[CartItem],
    user_id: int,
    payment_method: str,
    customer_name: str | None,
    customer_email: str | None,
    as_of: date,
    allow_negative_stock: bool,
) -> tuple[Sale, Invoice]:
    products = _lock_products(user_id, [item.product_id for item in items])
    _check_stock(items, products, allow_negative_stock)

    total = sum(item.line_total_cents for item in items)

    sale = Sale(
        user_id=user_id,
        total_cents=total,
        payment_method=payment_method,
        customer_name=customer_name,
    )
    for position, item in enumerate(items):
        sale.lines.append(SaleLine(
            position=position,
            product_id=item.product_id,
            product_name=item.name,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.line_total_cents,
        ))
    db.session.add(sale)
    db.session.flush()  # sale.id for the invoice link

    invoice = Invoice(
        user_id=user_id,
        client=customer_name or WALK_IN_CLIENT,
        email=customer_email,
        amount_cents=total,
        description=describe_lines(items),
        due_date=as_of,
        status=STATUS_PAID,
        sale_id=sale.id,
    )
    for position, item in enumerate(items):
        invoice.items.append(InvoiceLine(
            position=position,
            name=item.name,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.line_total_cents,
        ))
    db.session.add(invoice)

    for item in items:
        products[item.product_id].stock -= item.quantity

    return sale, invoice


def checkout(
    *,
    cart: Cart,
    user_id: int,
    payment_method: str,
    customer_name: str | None = None,
    customer_email: str | None = None,
    allow_negative_stock: bool = False,
    as_of: date | None = None,
) -> CheckoutResult:
    """
    Complete a sale from the cart.

    Raises:
        ValidationError: Unknown payment method
        CheckoutError: Empty cart, missing products or insufficient stock.
            The database is left untouched.
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}", field="payment_method")
    # One copy of the lines is used for every step below
    items = cart.items
    if not items:
        raise CheckoutError("Cart is empty")

    customer_name = (customer_name or "").strip() or None
    customer_email = (customer_email or "").strip() or None

    try:
        sale, invoice = _write_records(
            items=items,
            user_id=user_id,
            payment_method=payment_method,
            customer_name=customer_name,
            customer_email=customer_email,
            as_of=as_of or utc_today(),
            allow_negative_stock=allow_negative_stock,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Checkout committed sale=%s invoice=%s total_cents=%s lines=%s",
        sale.id, invoice.id, sale.total_cents, len(sale.lines),
    )
    publish_changes(user_id, "sales", "invoices", "products")

    outcome = None
    if customer_email:
        outcome = email_service.notify_invoice(
            invoice_id=invoice.id,
            email=customer_email,
            customer_name=customer_name,
            total_cents=sale.total_cents,
            items=email_service.format_item_list(items),
        )

    cart.clear()
    return CheckoutResult(sale=sale, invoice=invoice, email=outcome)


__all__ = ["CheckoutError", "CheckoutResult", "CartError", "checkout", "describe_lines"]
