# Overview: Dashboard aggregates over a user's sales, invoices and catalog.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Sale, Invoice, Product, PAYMENT_METHODS, PRODUCT_CATEGORIES, INVOICE_STATUSES
from ..models.invoices import effective_status
from posdesk.time_utils import today as utc_today


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _sales_figures(user_id: int) -> dict:
    revenue, count = (
        db.session.query(func.coalesce(func.sum(Sale.total_cents), 0), func.count(Sale.id))
        .filter(Sale.user_id == user_id)
        .one()
    )

    by_method = {m: 0 for m in PAYMENT_METHODS}
    rows = (
        db.session.query(Sale.payment_method, func.count(Sale.id))
        .filter(Sale.user_id == user_id)
        .group_by(Sale.payment_method)
        .all()
    )
    for method, n in rows:
        by_method[method] = n

    return {
        "total_revenue_cents": int(revenue),
        "total_sales": count,
        "payment_methods": [
            {"method": m, "count": n, "percent": _percent(n, count)}
            for m, n in by_method.items()
        ],
    }


def _invoice_figures(user_id: int, as_of: date) -> dict:
    rows = (
        db.session.query(Invoice.status, Invoice.due_date, Invoice.amount_cents)
        .filter(Invoice.user_id == user_id)
        .all()
    )
    counts = {s: 0 for s in INVOICE_STATUSES}
    amount = 0
    for status, due_date, amount_cents in rows:
        counts[effective_status(status, due_date, as_of)] += 1
        amount += amount_cents

    total = len(rows)
    return {
        "total_invoice_amount_cents": amount,
        "total_invoices": total,
        "invoice_status": {
            s: {"count": n, "percent": _percent(n, total)} for s, n in counts.items()
        },
    }


def _product_figures(user_id: int) -> dict:
    rows = (
        db.session.query(Product.category, func.count(Product.id))
        .filter(Product.user_id == user_id)
        .group_by(Product.category)
        .all()
    )
    by_category = {c: 0 for c in PRODUCT_CATEGORIES}
    for category, n in rows:
        by_category[category] = n

    low_stock = (
        db.session.query(Product)
        .filter(Product.user_id == user_id, Product.stock <= Product.low_stock_threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return {
        "total_products": sum(by_category.values()),
        "products_by_category": by_category,
        "low_stock_products": [p.to_dict() for p in low_stock],
    }


def dashboard(user_id: int, today: date | None = None) -> dict:
    """
    Aggregate figures for the analytics screen.

    Invoice status counts use the effective status as of `today`, so an
    unpaid invoice past its due date counts as Overdue.
    """
    as_of = today or utc_today()
    result = {"as_of": as_of.isoformat()}
    result.update(_sales_figures(user_id))
    result.update(_invoice_figures(user_id, as_of))
    result.update(_product_figures(user_id))
    return result
