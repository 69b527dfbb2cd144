"""
Sales history

Sales are written only by checkout_service; this module reads them back for
the history screen, the dashboard and the change feed.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Sale
from ..validation import NotFoundError
from posdesk.time_utils import start_of_day, end_of_day


def _query_user_sales(user_id: int):
    return db.session.query(Sale).filter(Sale.user_id == user_id)


def _matches(sale: Sale, needle: str) -> bool:
    if needle in (sale.payment_method or "").lower():
        return True
    return any(needle in (line.product_name or "").lower() for line in sale.lines)


def list_sales(
    user_id: int,
    search: str | None = None,
    start: date | None = None,
    end: date | None = None,
    limit: int | None = None,
) -> list[Sale]:
    """
    Newest sales first, at most `limit`, never more than SALES_FETCH_LIMIT.

    The date range is inclusive on both calendar days. `search` is applied
    after the limit, the same way the history screen filters what it has
    already loaded: it matches the payment method or any line's product
    name, case-insensitively.
    """
    cap = current_app.config.get("SALES_FETCH_LIMIT", 100)
    limit = cap if limit is None else min(limit, cap)

    query = _query_user_sales(user_id)
    if start is not None:
        query = query.filter(Sale.created_at >= start_of_day(start))
    if end is not None:
        query = query.filter(Sale.created_at <= end_of_day(end))

    sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()

    needle = (search or "").strip().lower()
    if needle:
        sales = [s for s in sales if _matches(s, needle)]
    return sales


def sales_snapshot(user_id: int) -> list[dict]:
    return [s.to_dict() for s in list_sales(user_id)]


def get_sale(user_id: int, sale_id: int) -> Sale:
    sale = _query_user_sales(user_id).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def sales_summary(sales: list[Sale]) -> dict:
    total = sum(s.total_cents for s in sales)
    count = len(sales)
    return {
        "total_revenue_cents": total,
        "sale_count": count,
        "average_order_cents": round(total / count) if count else 0,
    }
