# backend/posdesk/services/invoice_service.py
"""
Invoice Service

Invoices are created manually or derived from a POS checkout (see
checkout_service). The stored status only ever moves towards Paid; Overdue
is computed from the due date when read, so list filtering works on the
effective status rather than the stored column.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy import and_, or_

from ..extensions import db
from ..models import Invoice, INVOICE_STATUSES
from ..models.invoices import STATUS_PAID, STATUS_PENDING, STATUS_OVERDUE
from ..validation import ConflictError, NotFoundError, enforce_rules_invoice
from posdesk.time_utils import today as utc_today
from . import email_service
from .change_feed import publish_changes
from .email_service import EmailOutcome

INVOICE_MUTABLE_FIELDS = {"client", "email", "amount_cents", "description", "due_date", "status"}


def _query_user_invoices(user_id: int):
    return db.session.query(Invoice).filter(Invoice.user_id == user_id)


def _effective_status_filter(status: str, as_of: date):
    if status == STATUS_PAID:
        return Invoice.status == STATUS_PAID
    if status == STATUS_OVERDUE:
        return or_(
            Invoice.status == STATUS_OVERDUE,
            and_(Invoice.status == STATUS_PENDING, Invoice.due_date < as_of),
        )
    return and_(Invoice.status == STATUS_PENDING, Invoice.due_date >= as_of)


def list_invoices(user_id: int, status: str | None = None, as_of: date | None = None) -> list[Invoice]:
    """
    Newest first. `status` matches the effective status; None or "All"
    returns everything.
    """
    query = _query_user_invoices(user_id)
    if status and status != "All":
        if status not in INVOICE_STATUSES:
            raise ValueError(f"status must be one of: All, {', '.join(INVOICE_STATUSES)}")
        query = query.filter(_effective_status_filter(status, as_of or utc_today()))
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def invoices_snapshot(user_id: int) -> list[dict]:
    return [inv.to_dict() for inv in list_invoices(user_id)]


def get_invoice(user_id: int, invoice_id: int) -> Invoice:
    inv = _query_user_invoices(user_id).filter(Invoice.id == invoice_id).first()
    if not inv:
        raise NotFoundError("Invoice not found")
    return inv


def _notify(invoice: Invoice) -> EmailOutcome | None:
    if not invoice.email:
        return None
    items = email_service.format_item_list(invoice.items) if invoice.items else None
    return email_service.notify_invoice(
        invoice_id=invoice.id,
        email=invoice.email,
        customer_name=invoice.client,
        total_cents=invoice.amount_cents,
        items=items,
    )


def create_invoice(*, user_id: int, patch: dict, as_of: date | None = None) -> tuple[Invoice, EmailOutcome | None]:
    """
    Create a manual invoice from a validated patch.

    Raises:
        ValidationError: Past due date, unknown status or malformed email
    """
    enforce_rules_invoice(patch, INVOICE_STATUSES, today=as_of or utc_today())

    inv = Invoice(user_id=user_id, status=STATUS_PENDING)
    for k, v in patch.items():
        if k in INVOICE_MUTABLE_FIELDS:
            setattr(inv, k, v)

    db.session.add(inv)
    db.session.commit()
    publish_changes(user_id, "invoices")

    return inv, _notify(inv)


def update_invoice(
    *,
    user_id: int,
    invoice_id: int,
    patch: dict,
    as_of: date | None = None,
) -> tuple[Invoice, EmailOutcome | None]:
    """
    Partial update.

    Raises:
        NotFoundError: Invoice missing for this user
        ValidationError: Changed due date in the past, bad status or email
        ConflictError: Attempt to move a paid invoice back to unpaid
    """
    inv = get_invoice(user_id, invoice_id)
    enforce_rules_invoice(
        patch,
        INVOICE_STATUSES,
        today=as_of or utc_today(),
        current_due_date=inv.due_date,
    )

    new_status = patch.get("status")
    if inv.status == STATUS_PAID and new_status is not None and new_status != STATUS_PAID:
        raise ConflictError("A paid invoice cannot be moved back to unpaid")

    for k, v in patch.items():
        if k in INVOICE_MUTABLE_FIELDS:
            setattr(inv, k, v)

    db.session.commit()
    publish_changes(user_id, "invoices")

    return inv, _notify(inv)


def mark_paid(*, user_id: int, invoice_id: int) -> Invoice:
    """Set status to Paid. Calling it on a paid invoice is a no-op."""
    inv = get_invoice(user_id, invoice_id)
    if inv.status == STATUS_PAID:
        return inv

    inv.status = STATUS_PAID
    db.session.commit()
    publish_changes(user_id, "invoices")
    return inv
