from __future__ import annotations

from datetime import date

from ..extensions import db
from posdesk.time_utils import to_utc_z, utcnow, today as utc_today

STATUS_PENDING = "Pending"
STATUS_PAID = "Paid"
STATUS_OVERDUE = "Overdue"
INVOICE_STATUSES = (STATUS_PENDING, STATUS_PAID, STATUS_OVERDUE)


def effective_status(status: str, due_date: date | None, as_of: date) -> str:
    """
    Status as shown to the user. Overdue is derived, never written back:
    an unpaid invoice whose due date is before `as_of` reads as Overdue.
    """
    if status == STATUS_PAID:
        return STATUS_PAID
    if status == STATUS_OVERDUE:
        return STATUS_OVERDUE
    if due_date is not None and due_date < as_of:
        return STATUS_OVERDUE
    return STATUS_PENDING


class Invoice(db.Model):
    """
    Invoice issued manually or derived from a POS sale.

    Stored status only moves towards Paid. Items are optional: manual
    invoices usually carry a free-text description only.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_user_created", "user_id", "created_at"),
        db.Index("ix_invoices_user_status", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    client = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)

    # Originating sale for POS invoices
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=db.func.now(),
    )

    items = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )

    def effective_status(self, as_of: date | None = None) -> str:
        return effective_status(self.status, self.due_date, as_of or utc_today())

    def to_dict(self, as_of: date | None = None) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "client": self.client,
            "email": self.email,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "items": [item.to_dict() for item in self.items],
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status,
            "effective_status": self.effective_status(as_of),
            "sale_id": self.sale_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceLine(db.Model):
    """Structured invoice item (copied from the sale for POS invoices)."""
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
