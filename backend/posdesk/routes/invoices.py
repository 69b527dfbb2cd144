# Overview: Flask API routes for invoices; parses input and returns JSON responses.

# backend/posdesk/routes/invoices.py
"""
Invoice routes.

Invoices can be listed, created, edited and marked paid; there is no delete.
After a create or edit, if the invoice carries an email address, a
notification is attempted and its outcome returned under "email" next to the
invoice. A failed email never fails the request.
"""
from flask import Blueprint, request, g, jsonify, current_app, render_template, Response

from ..decorators import require_auth, require_auth_allow_query_token
from ..extensions import db
from ..models import Invoice, INVOICE_STATUSES
from ..services import invoice_service, pdf_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..formatting import format_money
from posdesk.time_utils import today as utc_today

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={"client", "email", "amount_cents", "description", "due_date", "status"},
    required_on_create={"client", "amount_cents", "description", "due_date"},
)

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _with_email(invoice, outcome) -> dict:
    return {
        "invoice": invoice.to_dict(),
        "email": outcome.to_dict() if outcome else None,
    }


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    Newest first.

    Query params:
    - status: All | Pending | Paid | Overdue (matches the effective status)
    """
    status = request.args.get("status")
    try:
        invoices = invoice_service.list_invoices(g.current_user.id, status=status)
    except ValueError as e:
        return jsonify({"error": str(e), "field": "status"}), 400

    as_of = utc_today()
    return jsonify({
        "items": [inv.to_dict(as_of) for inv in invoices],
        "count": len(invoices),
    })


@invoices_bp.get("/statuses")
@require_auth
def list_statuses_route():
    return jsonify({"statuses": list(INVOICE_STATUSES)})


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        inv = invoice_service.get_invoice(g.current_user.id, invoice_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(inv.to_dict())


@invoices_bp.post("")
@require_auth
def create_invoice_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_POLICY, partial=False)
        created, outcome = invoice_service.create_invoice(user_id=g.current_user.id, patch=patch)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_with_email(created, outcome)), 201


@invoices_bp.route("/<int:invoice_id>", methods=["PUT", "PATCH"])
@require_auth
def update_invoice_route(invoice_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_POLICY, partial=True)
        updated, outcome = invoice_service.update_invoice(
            user_id=g.current_user.id,
            invoice_id=invoice_id,
            patch=patch,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_with_email(updated, outcome)), 200


@invoices_bp.post("/<int:invoice_id>/mark-paid")
@require_auth
def mark_paid_route(invoice_id: int):
    """Idempotent: marking a paid invoice again returns it unchanged."""
    try:
        inv = invoice_service.mark_paid(user_id=g.current_user.id, invoice_id=invoice_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark invoice paid")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(inv.to_dict()), 200


@invoices_bp.get("/<int:invoice_id>/pdf")
@require_auth
def invoice_pdf_route(invoice_id: int):
    try:
        inv = invoice_service.get_invoice(g.current_user.id, invoice_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    pdf_bytes = pdf_service.render_invoice_pdf(inv)
    return Response(
        pdf_bytes,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="invoice-{inv.id}.pdf"'},
    )


@invoices_bp.get("/<int:invoice_id>/print")
@require_auth_allow_query_token
def invoice_print_route(invoice_id: int):
    """
    Printable HTML page; opens the browser print dialog on load.

    Opened with window.open, so `?access_token=` is accepted as well.
    """
    try:
        inv = invoice_service.get_invoice(g.current_user.id, invoice_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    heading, description = pdf_service.describe_for_print(inv.description)
    return render_template(
        "invoice_print.html",
        invoice=inv,
        status=inv.effective_status(),
        description_heading=heading,
        description=description,
        money=lambda cents: format_money(cents, "₹"),
    )
