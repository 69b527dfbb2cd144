"""
Invoice lifecycle tests.

Verifies:
- Overdue is derived from the due date and never stored
- Creation rules (required fields, due date not in the past, email shape)
- Paid is terminal; mark-paid is idempotent
- Status filter uses the effective status
- PDF and print renditions
"""

from datetime import date, timedelta

import pytest

from posdesk.extensions import db
from posdesk.models import Invoice
from posdesk.models.invoices import effective_status
from posdesk.time_utils import today

from conftest import get_auth_token


def _invoice(db_session, user, *, due_in_days=7, status="Pending", **fields):
    inv = Invoice(
        user_id=user.id,
        client=fields.pop("client", "Acme Traders"),
        amount_cents=fields.pop("amount_cents", 250000),
        description=fields.pop("description", "Consulting"),
        due_date=today() + timedelta(days=due_in_days),
        status=status,
        **fields,
    )
    db_session.add(inv)
    db_session.commit()
    return inv


def _body(**fields):
    body = {
        "client": "Acme Traders",
        "amount_cents": 250000,
        "description": "Shelving install",
        "due_date": (today() + timedelta(days=14)).isoformat(),
    }
    body.update(fields)
    return body


class TestEffectiveStatus:

    @pytest.mark.parametrize(
        "status,due,expected",
        [
            ("Paid", date(2020, 1, 1), "Paid"),
            ("Overdue", date(2999, 1, 1), "Overdue"),
            ("Pending", date(2024, 5, 9), "Overdue"),
            ("Pending", date(2024, 5, 10), "Pending"),
            ("Pending", date(2024, 5, 11), "Pending"),
        ],
    )
    def test_rules(self, status, due, expected):
        assert effective_status(status, due, date(2024, 5, 10)) == expected

    def test_overdue_not_written_back(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a, due_in_days=-3)
        resp = client.get(f"/api/invoices/{inv.id}", headers=headers_a)
        assert resp.json["status"] == "Pending"
        assert resp.json["effective_status"] == "Overdue"


class TestCreateInvoice:

    def test_create_defaults_pending(self, client, headers_a, sent_emails):
        resp = client.post("/api/invoices", json=_body(), headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["invoice"]["status"] == "Pending"
        assert resp.json["invoice"]["effective_status"] == "Pending"
        assert resp.json["email"] is None
        assert sent_emails == []

    def test_due_today_allowed(self, client, headers_a):
        resp = client.post("/api/invoices", json=_body(due_date=today().isoformat()), headers=headers_a)
        assert resp.status_code == 201

    def test_past_due_date_rejected(self, client, headers_a):
        past = (today() - timedelta(days=1)).isoformat()
        resp = client.post("/api/invoices", json=_body(due_date=past), headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["field"] == "due_date"
        assert db.session.query(Invoice).count() == 0

    @pytest.mark.parametrize(
        "fields,field",
        [
            ({"client": ""}, "client"),
            ({"amount_cents": -5}, "amount_cents"),
            ({"email": "not-an-email"}, "email"),
            ({"status": "Draft"}, "status"),
            ({"due_date": "next week"}, "due_date"),
        ],
    )
    def test_invalid_fields(self, client, headers_a, fields, field):
        resp = client.post("/api/invoices", json=_body(**fields), headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["field"] == field

    def test_missing_required(self, client, headers_a):
        resp = client.post("/api/invoices", json={"client": "Acme"}, headers=headers_a)
        assert resp.status_code == 400

    def test_email_attempted_with_placeholder_items(self, client, headers_a, email_config, sent_emails):
        resp = client.post("/api/invoices", json=_body(email="buyer@acme.test"), headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["email"]["sent"] is True
        params = sent_emails[0]["json"]["template_params"]
        assert params["items"] == "Please check the attached invoice for details"
        assert params["total_amount"] == "2500.00"

    def test_email_failure_keeps_invoice(self, client, headers_a):
        resp = client.post("/api/invoices", json=_body(email="buyer@acme.test"), headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["email"]["sent"] is False
        assert db.session.query(Invoice).count() == 1


class TestUpdateInvoice:

    def test_partial_update(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a)
        resp = client.patch(f"/api/invoices/{inv.id}", json={"amount_cents": 1000}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["invoice"]["amount_cents"] == 1000
        assert resp.json["invoice"]["client"] == "Acme Traders"

    def test_unchanged_past_due_date_allowed(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a, due_in_days=-10)
        resp = client.put(
            f"/api/invoices/{inv.id}",
            json={"due_date": inv.due_date.isoformat(), "description": "Edited"},
            headers=headers_a,
        )
        assert resp.status_code == 200

    def test_new_past_due_date_rejected(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a)
        past = (today() - timedelta(days=2)).isoformat()
        resp = client.put(f"/api/invoices/{inv.id}", json={"due_date": past}, headers=headers_a)
        assert resp.status_code == 400

    def test_paid_cannot_reopen(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a, status="Paid")
        resp = client.put(f"/api/invoices/{inv.id}", json={"status": "Pending"}, headers=headers_a)
        assert resp.status_code == 409

    def test_other_user(self, client, headers_b, db_session, user_a):
        inv = _invoice(db_session, user_a)
        assert client.get(f"/api/invoices/{inv.id}", headers=headers_b).status_code == 404
        assert client.put(f"/api/invoices/{inv.id}", json={"amount_cents": 1}, headers=headers_b).status_code == 404


class TestMarkPaid:

    def test_mark_paid_idempotent(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a, due_in_days=-5)

        first = client.post(f"/api/invoices/{inv.id}/mark-paid", headers=headers_a)
        assert first.status_code == 200
        assert first.json["status"] == "Paid"
        assert first.json["effective_status"] == "Paid"

        second = client.post(f"/api/invoices/{inv.id}/mark-paid", headers=headers_a)
        assert second.status_code == 200
        assert second.json["status"] == "Paid"
        assert second.json["updated_at"] == first.json["updated_at"]

    def test_missing(self, client, headers_a):
        assert client.post("/api/invoices/999/mark-paid", headers=headers_a).status_code == 404


class TestListInvoices:

    def test_status_filter_uses_effective_status(self, client, headers_a, db_session, user_a):
        _invoice(db_session, user_a, client="Future")
        _invoice(db_session, user_a, client="Late", due_in_days=-1)
        _invoice(db_session, user_a, client="Done", status="Paid", due_in_days=-30)
        _invoice(db_session, user_a, client="Flagged", status="Overdue", due_in_days=30)

        def names(status):
            resp = client.get(f"/api/invoices?status={status}", headers=headers_a)
            assert resp.status_code == 200
            return sorted(i["client"] for i in resp.json["items"])

        assert names("Pending") == ["Future"]
        assert names("Overdue") == ["Flagged", "Late"]
        assert names("Paid") == ["Done"]
        assert len(names("All")) == 4

    def test_newest_first(self, client, headers_a, db_session, user_a):
        first = _invoice(db_session, user_a, client="First")
        second = _invoice(db_session, user_a, client="Second")
        resp = client.get("/api/invoices", headers=headers_a)
        assert [i["id"] for i in resp.json["items"]] == [second.id, first.id]

    def test_unknown_status(self, client, headers_a):
        assert client.get("/api/invoices?status=Draft", headers=headers_a).status_code == 400


class TestRenditions:

    def test_pdf(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a, description="POS Sale - Tea (2)")
        resp = client.get(f"/api/invoices/{inv.id}/pdf", headers=headers_a)
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert f"invoice-{inv.id}.pdf" in resp.headers["Content-Disposition"]

    def test_print_page(self, client, headers_a, db_session, user_a):
        inv = _invoice(db_session, user_a, description="POS Sale - Tea (2), Chips (1)")
        resp = client.get(f"/api/invoices/{inv.id}/print", headers=headers_a)
        assert resp.status_code == 200
        html = resp.get_data(as_text=True)
        assert "window.print()" in html
        assert "Point of Sale Transaction" in html
        assert "Items: Tea (2), Chips (1)" in html
        assert "Thank you for your business!" in html

    def test_print_page_with_query_token(self, client, db_session, user_a):
        inv = _invoice(db_session, user_a)
        token = get_auth_token(client, user_a.email)
        resp = client.get(f"/api/invoices/{inv.id}/print?access_token={token}")
        assert resp.status_code == 200
        assert "window.print()" in resp.get_data(as_text=True)

    def test_print_page_bad_query_token(self, client, db_session, user_a):
        inv = _invoice(db_session, user_a)
        resp = client.get(f"/api/invoices/{inv.id}/print?access_token=nope")
        assert resp.status_code == 401
        assert resp.json["login_url"] == "/login"

    def test_pdf_ignores_query_token(self, client, db_session, user_a):
        inv = _invoice(db_session, user_a)
        token = get_auth_token(client, user_a.email)
        assert client.get(f"/api/invoices/{inv.id}/pdf?access_token={token}").status_code == 401

    def test_pdf_other_user(self, client, headers_b, db_session, user_a):
        inv = _invoice(db_session, user_a)
        assert client.get(f"/api/invoices/{inv.id}/pdf", headers=headers_b).status_code == 404
