"""
Email notification tests. The EmailJS transport is replaced by a fake
httpx.post; nothing leaves the process.
"""

from types import SimpleNamespace

import httpx
import pytest

from posdesk.services import email_service
from posdesk.services.email_service import (
    EmailConfig,
    EmailConfigurationError,
    EmailDeliveryError,
    InvalidEmailError,
)


def _config(**overrides):
    values = dict(
        api_url="https://api.emailjs.test/send",
        service_id="service_x",
        template_id="template_x",
        public_key="public_x",
        private_key="",
        timeout=5.0,
        public_base_url="http://shop.test",
    )
    values.update(overrides)
    return EmailConfig(**values)


def _send(config, **overrides):
    kwargs = dict(invoice_id=42, email="buyer@acme.test", customer_name="Buyer", total_cents=13000, config=config)
    kwargs.update(overrides)
    email_service.send_invoice_email(**kwargs)


class TestPreconditions:

    @pytest.mark.parametrize(
        "overrides",
        [
            {"service_id": ""},
            {"template_id": ""},
            {"public_key": ""},
            {"service_id": "YOUR_SERVICE_ID"},
            {"public_key": "your_public_key"},
        ],
    )
    def test_unconfigured(self, app, overrides, sent_emails):
        with pytest.raises(EmailConfigurationError):
            _send(_config(**overrides))
        assert sent_emails == []

    @pytest.mark.parametrize("address", [None, "", "   ", "buyer", "buyer@acme", "a b@acme.test"])
    def test_invalid_address(self, app, address, sent_emails):
        with pytest.raises(InvalidEmailError):
            _send(_config(), email=address)
        assert sent_emails == []


class TestDelivery:

    def test_payload(self, app, sent_emails):
        _send(_config(private_key="private_x"), items="Tea x 1 = ₹130.00")

        call = sent_emails[0]
        assert call["url"] == "https://api.emailjs.test/send"
        assert call["timeout"] == 5.0
        body = call["json"]
        assert body["service_id"] == "service_x"
        assert body["template_id"] == "template_x"
        assert body["user_id"] == "public_x"
        assert body["accessToken"] == "private_x"
        assert body["template_params"] == {
            "to_email": "buyer@acme.test",
            "to_name": "Buyer",
            "customer_name": "Buyer",
            "invoice_id": "42",
            "total_amount": "130.00",
            "invoice_url": "http://shop.test/print/42",
            "items": "Tea x 1 = ₹130.00",
        }

    def test_no_private_key_no_access_token(self, app, sent_emails):
        _send(_config())
        assert "accessToken" not in sent_emails[0]["json"]

    def test_provider_error(self, app, monkeypatch):
        def fake_post(url, json=None, timeout=None, **kwargs):
            return httpx.Response(400, text="The template ID is invalid", request=httpx.Request("POST", url))

        monkeypatch.setattr(httpx, "post", fake_post)
        with pytest.raises(EmailDeliveryError, match="400"):
            _send(_config())

    def test_transport_error(self, app, monkeypatch):
        def fake_post(url, json=None, timeout=None, **kwargs):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(httpx, "post", fake_post)
        with pytest.raises(EmailDeliveryError):
            _send(_config())


class TestNotifyInvoice:

    def test_success(self, app, email_config, sent_emails):
        outcome = email_service.notify_invoice(
            invoice_id=7, email="buyer@acme.test", customer_name=None, total_cents=500,
        )
        assert outcome.sent is True
        assert sent_emails[0]["json"]["template_params"]["to_name"] == "Customer"

    def test_failure_is_reported_not_raised(self, app, sent_emails):
        outcome = email_service.notify_invoice(
            invoice_id=7, email="buyer@acme.test", customer_name="Buyer", total_cents=500,
        )
        assert outcome.sent is False
        assert outcome.to_dict()["error"] == "Email service is not configured"

    def test_format_item_list(self):
        items = [
            SimpleNamespace(name="Tea", quantity=2, line_total_cents=10000),
            SimpleNamespace(name="Chips", quantity=1, line_total_cents=3050),
        ]
        assert email_service.format_item_list(items) == "Tea x 2 = ₹100.00\nChips x 1 = ₹30.50"
