# Overview: Best-effort invoice notifications through the EmailJS REST API.

"""
Email Service

Sending is a side effect of a save that has already been committed. Every
failure (missing provider settings, bad address, provider error) is raised
as an EmailError subclass inside this module and converted to an
EmailOutcome by notify_invoice(); callers never see an exception and
nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import httpx
from flask import current_app

from ..formatting import cents_to_amount
from ..validation import is_valid_email

logger = logging.getLogger(__name__)

# Shown in the template for manual invoices, which rarely carry line items
MANUAL_INVOICE_ITEMS = "Please check the attached invoice for details"

# Values shipped in sample env files; treated the same as unset
_PLACEHOLDER_VALUES = {
    "your_service_id",
    "your_template_id",
    "your_public_key",
    "YOUR_SERVICE_ID",
    "YOUR_TEMPLATE_ID",
    "YOUR_PUBLIC_KEY",
}


class EmailError(Exception):
    """Base class for notification failures."""


class EmailConfigurationError(EmailError):
    pass


class InvalidEmailError(EmailError):
    pass


class EmailDeliveryError(EmailError):
    pass


@dataclass(frozen=True)
class EmailConfig:
    api_url: str
    service_id: str
    template_id: str
    public_key: str
    private_key: str
    timeout: float
    public_base_url: str

    @classmethod
    def from_app(cls, app=None) -> "EmailConfig":
        cfg = (app or current_app).config
        return cls(
            api_url=cfg.get("EMAILJS_API_URL", ""),
            service_id=cfg.get("EMAILJS_SERVICE_ID", "") or "",
            template_id=cfg.get("EMAILJS_TEMPLATE_ID", "") or "",
            public_key=cfg.get("EMAILJS_PUBLIC_KEY", "") or "",
            private_key=cfg.get("EMAILJS_PRIVATE_KEY", "") or "",
            timeout=float(cfg.get("EMAIL_TIMEOUT_SECONDS", 10)),
            public_base_url=(cfg.get("PUBLIC_BASE_URL", "") or "").rstrip("/"),
        )

    @property
    def is_configured(self) -> bool:
        for value in (self.service_id, self.template_id, self.public_key):
            if not value or value in _PLACEHOLDER_VALUES:
                return False
        return bool(self.api_url)


@dataclass(frozen=True)
class EmailOutcome:
    sent: bool
    error: str | None = None

    def to_dict(self) -> dict:
        return {"sent": self.sent, "error": self.error}


def format_item_list(items: Iterable) -> str:
    """
    One line per cart/sale item: "Tea x 2 = ₹100.00".

    Accepts anything with name, quantity and line_total_cents attributes.
    """
    return "\n".join(
        f"{item.name} x {item.quantity} = ₹{cents_to_amount(item.line_total_cents)}"
        for item in items
    )


def build_invoice_params(
    *,
    config: EmailConfig,
    invoice_id: int,
    email: str,
    customer_name: str | None,
    total_cents: int,
    items: str | None,
) -> dict:
    name = customer_name or "Customer"
    return {
        "to_email": email,
        "to_name": name,
        "customer_name": name,
        "invoice_id": str(invoice_id),
        "total_amount": cents_to_amount(total_cents),
        "invoice_url": f"{config.public_base_url}/print/{invoice_id}",
        "items": items or MANUAL_INVOICE_ITEMS,
    }


def send_invoice_email(
    *,
    invoice_id: int,
    email: str | None,
    customer_name: str | None,
    total_cents: int,
    items: str | None = None,
    config: EmailConfig | None = None,
) -> None:
    """
    Send one invoice notification.

    Raises:
        EmailConfigurationError: Provider ids missing or left as placeholders
        InvalidEmailError: Empty or malformed recipient
        EmailDeliveryError: Transport failure or non-2xx provider response
    """
    config = config or EmailConfig.from_app()
    if not config.is_configured:
        raise EmailConfigurationError("Email service is not configured")

    email = (email or "").strip()
    if not email:
        raise InvalidEmailError("Customer email is required")
    if not is_valid_email(email):
        raise InvalidEmailError(f"Invalid email address: {email}")

    body = {
        "service_id": config.service_id,
        "template_id": config.template_id,
        "user_id": config.public_key,
        "template_params": build_invoice_params(
            config=config,
            invoice_id=invoice_id,
            email=email,
            customer_name=customer_name,
            total_cents=total_cents,
            items=items,
        ),
    }
    if config.private_key:
        body["accessToken"] = config.private_key

    try:
        response = httpx.post(config.api_url, json=body, timeout=config.timeout)
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

    if response.status_code < 200 or response.status_code >= 300:
        raise EmailDeliveryError(
            f"Email provider rejected the request ({response.status_code}): {response.text.strip()}"
        )


def notify_invoice(
    *,
    invoice_id: int,
    email: str | None,
    customer_name: str | None,
    total_cents: int,
    items: str | None = None,
) -> EmailOutcome:
    """Attempt the invoice email and report the outcome instead of raising."""
    try:
        send_invoice_email(
            invoice_id=invoice_id,
            email=email,
            customer_name=customer_name,
            total_cents=total_cents,
            items=items,
        )
    except EmailError as e:
        logger.warning("Invoice email failed invoice=%s: %s", invoice_id, e)
        return EmailOutcome(sent=False, error=str(e))

    logger.info("Invoice email sent invoice=%s", invoice_id)
    return EmailOutcome(sent=True)
