"""
Payload validation tests.
"""

from datetime import date

import pytest

from posdesk.models import Invoice, Product, INVOICE_STATUSES
from posdesk.validation import (
    ModelValidationPolicy,
    ValidationError,
    apply_threshold_default,
    enforce_rules_invoice,
    is_valid_email,
    validate_payload,
)

POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "description", "price_cents", "stock", "low_stock_threshold"},
    required_on_create={"name", "category"},
)


class TestValidatePayload:

    def test_blank_optional_text_becomes_none(self):
        patch = validate_payload(model=Product, payload={"description": "  "}, policy=POLICY, partial=True)
        assert patch == {"description": None}

    def test_whole_float_accepted(self):
        patch = validate_payload(model=Product, payload={"stock": 5.0}, policy=POLICY, partial=True)
        assert patch["stock"] == 5

    @pytest.mark.parametrize("raw", [5.5, "1e3", True, [1]])
    def test_bad_integers(self, raw):
        with pytest.raises(ValidationError) as exc:
            validate_payload(model=Product, payload={"stock": raw}, policy=POLICY, partial=True)
        assert exc.value.field == "stock"

    def test_not_a_dict(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload=["name"], policy=POLICY, partial=False)

    def test_null_on_required_column(self):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload={"name": None}, policy=POLICY, partial=True)


class TestThresholdDefault:

    def test_create_fills_default(self):
        assert apply_threshold_default({}, partial=False, default=10) == {"low_stock_threshold": 10}

    def test_update_leaves_absent_alone(self):
        assert apply_threshold_default({"stock": 1}, partial=True, default=10) == {"stock": 1}

    def test_update_explicit_blank_resets(self):
        assert apply_threshold_default({"low_stock_threshold": ""}, partial=True, default=10) == {
            "low_stock_threshold": 10
        }


class TestInvoiceRules:

    def test_past_due_date(self):
        with pytest.raises(ValidationError):
            enforce_rules_invoice({"due_date": date(2024, 1, 1)}, INVOICE_STATUSES, today=date(2024, 1, 2))

    def test_due_date_unchanged(self):
        enforce_rules_invoice(
            {"due_date": date(2024, 1, 1)},
            INVOICE_STATUSES,
            today=date(2024, 6, 1),
            current_due_date=date(2024, 1, 1),
        )

    def test_date_coercion(self):
        policy = ModelValidationPolicy(writable_fields={"due_date"})
        patch = validate_payload(model=Invoice, payload={"due_date": "2024-05-10"}, policy=policy, partial=True)
        assert patch["due_date"] == date(2024, 5, 10)

    @pytest.mark.parametrize(
        "value,ok",
        [("a@b.co", True), ("a@b", False), ("@b.co", False), ("a b@c.io", False), ("", False), (None, False)],
    )
    def test_email_shape(self, value, ok):
        assert is_valid_email(value) is ok
