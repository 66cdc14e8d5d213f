"""Tests for quote input validation."""

from __future__ import annotations

from typing import Any

import pytest

from xeroquote.models.quote import QuoteRequest
from xeroquote.quotes.validator import validate_quote


def _request(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "contact_name": "Acme Ltd",
        "contact_email": "accounts@acme.example",
        "line_items": [
            {"description": "Consulting", "quantity": 5, "unit_amount": 150},
            {"description": "Travel", "quantity": 2, "unit_amount": 75},
        ],
        "reference": "Q-2025-01",
        "date": "2025-03-01",
    }
    data.update(overrides)
    return data


class TestValidateQuote:
    def test_valid_request(self) -> None:
        result = validate_quote(_request())
        assert result.valid is True
        assert result.errors == []
        assert bool(result)

    def test_minimal_request(self) -> None:
        result = validate_quote({
            "contact_name": "Acme Ltd",
            "line_items": [{"description": "Consulting", "quantity": 1, "unit_amount": 0}],
        })
        assert result.valid

    def test_camel_case_keys(self) -> None:
        result = validate_quote({
            "contactName": "Acme Ltd",
            "contactEmail": "a@b.co",
            "lineItems": [{"description": "Consulting", "quantity": 1.5, "unitAmount": 99.5}],
        })
        assert result.valid

    def test_accepts_model(self) -> None:
        request = QuoteRequest(
            contact_name="Acme Ltd",
            line_items=[{"description": "Consulting", "quantity": 1, "unit_amount": 10}],
        )
        assert validate_quote(request).valid

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_missing_contact_name(self, name: str | None) -> None:
        result = validate_quote(_request(contact_name=name))
        assert not result.valid
        assert result.errors == ["Contact name is required"]

    def test_missing_contact_name_with_other_errors(self) -> None:
        result = validate_quote(_request(contact_name="", contact_email="nope"))
        name_errors = [e for e in result.errors if "Contact name" in e]
        assert len(name_errors) == 1
        assert len(result.errors) == 2

    def test_no_line_items(self) -> None:
        result = validate_quote(_request(line_items=[]))
        assert result.errors == ["At least one line item is required"]

    def test_line_items_missing_entirely(self) -> None:
        data = _request()
        del data["line_items"]
        assert validate_quote(data).errors == ["At least one line item is required"]

    def test_zero_quantity_indexed(self) -> None:
        result = validate_quote(_request(line_items=[
            {"description": "Consulting", "quantity": 5, "unit_amount": 150},
            {"description": "Travel", "quantity": 0, "unit_amount": 75},
        ]))
        assert result.errors == ["Line item 2: Quantity must be a positive number"]

    def test_negative_quantity_indexed(self) -> None:
        result = validate_quote(_request(line_items=[
            {"description": "Consulting", "quantity": -1, "unit_amount": 150},
        ]))
        assert result.errors == ["Line item 1: Quantity must be a positive number"]

    def test_non_numeric_quantity(self) -> None:
        result = validate_quote(_request(line_items=[
            {"description": "Consulting", "quantity": "five", "unit_amount": 150},
        ]))
        assert result.errors == ["Line item 1: Quantity must be a positive number"]

    def test_boolean_is_not_numeric(self) -> None:
        result = validate_quote(_request(line_items=[
            {"description": "Consulting", "quantity": True, "unit_amount": 150},
        ]))
        assert not result.valid

    def test_negative_unit_amount(self) -> None:
        result = validate_quote(_request(line_items=[
            {"description": "Discount", "quantity": 1, "unit_amount": -5},
        ]))
        assert result.errors == ["Line item 1: Unit amount must be a non-negative number"]

    def test_blank_description(self) -> None:
        result = validate_quote(_request(line_items=[
            {"description": "  ", "quantity": 1, "unit_amount": 5},
        ]))
        assert result.errors == ["Line item 1: Description is required"]

    def test_errors_accumulate_in_order(self) -> None:
        result = validate_quote({
            "contact_name": "",
            "contact_email": "not-an-email",
            "line_items": [{"description": "", "quantity": 0, "unit_amount": -1}],
            "date": "01/02/2025",
        })
        assert result.errors == [
            "Contact name is required",
            "Line item 1: Description is required",
            "Line item 1: Quantity must be a positive number",
            "Line item 1: Unit amount must be a non-negative number",
            "Invalid email format: not-an-email",
            "Invalid date format (expected YYYY-MM-DD): 01/02/2025",
        ]

    @pytest.mark.parametrize("email", ["a@b.co", "first.last@sub.domain.com"])
    def test_valid_emails(self, email: str) -> None:
        assert validate_quote(_request(contact_email=email)).valid

    @pytest.mark.parametrize("email", ["plainaddress", "a@b", "a b@c.com", "@c.com"])
    def test_invalid_emails(self, email: str) -> None:
        result = validate_quote(_request(contact_email=email))
        assert result.errors == [f"Invalid email format: {email}"]

    def test_blank_email_is_ignored(self) -> None:
        assert validate_quote(_request(contact_email="")).valid

    def test_date_shape_only(self) -> None:
        # Only the shape is checked, not calendar validity
        assert validate_quote(_request(date="2025-13-99")).valid

    def test_bad_date(self) -> None:
        result = validate_quote(_request(date="2025-1-5"))
        assert result.errors == ["Invalid date format (expected YYYY-MM-DD): 2025-1-5"]
