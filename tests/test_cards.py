"""Tests for card validation helpers."""

from datetime import date

import pytest

from billing.cards import (
    card_type_matches,
    format_card_number,
    infer_brand,
    is_expiry_in_future,
    is_valid_card_number,
    is_valid_expiry,
    luhn_checksum_ok,
    mask_card_number,
    validate_card,
)
from billing.models import CardDetails
from conftest import DEBIT_2_SERIES, MASTERCARD, VISA

TODAY = date(2026, 10, 19)


class TestLuhn:
    @pytest.mark.parametrize("number", [VISA, MASTERCARD, DEBIT_2_SERIES, "4111-1111 1111-1111"])
    def test_known_numbers_pass(self, number):
        assert is_valid_card_number(number)

    def test_single_digit_mutation_breaks_checksum(self):
        mutated = 0
        broken = 0
        for pos in range(len(VISA)):
            for digit in "0123456789":
                if digit == VISA[pos]:
                    continue
                candidate = VISA[:pos] + digit + VISA[pos + 1 :]
                mutated += 1
                if not luhn_checksum_ok(candidate):
                    broken += 1
        assert broken / mutated > 0.9

    @pytest.mark.parametrize("number", ["411111111111111", "41111111111111111", "4111abcd11111111", ""])
    def test_wrong_shape_rejected(self, number):
        assert not is_valid_card_number(number)


class TestExpiry:
    @pytest.mark.parametrize("expiry", ["13/25", "00/25", "1/27", "01-27", "0127"])
    def test_malformed_rejected(self, expiry):
        assert not is_valid_expiry(expiry, TODAY)

    def test_current_month_is_expired(self):
        assert not is_expiry_in_future("10/26", TODAY)

    def test_next_month_is_valid(self):
        assert is_expiry_in_future("11/26", TODAY)

    def test_past_month_is_expired(self):
        assert not is_expiry_in_future("09/26", TODAY)


class TestBrandAndType:
    @pytest.mark.parametrize(
        "number,brand",
        [(VISA, "visa"), (MASTERCARD, "mastercard"), ("3782822463100050", "amex"), ("6011111111111117", "discover"), (DEBIT_2_SERIES, "unknown")],
    )
    def test_infer_brand(self, number, brand):
        assert infer_brand(number) == brand

    def test_type_consistency(self):
        assert card_type_matches(VISA, "visa")
        assert card_type_matches(MASTERCARD, "credit")
        assert card_type_matches(DEBIT_2_SERIES, "debit")
        assert not card_type_matches(VISA, "credit")
        assert not card_type_matches(MASTERCARD, "debit")

    def test_format_and_mask(self):
        assert format_card_number(VISA) == "4111 1111 1111 1111"
        assert mask_card_number(VISA) == "************1111"


class TestValidateCard:
    def test_valid_card_has_no_errors(self):
        assert validate_card(CardDetails(VISA, "12/30", "123", "visa"), today=TODAY) == {}

    def test_errors_are_keyed_by_field(self):
        errors = validate_card(CardDetails("1234", "13/30", "12", "amex"), today=TODAY)
        assert errors == {
            "number": "Invalid card number",
            "expiry": "Expiry date must be in MM/YY format",
            "cvv": "CVV must be 3 digits",
            "card_type": "Invalid card type",
        }

    def test_expired_card(self):
        errors = validate_card(CardDetails(VISA, "10/26", "123", "visa"), today=TODAY)
        assert errors == {"expiry": "Card has expired"}

    @pytest.mark.parametrize(
        "expiry, cvv, field",
        [("12/30", "123\n", "cvv"), ("12/30\n", "123", "expiry"), ("12/30", "\u0661\u0662\u0663", "cvv"), ("\u0661\u0662/30", "123", "expiry")],
    )
    def test_trailing_newline_and_non_ascii_digits_rejected(self, expiry, cvv, field):
        errors = validate_card(CardDetails(VISA, expiry, cvv, "visa"), today=TODAY)
        assert list(errors) == [field]

    def test_non_ascii_card_number_rejected(self):
        assert not is_valid_card_number("\uff14111111111111111")

    def test_type_check_only_when_requested(self):
        mismatched = CardDetails(VISA, "12/30", "123", "debit")
        assert validate_card(mismatched, today=TODAY) == {}
        assert validate_card(mismatched, check_type=True, today=TODAY) == {
            "card_type": "Card number does not match selected card type"
        }
