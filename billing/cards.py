"""Card number, expiry, CVV and brand validation.

All functions are pure and never raise for malformed input; validation
failures come back as a dict of messages keyed by field name.
"""

from __future__ import annotations

import re
from datetime import date

from billing.constant import CARD_BRAND_BY_FIRST_DIGIT, CARD_TYPE_FIRST_DIGITS, CARD_TYPES
from billing.models import CardDetails

_SEPARATORS_RE = re.compile(r"[\s-]")
_CARD_NUMBER_RE = re.compile(r"[0-9]{16}")
_EXPIRY_RE = re.compile(r"(0[1-9]|1[0-2])/([0-9]{2})")
_CVV_RE = re.compile(r"[0-9]{3}")


def normalize_card_number(number: str) -> str:
    """Strip whitespace and dashes from a typed card number."""
    return _SEPARATORS_RE.sub("", number or "")


def luhn_checksum_ok(digits: str) -> bool:
    """Run the Luhn check over a string of digits."""
    total = 0
    double = False
    for ch in reversed(digits):
        digit = int(ch)
        if double:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
        double = not double
    return total % 10 == 0


def is_valid_card_number(number: str) -> bool:
    digits = normalize_card_number(number)
    if not _CARD_NUMBER_RE.fullmatch(digits):
        return False
    return luhn_checksum_ok(digits)


def expiry_format_ok(expiry: str) -> bool:
    return bool(_EXPIRY_RE.fullmatch(expiry or ""))


def is_expiry_in_future(expiry: str, today: date | None = None) -> bool:
    """True when the first day of the expiry month is strictly after ``today``.

    The current month therefore counts as expired.
    """
    match = _EXPIRY_RE.fullmatch(expiry or "")
    if match is None:
        return False
    month, year = int(match.group(1)), int(match.group(2))
    today = today or date.today()
    return date(2000 + year, month, 1) > today


def is_valid_expiry(expiry: str, today: date | None = None) -> bool:
    return expiry_format_ok(expiry) and is_expiry_in_future(expiry, today)


def is_valid_cvv(cvv: str) -> bool:
    return bool(_CVV_RE.fullmatch(cvv or ""))


def infer_brand(number: str) -> str:
    """Infer the card brand from the first digit."""
    digits = normalize_card_number(number)
    if not digits:
        return "unknown"
    return CARD_BRAND_BY_FIRST_DIGIT.get(digits[0], "unknown")


def card_type_matches(number: str, card_type: str) -> bool:
    """Check the selected card type against the first digit of the number."""
    digits = normalize_card_number(number)
    allowed = CARD_TYPE_FIRST_DIGITS.get(card_type)
    if not digits or allowed is None:
        return False
    return digits[0] in allowed


def last4(number: str) -> str:
    return normalize_card_number(number)[-4:]


def format_card_number(number: str) -> str:
    """Group digits in blocks of four: ``4111 1111 1111 1111``."""
    digits = normalize_card_number(number)
    return " ".join(digits[i : i + 4] for i in range(0, len(digits), 4))


def mask_card_number(number: str) -> str:
    """Replace all but the last four digits with ``*``."""
    digits = normalize_card_number(number)
    return digits[-4:].rjust(len(digits), "*")


def validate_card(card: CardDetails, check_type: bool = False, today: date | None = None) -> dict[str, str]:
    """Validate raw card input and return field-keyed error messages.

    ``check_type`` enables the card-type/first-digit consistency rule used
    when integrating the admin card.
    """
    errors: dict[str, str] = {}

    if not is_valid_card_number(card.number):
        errors["number"] = "Invalid card number"

    if not expiry_format_ok(card.expiry):
        errors["expiry"] = "Expiry date must be in MM/YY format"
    elif not is_expiry_in_future(card.expiry, today):
        errors["expiry"] = "Card has expired"

    if not is_valid_cvv(card.cvv):
        errors["cvv"] = "CVV must be 3 digits"

    if card.card_type not in CARD_TYPES:
        errors["card_type"] = "Invalid card type"
    elif check_type and not card_type_matches(card.number, card.card_type):
        errors["card_type"] = "Card number does not match selected card type"

    return errors
