"""Editable static menu and venue configuration."""

from __future__ import annotations

VENUE_NAME = "Sky Lounge"
VENUE_ADDRESS = "123 Main Street, City"
VENUE_PHONE = "(123) 456-7890"
VENUE_EMAIL = "info@skylounge.com"
VENUE_SUPPORT_EMAIL = "support@skylounge.com"

# Canonical menu rows consumed by billing.data (which wraps these into MenuItem instances).
MENU_ITEMS_RAW: list[dict[str, int | str]] = [
    {"id": 1, "name": "Espresso", "price": 250},
    {"id": 2, "name": "Cappuccino", "price": 350},
    {"id": 3, "name": "Latte", "price": 400},
    {"id": 4, "name": "Mocha", "price": 450},
    {"id": 5, "name": "Croissant", "price": 300},
    {"id": 6, "name": "Sandwich", "price": 650},
    {"id": 7, "name": "Salad", "price": 800},
    {"id": 8, "name": "Cake", "price": 500},
]

PAYMENT_METHODS: tuple[str, ...] = ("cash", "card", "digital")

PAYMENT_METHOD_LABELS: dict[str, str] = {
    "cash": "Cash",
    "card": "Card",
    "digital": "Digital Wallet",
}

# ASCII digits only; str.isdigit() also accepts superscripts.
DIGITS = "0123456789"

CARD_TYPES: tuple[str, ...] = ("visa", "debit", "credit")

# First digit of the card number -> inferred brand.
CARD_BRAND_BY_FIRST_DIGIT: dict[str, str] = {
    "4": "visa",
    "5": "mastercard",
    "3": "amex",
    "6": "discover",
}

# Selected card type -> first digits accepted for it.
CARD_TYPE_FIRST_DIGITS: dict[str, tuple[str, ...]] = {
    "visa": ("4",),
    "credit": ("5", "6"),
    "debit": ("2", "3"),
}

SNAPSHOT_KEY_BILLS = "confirmedBills"
SNAPSHOT_KEY_ADMIN_STATE = "adminState"
SNAPSHOT_KEY_ADMIN_CARD = "integratedAdminCard"
SNAPSHOT_KEY_FINANCE = "financeEntries"
