"""Exception types raised by the billing core."""

from __future__ import annotations


class BillingError(Exception):
    """Base class for user-facing billing failures."""


class BillError(BillingError, ValueError):
    """The draft bill is not in a state that allows the requested action."""


class LedgerError(BillingError, ValueError):
    """A withdraw/payout/admin-card transition was rejected."""


class GatewayError(BillingError, RuntimeError):
    """The payment gateway declined or failed a request."""


class CardValidationError(BillingError, ValueError):
    """Card input failed validation; ``errors`` is keyed by field name."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__(", ".join(self.errors.values()) or "Invalid card details")


class FinanceError(BillingError, ValueError):
    """A finance sheet entry was rejected."""
