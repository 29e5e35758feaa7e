"""In-process sandbox reproducing the mocked gateway endpoints.

Each handler validates its body with a pydantic schema, re-checks card
expiry and Luhn where the endpoint does, and answers with the same JSON
shape and status codes as the HTTP endpoints: 400 with comma-joined
validation messages, 500 with ``{"success": false, "error": ...}``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Optional

from pydantic import AfterValidator, BaseModel, ValidationError

from billing.cards import infer_brand, is_expiry_in_future, is_valid_card_number
from billing.constant import CARD_TYPES
from billing.gateway import GatewayTransport, make_reference

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_card_number(value: str) -> str:
    if not re.fullmatch(r"\d{16}", value):
        raise ValueError("Card number must be 16 digits")
    return value


def _check_expiry(value: str) -> str:
    if not re.fullmatch(r"(0[1-9]|1[0-2])/[0-9]{2}", value):
        raise ValueError("Invalid expiry date format (MM/YY)")
    return value


def _check_cvv(value: str) -> str:
    if not re.fullmatch(r"\d{3}", value):
        raise ValueError("CVV must be 3 digits")
    return value


def _check_card_type(value: str) -> str:
    if value not in CARD_TYPES:
        raise ValueError("Invalid card type")
    return value


def _check_amount(value: float) -> float:
    if value <= 0:
        raise ValueError("Amount must be greater than zero")
    return value


def _check_bill_id(value: int) -> int:
    if value <= 0:
        raise ValueError("Bill ID must be a positive integer")
    return value


def _required(message: str) -> Callable[[str], str]:
    def check(value: str) -> str:
        if not value:
            raise ValueError(message)
        return value

    return check


def _check_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


CardNumber = Annotated[str, AfterValidator(_check_card_number)]
ExpiryDate = Annotated[str, AfterValidator(_check_expiry)]
Cvv = Annotated[str, AfterValidator(_check_cvv)]
CardTypeName = Annotated[str, AfterValidator(_check_card_type)]
Amount = Annotated[float, AfterValidator(_check_amount)]
BillId = Annotated[int, AfterValidator(_check_bill_id)]


class CardBody(BaseModel):
    cardNumber: CardNumber
    expiryDate: ExpiryDate
    cvv: Cvv
    cardType: CardTypeName


class AdminCardRef(BaseModel):
    cardNumber: Optional[CardNumber] = None
    expiryDate: Optional[ExpiryDate] = None
    cvv: Optional[Cvv] = None
    cardType: Optional[CardTypeName] = None
    last4: Optional[str] = None
    brand: Optional[str] = None


class AdminPaymentBody(BaseModel):
    amount: Amount
    cardDetails: Optional[AdminCardRef] = None


class CustomerPaymentBody(BaseModel):
    amount: Amount
    cardDetails: CardBody
    customerName: Annotated[str, AfterValidator(_required("Customer name is required"))]


class BillTransferBody(BaseModel):
    billId: BillId
    amount: Amount
    cardLast4: Optional[str] = None


class EmailBody(BaseModel):
    to: Annotated[str, AfterValidator(_check_email)]
    subject: Annotated[str, AfterValidator(_required("Subject is required"))]
    text: Annotated[str, AfterValidator(_required("Email body is required"))]
    html: Optional[str] = None


def joined_validation_errors(exc: ValidationError) -> str:
    """Join pydantic errors into a single message, preferring our own wording."""
    messages: list[str] = []
    for err in exc.errors():
        ctx_error = (err.get("ctx") or {}).get("error")
        messages.append(str(ctx_error) if ctx_error is not None else str(err.get("msg", "")))
    return ", ".join(messages)


Handler = Callable[[dict[str, Any]], Awaitable[tuple[int, dict[str, Any]]]]


class SandboxTransport(GatewayTransport):
    """Answers gateway requests in process, with a simulated processing delay."""

    def __init__(self, delay: float = 0.0, today: Callable[[], date] | None = None) -> None:
        self.delay = delay
        self._today = today or date.today
        self.requests: list[tuple[str, dict[str, Any]]] = []
        self._routes: dict[str, tuple[Handler, str]] = {
            "admin/card": (self._admin_card, "An unexpected error occurred during card processing"),
            "admin/card/process-payment": (
                self._admin_process_payment,
                "An unexpected error occurred during payment processing",
            ),
            "customer/process-payment": (
                self._customer_process_payment,
                "An unexpected error occurred during payment processing",
            ),
            "admin/bill/withdraw": (self._bill_withdraw, "An unexpected error occurred during bill withdrawal"),
            "admin/bill/payout": (self._bill_payout, "An unexpected error occurred during bill payout"),
            "send-email": (self._send_email, "An unexpected error occurred while sending the email"),
        }

    async def post(self, path: str, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        self.requests.append((path, body))
        route = self._routes.get(path.strip("/"))
        if route is None:
            return 404, {"success": False, "error": f"Unknown endpoint: {path}"}

        handler, fallback = route
        try:
            return await handler(body)
        except ValidationError as exc:
            return 400, {"success": False, "error": joined_validation_errors(exc)}
        except Exception as exc:
            logger.exception("sandbox handler failed path=%s", path)
            return 500, {"success": False, "error": str(exc) or fallback}

    async def _simulate_latency(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    def _card_rejection(self, number: str, expiry: str) -> str | None:
        if not is_expiry_in_future(expiry, self._today()):
            return "Card has expired"
        if not is_valid_card_number(number):
            return "Invalid card number"
        return None

    async def _admin_card(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        card = CardBody.model_validate(body)
        rejection = self._card_rejection(card.cardNumber, card.expiryDate)
        if rejection:
            return 400, {"success": False, "error": rejection}

        await self._simulate_latency()
        return 200, {
            "success": True,
            "cardDetails": {
                "last4": card.cardNumber[-4:],
                "brand": infer_brand(card.cardNumber),
                "expiryDate": card.expiryDate,
                "cardType": card.cardType,
            },
            "timestamp": _utc_now_iso(),
        }

    async def _admin_process_payment(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        payment = AdminPaymentBody.model_validate(body)
        card = payment.cardDetails
        card_last4 = None
        if card is not None:
            card_last4 = card.last4 or (card.cardNumber[-4:] if card.cardNumber else None)

        await self._simulate_latency()
        return 200, {
            "success": True,
            "paymentIntentId": make_reference("pi_admin"),
            "status": "succeeded",
            "cardLast4": card_last4,
            "amount": payment.amount,
            "timestamp": _utc_now_iso(),
        }

    async def _customer_process_payment(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        payment = CustomerPaymentBody.model_validate(body)
        card = payment.cardDetails
        rejection = self._card_rejection(card.cardNumber, card.expiryDate)
        if rejection:
            return 400, {"success": False, "error": rejection}

        await self._simulate_latency()
        return 200, {
            "success": True,
            "paymentIntentId": make_reference("pi"),
            "status": "succeeded",
            "cardLast4": card.cardNumber[-4:],
            "amount": payment.amount,
            "customerName": payment.customerName,
            "timestamp": _utc_now_iso(),
        }

    async def _bill_withdraw(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        transfer = BillTransferBody.model_validate(body)
        await self._simulate_latency()
        return 200, {
            "success": True,
            "billId": transfer.billId,
            "amount": transfer.amount,
            "status": "withdrawn",
            "transactionId": make_reference("withdraw"),
            "cardLast4": transfer.cardLast4,
            "timestamp": _utc_now_iso(),
        }

    async def _bill_payout(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        transfer = BillTransferBody.model_validate(body)
        await self._simulate_latency()
        return 200, {
            "success": True,
            "billId": transfer.billId,
            "amount": transfer.amount,
            "status": "paid_out",
            "transactionId": make_reference("payout"),
            "timestamp": _utc_now_iso(),
        }

    async def _send_email(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        email = EmailBody.model_validate(body)
        logger.info("sandbox email to=%s subject=%r", email.to, email.subject)
        await self._simulate_latency()
        return 200, {
            "success": True,
            "messageId": make_reference("email"),
            "to": email.to,
            "subject": email.subject,
            "timestamp": _utc_now_iso(),
        }
