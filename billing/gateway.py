"""Payment gateway client and transports.

The client speaks the JSON contracts of the gateway endpoints
(``customer/process-payment``, ``admin/card``, ``admin/card/process-payment``,
``admin/bill/withdraw``, ``admin/bill/payout``, ``send-email``) over a
pluggable transport. It never raises for declines or transport failures;
callers get a :class:`GatewayResult` with ``success=False`` instead.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import uuid4

import httpx

from billing.cards import normalize_card_number
from billing.config import GATEWAY_BASE_URL, GATEWAY_SANDBOX_DELAY_SECONDS, GATEWAY_TIMEOUT_SECONDS
from billing.errors import GatewayError
from billing.models import AdminCard, CardDetails

logger = logging.getLogger(__name__)


def make_reference(prefix: str) -> str:
    """Build an id like ``pi_1718000000000_3f9a1c2e``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid4().hex[:8]}"


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of one gateway call."""

    success: bool
    reference_id: str = ""
    status: str = ""
    last4: str | None = None
    error_message: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, message: str) -> GatewayResult:
        return cls(success=False, error_message=message)


class GatewayTransport(ABC):
    """Delivers a JSON body to a gateway path and returns ``(status_code, payload)``."""

    @abstractmethod
    async def post(self, path: str, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """Raise :class:`GatewayError` when the request cannot be delivered."""

    async def aclose(self) -> None:
        return None


class HttpTransport(GatewayTransport):
    """Posts to a real HTTP deployment of the gateway endpoints."""

    def __init__(self, base_url: str, timeout: float = GATEWAY_TIMEOUT_SECONDS) -> None:
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/") + "/", timeout=timeout)

    async def post(self, path: str, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        try:
            resp = await self._client.post(path, json=body)
        except httpx.TimeoutException as exc:
            raise GatewayError("Gateway request timed out") from exc
        except httpx.HTTPError as exc:
            raise GatewayError(f"Gateway unreachable: {exc}") from exc
        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        return resp.status_code, payload

    async def aclose(self) -> None:
        await self._client.aclose()


def _card_body(card: CardDetails) -> dict[str, str]:
    return {
        "cardNumber": normalize_card_number(card.number),
        "expiryDate": card.expiry,
        "cvv": card.cvv,
        "cardType": card.card_type,
    }


class GatewayClient:
    """Request/response contract to the external payment capability."""

    def __init__(self, transport: GatewayTransport, timeout: float = GATEWAY_TIMEOUT_SECONDS) -> None:
        self._transport = transport
        self._timeout = timeout

    async def _call(
        self, path: str, body: dict[str, Any], fallback: str, reference_key: str | None = None
    ) -> GatewayResult:
        try:
            status_code, payload = await asyncio.wait_for(self._transport.post(path, body), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("gateway timeout path=%s", path)
            return GatewayResult.failure("Gateway request timed out")
        except GatewayError as exc:
            logger.warning("gateway transport failure path=%s error=%s", path, exc)
            return GatewayResult.failure(str(exc) or fallback)

        if status_code >= 400 or not payload.get("success"):
            message = payload.get("error") or fallback
            logger.info("gateway declined path=%s status=%s error=%r", path, status_code, message)
            return GatewayResult(success=False, error_message=str(message), payload=payload)

        return GatewayResult(
            success=True,
            reference_id=str(payload.get(reference_key, "")) if reference_key else "",
            status=str(payload.get("status", "")),
            last4=payload.get("cardLast4"),
            payload=payload,
        )

    async def authorize(
        self,
        amount: Decimal,
        method: str,
        card: CardDetails | None = None,
        customer_name: str = "",
    ) -> GatewayResult:
        """Authorize a customer payment.

        Cash and digital-wallet payments are settled locally and always succeed.
        """
        if method != "card":
            return GatewayResult(success=True, reference_id=make_reference("pi"), status="succeeded")
        if card is None:
            return GatewayResult.failure("Card details are required for card payments")
        body = {
            "amount": float(amount),
            "cardDetails": _card_body(card),
            "customerName": customer_name,
        }
        return await self._call("customer/process-payment", body, "Payment processing failed", "paymentIntentId")

    async def payout(self, amount: Decimal, destination: AdminCard) -> GatewayResult:
        """Transfer ``amount`` to the integrated admin card."""
        body = {
            "amount": float(amount),
            "cardDetails": {
                "last4": destination.last4,
                "brand": destination.brand,
                "expiryDate": destination.expiry_date,
                "cardType": destination.card_type,
            },
        }
        return await self._call("admin/card/process-payment", body, "Failed to process payment", "paymentIntentId")

    async def integrate_card(self, card: CardDetails) -> GatewayResult:
        return await self._call("admin/card", _card_body(card), "Failed to integrate card")

    async def withdraw_bill(self, bill_id: int, amount: Decimal, card_last4: str | None = None) -> GatewayResult:
        body: dict[str, Any] = {"billId": bill_id, "amount": float(amount)}
        if card_last4:
            body["cardLast4"] = card_last4
        return await self._call("admin/bill/withdraw", body, "Withdrawal failed", "transactionId")

    async def payout_bill(self, bill_id: int, amount: Decimal) -> GatewayResult:
        body = {"billId": bill_id, "amount": float(amount)}
        return await self._call("admin/bill/payout", body, "Failed to process payout", "transactionId")

    async def send_email(self, to: str, subject: str, text: str, html: str | None = None) -> GatewayResult:
        body = {"to": to, "subject": subject, "text": text}
        if html is not None:
            body["html"] = html
        return await self._call("send-email", body, "Failed to send email", "messageId")

    async def aclose(self) -> None:
        await self._transport.aclose()


def create_gateway(base_url: str | None = None, delay: float | None = None) -> GatewayClient:
    """Build a client for ``base_url``, or for the in-process sandbox when it is empty."""
    url = GATEWAY_BASE_URL if base_url is None else base_url
    if url:
        logger.info("gateway transport=http base_url=%s", url)
        return GatewayClient(HttpTransport(url))

    from billing.sandbox import SandboxTransport

    sandbox_delay = GATEWAY_SANDBOX_DELAY_SECONDS if delay is None else delay
    logger.info("gateway transport=sandbox delay=%.2fs", sandbox_delay)
    return GatewayClient(SandboxTransport(delay=sandbox_delay))
