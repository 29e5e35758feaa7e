"""Runtime configuration defaults for persistence, gateway and printing."""

from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DB_PATH = os.environ.get("BILLING_DB_PATH", "data/billing.db")
LOG_PATH = os.environ.get("BILLING_LOG_PATH", "/tmp/billing-debug.log")

# Empty URL selects the in-process sandbox gateway.
GATEWAY_BASE_URL = os.environ.get("BILLING_GATEWAY_URL", "").strip()
GATEWAY_TIMEOUT_SECONDS = _env_float("BILLING_GATEWAY_TIMEOUT", 10.0)
GATEWAY_SANDBOX_DELAY_SECONDS = _env_float("BILLING_GATEWAY_DELAY", 1.0)

TAX_RATE = "0.17"
CURRENCY_LABEL = "Rs."

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 384
PRINTER_FONT_SIZE = 28
PRINTER_FONT_PATH = "/System/Library/Fonts/SFNS.ttf"
PRINTER_LEFT_INDENT_PX = 8
PRINTER_TAIL_SPACER_PX = 70
