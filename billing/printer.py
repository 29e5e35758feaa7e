"""Thermal receipt printing for confirmed bills."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from billing.config import (
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_TAIL_SPACER_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
)
from billing.constant import VENUE_ADDRESS, VENUE_NAME, VENUE_PHONE
from billing.invoice import format_money
from billing.models import ConfirmedBill

logger = logging.getLogger(__name__)

_RULE_TOKEN = "__RULE__"
_RULE_HEIGHT_PX = 12
_RULE_THICKNESS_PX = 2
_RIGHT_GUTTER_PX = 8
# Extra vertical headroom so descenders are not clipped on thermal output.
_LINE_EXTRA_PX = 14
_FONT_OVERRIDE_ENV = "RECEIPT_PRINTER_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
)


def resolve_printer_font_path() -> str:
    """
    Resolve a printer font path.

    Resolution order:
    1. RECEIPT_PRINTER_FONT_PATH (if set)
    2. PRINTER_FONT_PATH
    3. Known Linux fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(PRINTER_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise RuntimeError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def check_printer_dependencies() -> tuple[bool, str]:
    """Check whether printer dependencies are importable and a font resolves."""
    try:
        from escpos.printer import Usb  # noqa: F401
        from PIL import ImageFont

        font_path = resolve_printer_font_path()
        ImageFont.truetype(font_path, max(10, PRINTER_FONT_SIZE // 2))
    except Exception as exc:
        return (False, f"Printer deps unavailable: {exc}")
    return (True, "Printer ready")


def bill_print_lines(bill: ConfirmedBill) -> list[tuple[str, str]]:
    """Receipt content as ``(left, right)`` pairs; a rule is ``(_RULE_TOKEN, "")``."""
    rows: list[tuple[str, str]] = [
        (VENUE_NAME, ""),
        (VENUE_ADDRESS, ""),
        (VENUE_PHONE, ""),
        (_RULE_TOKEN, ""),
        (f"Bill #{bill.bill_id}", bill.date),
        (f"Customer: {bill.customer_name}", ""),
        (_RULE_TOKEN, ""),
    ]
    for line in bill.lines:
        rows.append((f"{line.item.name} x{line.quantity}", format_money(line.line_total)))
    rows.append((_RULE_TOKEN, ""))
    rows.append(("Subtotal", format_money(bill.subtotal)))
    rows.append(("Tax (17%)", format_money(bill.tax)))
    rows.append(("TOTAL", format_money(bill.total)))
    rows.append((_RULE_TOKEN, ""))

    method = bill.payment_method.upper()
    if bill.card_last4:
        method += f" **** {bill.card_last4}"
    rows.append(("Paid by", method))
    rows.append(("Thank you for your business!", ""))
    return rows


def _fit_text_to_px(text: str, font: object, max_width_px: int) -> str:
    from PIL import Image, ImageDraw

    probe = Image.new("1", (1, 1), color=1)
    draw = ImageDraw.Draw(probe)
    if draw.textbbox((0, 0), text, font=font)[2] <= max_width_px:
        return text
    ellipsis = "..."
    trimmed = text
    while trimmed:
        candidate = f"{trimmed}{ellipsis}"
        if draw.textbbox((0, 0), candidate, font=font)[2] <= max_width_px:
            return candidate
        trimmed = trimmed[:-1]
    return ellipsis


def _render_row(left: str, right: str, font: object) -> object:
    from PIL import Image, ImageDraw

    canvas_height = PRINTER_FONT_SIZE + _LINE_EXTRA_PX
    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    draw = ImageDraw.Draw(img)

    right_width = 0
    if right:
        right_bbox = draw.textbbox((0, 0), right, font=font)
        right_width = right_bbox[2] - right_bbox[0]
        right_x = PRINTER_WIDTH_PX - _RIGHT_GUTTER_PX - right_width - right_bbox[0]
        draw.text((right_x, (canvas_height - (right_bbox[3] - right_bbox[1])) // 2 - right_bbox[1]), right, font=font, fill=0)

    max_left = PRINTER_WIDTH_PX - PRINTER_LEFT_INDENT_PX - _RIGHT_GUTTER_PX - right_width - 12
    left = _fit_text_to_px(left, font, max(40, max_left))
    bbox = draw.textbbox((0, 0), left, font=font)
    # Offset by bbox top so descenders are not clipped.
    y = (canvas_height - (bbox[3] - bbox[1])) // 2 - bbox[1]
    draw.text((PRINTER_LEFT_INDENT_PX, y), left, font=font, fill=0)
    return img


def _render_rule() -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (PRINTER_WIDTH_PX, _RULE_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    top = (_RULE_HEIGHT_PX - _RULE_THICKNESS_PX) // 2
    draw.rectangle((0, top, PRINTER_WIDTH_PX - 1, top + _RULE_THICKNESS_PX - 1), fill=0)
    return img


def _render_spacer(height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


def print_bill_receipt(bill: ConfirmedBill) -> None:
    """Print a confirmed bill and cut the ticket at the end."""
    try:
        from escpos.printer import Usb
        from PIL import ImageFont
    except Exception as exc:
        raise RuntimeError(f"Printer dependencies unavailable: {exc}") from exc

    printer = Usb(PRINTER_USB_VENDOR_ID, PRINTER_USB_PRODUCT_ID)
    font = ImageFont.truetype(resolve_printer_font_path(), PRINTER_FONT_SIZE)

    for left, right in bill_print_lines(bill):
        if left == _RULE_TOKEN:
            printer.image(_render_rule())
            continue
        printer.image(_render_row(left, right, font))

    printer.image(_render_spacer(PRINTER_TAIL_SPACER_PX))
    printer.cut()
    logger.info("receipt printed bill=%s", bill.bill_id)
