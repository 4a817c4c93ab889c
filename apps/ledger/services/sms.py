"""Money formatting and SMS/telephone deep links for debt reminders."""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from urllib.parse import quote

CURRENCY_SUFFIXES = {
    "UZS": "so'm",
}

PLACEHOLDER_CUSTOMER = "{mijoz}"
PLACEHOLDER_STORE = "{do'kon}"
PLACEHOLDER_AMOUNT = "{summa}"


def format_currency(amount, currency: str = "UZS") -> str:
    """Whole units, space-grouped thousands, e.g. ``1 250 000 so'm``."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        return str(amount)
    rounded = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    grouped = f"{abs(rounded):,}".replace(",", " ")
    sign = "-" if rounded < 0 else ""
    code = (currency or "UZS").upper()
    suffix = CURRENCY_SUFFIXES.get(code, code)
    return f"{sign}{grouped} {suffix}"


def render_sms(template: str, customer_name: str, store_name: str, amount_text: str) -> str:
    return (
        (template or "")
        .replace(PLACEHOLDER_CUSTOMER, customer_name or "")
        .replace(PLACEHOLDER_STORE, store_name or "")
        .replace(PLACEHOLDER_AMOUNT, amount_text or "")
    )


def clean_phone(phone: str) -> str:
    return re.sub(r"[^\d+]", "", phone or "")


def sms_link(phone: str, body: str, ios: bool = False) -> str:
    # iOS expects "&body=", everything else "?body=".
    separator = "&" if ios else "?"
    return f"sms:{clean_phone(phone)}{separator}body={quote(body, safe='')}"


def tel_link(phone: str) -> str:
    return f"tel:{clean_phone(phone)}"
