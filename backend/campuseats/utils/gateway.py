"""Simulated card/UPI payment gateway.

No money moves: the gateway only checks that the details look like a
real card or UPI address and returns a reference the order can keep.
"""

import re
import secrets
from datetime import date
from typing import Optional

_UPI_RE = re.compile(r"^[A-Za-z0-9._-]{2,256}@[A-Za-z][A-Za-z0-9.-]{1,63}$")
_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")


class PaymentDeclined(ValueError):
    """Raised when simulated payment details are rejected."""


def _digits(value: str) -> str:
    return re.sub(r"[\s-]", "", value or "")


def charge_card(card_number: str, expiry: str, cvv: str, amount: float, today: Optional[date] = None) -> str:
    """Validate card details and return a gateway reference."""
    number = _digits(card_number)
    if len(number) != 16 or not number.isdigit():
        raise PaymentDeclined("Invalid card number")
    if len(cvv or "") != 3 or not cvv.isdigit():
        raise PaymentDeclined("Invalid CVV")
    m = _EXPIRY_RE.match((expiry or "").strip())
    if not m:
        raise PaymentDeclined("Invalid expiry, expected MM/YY")
    today = today or date.today()
    month, year = int(m.group(1)), 2000 + int(m.group(2))
    if (year, month) < (today.year, today.month):
        raise PaymentDeclined("Card expired")
    if amount <= 0:
        raise PaymentDeclined("Invalid amount")
    return f"CARD-{number[-4:]}-{secrets.token_hex(4).upper()}"


def charge_upi(upi_id: str, amount: float) -> str:
    """Validate a UPI virtual payment address and return a gateway reference."""
    if not upi_id or not _UPI_RE.match(upi_id.strip()):
        raise PaymentDeclined("Invalid UPI ID")
    if amount <= 0:
        raise PaymentDeclined("Invalid amount")
    return f"UPI-{secrets.token_hex(6).upper()}"
