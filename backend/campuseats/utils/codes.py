"""Generators for order numbers, pickup codes, share links and OTPs."""

import secrets
import string
import time

_SHARE_ALPHABET = string.ascii_lowercase + string.digits


def generate_order_number() -> str:
    """Return `ORD` + last 6 digits of the epoch millis + 3 random digits."""
    millis = str(int(time.time() * 1000))[-6:]
    return f"ORD{millis}{secrets.randbelow(1000):03d}"


def generate_pickup_code() -> str:
    """Random 6-digit code (never starts with 0)."""
    return str(100000 + secrets.randbelow(900000))


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def generate_share_link(length: int = 22) -> str:
    return "".join(secrets.choice(_SHARE_ALPHABET) for _ in range(length))
