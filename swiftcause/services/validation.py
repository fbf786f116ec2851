# swiftcause/services/validation.py
"""Input validators shared by the payment endpoints."""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from swiftcause.models.donation import PLATFORMS, RECURRING_INTERVALS

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_amount(amount: Any) -> bool:
    """Positive integer in minor units; floats and booleans are rejected."""
    return isinstance(amount, int) and not isinstance(amount, bool) and amount > 0


def is_valid_currency(currency: Any, supported: Iterable[str]) -> bool:
    return isinstance(currency, str) and currency.lower() in {c.lower() for c in supported}


def is_valid_platform(platform: Any) -> bool:
    return isinstance(platform, str) and platform.lower() in PLATFORMS


def is_valid_interval(interval: Any) -> bool:
    return isinstance(interval, str) and interval in RECURRING_INTERVALS


def is_email(s: Any) -> bool:
    return isinstance(s, str) and bool(_EMAIL_RE.match(s.strip()))


def clean_str(v: Any, max_len: int = 255) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s[:max_len] if s else None


def truthy(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in {"1", "true", "yes", "on", "y"}
