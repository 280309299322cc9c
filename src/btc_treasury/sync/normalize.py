"""Coerce loosely formatted upstream values into numbers and UTC datetimes.

Upstream payloads mix plain numbers with display strings such as
``"$1,234.5M"``, ``"2.3x"`` or ``"-12.5%"`` and dates given either as ISO
strings or epoch milliseconds.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union

_MAGNITUDES = {
    "K": 1e3,
    "M": 1e6,
    "B": 1e9,
    "X": 1.0,
    "%": 1.0,
}

# Everything except digits, separators and sign is noise.
_NOISE_RE = re.compile(r"[^0-9.,+\-]")
# Exponent strings such as "1e3" yield the default.
_EXPONENT_RE = re.compile(r"\d[eE][+\-]?\d")

_TEXT_DATE_FORMATS = (
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
)

Number = Union[int, float, Decimal]


def normalize_number(raw: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Parse ``raw`` into a float, applying a trailing K/M/B/x/% marker.

    Thousands separators are dropped. Unparseable or empty input yields
    ``default`` (``0.0`` unless the caller asks for ``None``) and never raises.

    >>> normalize_number("1.5M")
    1500000.0
    >>> normalize_number("n/a")
    0.0
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
        return value if math.isfinite(value) else default

    text = str(raw).strip()
    if not text:
        return default

    multiplier = 1.0
    marker = text[-1].upper()
    if marker in _MAGNITUDES:
        multiplier = _MAGNITUDES[marker]
        text = text[:-1]

    if _EXPONENT_RE.search(text):
        return default
    cleaned = _NOISE_RE.sub("", text).replace(",", "")
    try:
        value = float(cleaned)
    except ValueError:
        return default
    if not math.isfinite(value):
        return default
    return value * multiplier


def _from_epoch_ms(value: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_date(raw: Any) -> Optional[datetime]:
    """Parse an ISO string, a textual date or epoch milliseconds into an aware UTC datetime.

    Returns None when the value is missing or cannot be parsed so callers can
    decide whether to skip the row or abort.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
        return _from_epoch_ms(value) if math.isfinite(value) else None

    text = str(raw).strip()
    if not text:
        return None

    if re.fullmatch(r"-?\d+", text):
        # Digit strings are epoch milliseconds, same as numeric tokens
        return _from_epoch_ms(int(text))

    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        dt = None
        for fmt in _TEXT_DATE_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if dt is None:
            return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_epoch_ms(raw: Any) -> Optional[int]:
    """Return an integer epoch-millisecond timestamp or None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
        return int(value) if math.isfinite(value) else None
    text = str(raw).strip()
    if re.fullmatch(r"-?\d+(\.\d+)?", text):
        return int(float(text))
    dt = normalize_date(text)
    return int(dt.timestamp() * 1000) if dt is not None else None
