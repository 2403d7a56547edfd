from __future__ import annotations

import datetime as dt
import logging
import re
from decimal import Decimal, InvalidOperation

NUM_CLEAN_RE = re.compile(r"[,\s]")  # remove thousands separators, spaces


logger = logging.getLogger(__name__)


def to_dec(
    s: str | float | int | Decimal | None, default: Decimal = Decimal("0")
) -> Decimal:
    """Convert feed numbers to Decimal safely, coercing placeholders to default.

    Handles:
    - None, "" -> default
    - "-", "--" -> default
    - "N/A", "NaN" -> default (with warning)
    - 12.5 -> Decimal("12.5") (via str, so binary float noise is not carried over)
    - "1,234.56" -> Decimal("1234.56")
    """
    if s is None:
        return default
    if isinstance(s, bool):
        return default
    if isinstance(s, Decimal):
        return s if s.is_finite() else default
    if isinstance(s, (int, float)):
        d = Decimal(str(s))
        return d if d.is_finite() else default

    s_stripped = s.strip()
    if not s_stripped:
        return default

    if s_stripped in {"-", "--"}:
        return default

    if s_stripped in {"N/A", "n/a", "NaN", "nan"}:
        logger.warning(
            'Encountered unavailable value "%s"; treating as %s.',
            s_stripped,
            default,
        )
        return default

    try:
        s_clean = NUM_CLEAN_RE.sub("", s_stripped)
        return Decimal(s_clean)
    except InvalidOperation:
        logger.error("Failed to parse number from: %r; using %s", s, default)
        return default


def to_dec_strict(s: str | float | int | Decimal | None) -> Decimal:
    """Convert a number to Decimal.

    Raises ValueError on invalid/missing data.
    Use this for values where 0 is not a safe stand-in (FX rates).
    """
    if s is None:
        raise ValueError("Value is None")
    if isinstance(s, bool):
        raise ValueError(f"Value is a boolean: {s!r}")
    if isinstance(s, Decimal):
        return s
    if isinstance(s, (int, float)):
        return Decimal(str(s))

    s_stripped = s.strip()
    if not s_stripped:
        raise ValueError("Value is empty string")

    if s_stripped in {"-", "--", "N/A", "n/a"}:
        raise ValueError(f"Value is a placeholder: {s_stripped!r}")

    try:
        s_clean = NUM_CLEAN_RE.sub("", s_stripped)
        return Decimal(s_clean)
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal format: {s!r}") from e


def parse_date(d: str | dt.date) -> dt.date:
    """Parse date-like values.

    Handles 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM:SS.sssZ' and 'YYYY-MM-DD, HH:MM:SS'.
    Only the first ten characters are significant.
    """
    if isinstance(d, dt.datetime):
        return d.date()
    if isinstance(d, dt.date):
        return d
    return dt.date.fromisoformat(d.strip()[:10])


def date_key(d: str | dt.date) -> str:
    """Return YYYY-MM-DD string for a date."""
    if isinstance(d, dt.datetime):
        return d.date().isoformat()
    if isinstance(d, dt.date):
        return d.isoformat()
    return d.strip()[:10]
