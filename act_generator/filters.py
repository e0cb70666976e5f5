"""
Built-in text filters for the VariableEngine.

Every filter has the signature ``fn(value: str, *args: str) -> str``.
The engine splits arguments on every ":", so filters whose last argument
may itself contain a colon (date patterns, suffixes, replacements) join the
surplus pieces back together and the rest ignore surplus arguments.
Filters raise FilterError on bad input or bad arguments; the engine catches
it, keeps the unfiltered value and records a ``filter:<name>`` warning.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .errors import FilterError

FilterFunction = Callable[..., str]

_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^\s*[+-]?\d+")
_CURRENCY_CODE = re.compile(r"^[A-Za-z]{3}$")

_CURRENCY_SYMBOLS: Dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "INR": "₹",
    "CNY": "CN¥",
}
_ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}

_DATE_FALLBACK_FORMATS = ("%Y/%m/%d", "%m/%d/%Y", "%Y%m%d")


def parse_number(value: str) -> Optional[float]:
    """Leading-number parse: '12.5kg' -> 12.5, 'abc' -> None."""
    m = _NUMBER_PREFIX.match(value or "")
    if not m:
        return None
    return float(m.group(0))


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    m = _INT_PREFIX.match(raw)
    if not m:
        return None
    return int(m.group(0))


def _require_number(value: str, filter_name: str) -> float:
    num = parse_number(value)
    if num is None:
        raise FilterError(f"{filter_name}: value {value!r} is not numeric")
    return num


def _format_grouped(num: float, decimals: Optional[int]) -> str:
    if decimals is not None:
        return f"{num:,.{decimals}f}"
    # Default: up to 3 fraction digits, trailing zeros dropped
    text = f"{num:,.3f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _parse_date(value: str) -> datetime:
    raw = (value or "").strip()
    if not raw:
        raise FilterError("format: empty date value")
    if raw[-1] in "Zz":
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        parsed = None
        for fmt in _DATE_FALLBACK_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            raise FilterError(f"format: {value!r} is not a valid date")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ─────────────────────────────────────────────────────────────
# Text transformations
# ─────────────────────────────────────────────────────────────
def uppercase(value: str, *_surplus: str) -> str:
    return value.upper()


def lowercase(value: str, *_surplus: str) -> str:
    return value.lower()


def capitalize(value: str, *_surplus: str) -> str:
    return value[:1].upper() + value[1:].lower()


def titlecase(value: str, *_surplus: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in value.split(" "))


def trim(value: str, *_surplus: str) -> str:
    return value.strip()


def truncate(value: str, length: Optional[str] = None, *suffix_parts: str) -> str:
    """{text|truncate:length} or {text|truncate:length:suffix}"""
    max_length = _parse_int(length)
    if max_length is None:
        raise FilterError(f"truncate: length {length!r} is not an integer")
    if len(value) <= max_length:
        return value
    actual_suffix = ":".join(suffix_parts) if suffix_parts else "..."
    return value[:max_length].rstrip() + actual_suffix


def slug(value: str, *_surplus: str) -> str:
    text = value.lower()
    text = re.sub(r"[^\w\s-]", "", text, flags=re.ASCII)
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip()


def replace(value: str, search: Optional[str] = None, *replacement_parts: str) -> str:
    """{text|replace:search:replacement}"""
    if not search:
        return value
    return value.replace(search, ":".join(replacement_parts))


def default(value: str, *default_parts: str) -> str:
    return ":".join(default_parts) if value == "" else value


# ─────────────────────────────────────────────────────────────
# Numbers, currency, dates
# ─────────────────────────────────────────────────────────────
def currency(value: str, currency_code: str = "USD", *_surplus: str) -> str:
    num = _require_number(value, "currency")
    code = (currency_code or "USD").upper()

    if not _CURRENCY_CODE.match(code):
        # Malformed code: plain dollar formatting
        return f"${num:.2f}"

    decimals = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    amount = f"{abs(num):,.{decimals}f}"
    sign = "-" if num < 0 else ""
    symbol = _CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {amount}"
    return f"{sign}{symbol}{amount}"


def number(value: str, decimals: Optional[str] = None, *_surplus: str) -> str:
    num = _require_number(value, "number")
    places = None
    if decimals is not None:
        places = _parse_int(decimals)
        if places is None or places < 0:
            raise FilterError(f"number: invalid decimal places {decimals!r}")
    return _format_grouped(num, places)


def percent(value: str, *_surplus: str) -> str:
    num = _require_number(value, "percent")
    return f"{num * 100:.1f}%"


def format_date(value: str, *pattern_parts: str) -> str:
    """{date|format:YYYY-MM-DD} - UTC based, first occurrence of each token."""
    pattern = ":".join(pattern_parts)
    if not pattern:
        raise FilterError("format: missing pattern argument")
    d = _parse_date(value)
    result = pattern
    result = result.replace("YYYY", f"{d.year:04d}", 1)
    result = result.replace("MM", f"{d.month:02d}", 1)
    result = result.replace("DD", f"{d.day:02d}", 1)
    result = result.replace("HH", f"{d.hour:02d}", 1)
    result = result.replace("mm", f"{d.minute:02d}", 1)
    result = result.replace("ss", f"{d.second:02d}", 1)
    return result


BUILTIN_FILTERS: Dict[str, FilterFunction] = {
    "uppercase": uppercase,
    "lowercase": lowercase,
    "capitalize": capitalize,
    "titlecase": titlecase,
    "trim": trim,
    "truncate": truncate,
    "currency": currency,
    "number": number,
    "percent": percent,
    "format": format_date,
    "slug": slug,
    "replace": replace,
    "default": default,
}
