"""Currency, date and description normalization.

Statement files spell amounts with either decimal convention ("1.234,56",
"1234.56", "-45,00") and dates in several layouts. Everything here is a pure
function; failures raise ``ValueError`` subclasses so that parsers can record
a per-line error and move on.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

_CURRENCY_JUNK = re.compile(r"[^\d,.\-]")
# Leading numeric prefix, the part a lenient float parser would accept.
_NUMERIC_PREFIX = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)")

_DATE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^(\d{2})/(\d{2})/(\d{4})$"), "dmy"),
    (re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$"), "dmyy"),
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), "ymd"),
    (re.compile(r"^(\d{4})(\d{2})(\d{2})$"), "ymd"),
]

_WHITESPACE = re.compile(r"\s+")
_PAREN_INSTALLMENT = re.compile(r"\(\d+/\d+\)")
_BARE_INSTALLMENT = re.compile(r"\d+/\d+")


class DateFormatError(ValueError):
    """Raised when a date string matches none of the supported layouts."""


def parse_currency_to_cents(text: str) -> int:
    """Convert a locale-formatted amount to integer cents.

    Everything except digits, ``,``, ``.`` and ``-`` is discarded. When both
    separators are present the dot is the thousands separator and the comma
    the decimal separator; a lone comma is a decimal comma.

    Args:
        text: Amount as it appears in the file, e.g. ``"R$ 1.234,56"``.

    Returns:
        The signed amount in cents, rounded half away from zero.

    Raises:
        ValueError: If no number can be read from *text*.
    """
    clean = _CURRENCY_JUNK.sub("", text.strip())
    has_comma = "," in clean
    has_dot = "." in clean

    if has_comma and has_dot:
        clean = clean.replace(".", "").replace(",", ".", 1)
    elif has_comma:
        clean = clean.replace(",", ".", 1)

    match = _NUMERIC_PREFIX.match(clean)
    if match is None:
        raise ValueError(f"Invalid amount: {text!r}")

    cents = Decimal(match.group(0)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_date(text: str) -> date:
    """Parse a date in one of the supported layouts.

    Tried in order: ``DD/MM/YYYY``, ``DD/MM/YY`` (year 2000+YY),
    ``YYYY-MM-DD`` and compact ``YYYYMMDD``. The first layout that matches
    wins.

    Raises:
        DateFormatError: If no layout matches or the date does not exist.
    """
    value = text.strip()
    for pattern, layout in _DATE_PATTERNS:
        match = pattern.match(value)
        if match is None:
            continue
        a, b, c = (int(g) for g in match.groups())
        try:
            if layout == "dmy":
                return date(c, b, a)
            if layout == "dmyy":
                return date(2000 + c, b, a)
            return date(a, b, c)
        except ValueError as exc:
            raise DateFormatError(f"Invalid date: {text!r} ({exc})") from exc
    raise DateFormatError(f"Invalid date format: {text!r}")


def add_months(value: date, months: int) -> date:
    """Shift *value* by a number of calendar months.

    The day of month is kept. When the target month is shorter, the extra
    days roll over into the following month (31 Jan + 1 month is 3 Mar in a
    common year) instead of being clamped.
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month0 = divmod(index, 12)
    return date(year, month0 + 1, 1) + timedelta(days=value.day - 1)


def strip_accents(text: str) -> str:
    """Remove combining marks after NFD decomposition ("Débito" -> "Debito")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_description(description: str) -> str:
    """Normalize a description for comparison.

    Lower-cases, strips accents, removes asterisks and installment markers
    (``(3/6)`` and ``3/6``) and collapses whitespace.
    """
    text = strip_accents(description.lower())
    text = _WHITESPACE.sub(" ", text).strip()
    text = text.replace("*", "")
    text = _PAREN_INSTALLMENT.sub("", text)
    text = _BARE_INSTALLMENT.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()
