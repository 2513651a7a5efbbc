"""Monthly revenue summary CSV parser.

Revenue CSV format (comma separated, header optional)::

    Mes,Credito a vista,Credito 2x,Credito 3x,Credito 4x,Credito 5x,Credito 6x,Debito,Dinheiro,Pix,Gira credito
    01/09/2025,"1.000,00","200,00",...

The first column accepts ``DD/MM/YYYY`` (day ignored) or ``MM/YYYY``. The
last three channels (cash, pix, gira credit) are optional and blank values
there count as zero; a blank in any other channel is a line error. Rows with an
unreadable month or a year before 2000 are skipped.
"""

from __future__ import annotations

import logging

from statement_intake.models import RevenueResult, RevenueRow
from statement_intake.normalize import parse_currency_to_cents
from statement_intake.parsers.delimited import has_header, non_blank_lines, split_line

logger = logging.getLogger(__name__)

DELIMITER = ","
HEADER_KEYWORDS = ("mes",)
MIN_FIELDS = 8

CHANNEL_COLUMNS = [
    "credit_cash",
    "credit_2x",
    "credit_3x",
    "credit_4x",
    "credit_5x",
    "credit_6x",
    "debit",
    "cash",
    "pix",
    "gira_credit",
]
OPTIONAL_COLUMNS = frozenset({"cash", "pix", "gira_credit"})


def _month_year(value: str) -> tuple[int, int] | None:
    parts = value.strip().split("/")
    try:
        if len(parts) == 3:
            month, year = int(parts[1]), int(parts[2])
        elif len(parts) == 2:
            month, year = int(parts[0]), int(parts[1])
        else:
            return None
    except ValueError:
        return None
    if not 1 <= month <= 12 or year < 2000:
        return None
    return month, year


def _cents(column: str, value: str) -> int:
    if value.strip():
        return parse_currency_to_cents(value)
    if column in OPTIONAL_COLUMNS:
        return 0
    raise ValueError(f"missing value for {column}")


def parse(content: str) -> RevenueResult:
    """Parse a revenue summary CSV into one :class:`RevenueRow` per month."""
    rows: list[RevenueRow] = []
    errors: list[str] = []

    lines = non_blank_lines(content)
    start = 1 if has_header(lines, HEADER_KEYWORDS) else 0

    for index in range(start, len(lines)):
        fields = split_line(lines[index], DELIMITER)
        if len(fields) < MIN_FIELDS:
            continue

        period = _month_year(fields[0])
        if period is None:
            continue

        amounts = fields[1 : 1 + len(CHANNEL_COLUMNS)]
        amounts += [""] * (len(CHANNEL_COLUMNS) - len(amounts))
        try:
            values = {col: _cents(col, raw) for col, raw in zip(CHANNEL_COLUMNS, amounts)}
        except ValueError as exc:
            logger.warning("revenue line %d: %s", index + 1, exc)
            errors.append(f"Error parsing revenue line {index + 1}: {exc}")
            continue

        rows.append(RevenueRow(month=period[0], year=period[1], **values))

    return RevenueResult(rows=rows, errors=errors)
