"""Bank account CSV parser (Inter-style export).

Bank CSV format (comma separated, header optional)::

    Data,Descricao,Valor
    10/09/2025,PIX RECEBIDO JOAO,"1.250,00"

Sign convention:
    Natural sign: negative amounts are expenses, non-negative are income,
    unless the account's file-source tag says otherwise.

Bank descriptions do not carry parcel markers (a "1/2" in a PIX message is
not an installment), so no installment detection.
"""

from __future__ import annotations

import logging

from statement_intake.models import ParsedTransaction, ParseResult
from statement_intake.normalize import parse_currency_to_cents, parse_date
from statement_intake.parsers.delimited import (
    check_file_source,
    has_header,
    non_blank_lines,
    signed_to_record,
    split_line,
)

logger = logging.getLogger(__name__)

DELIMITER = ","
HEADER_KEYWORDS = ("data",)


def parse(
    content: str,
    file_name: str,
    file_source: str | None = None,
    sign_groups: dict[str, list[str]] | None = None,
) -> ParseResult:
    """Parse a bank account CSV into normalized transactions."""
    check_file_source(file_source, sign_groups)

    transactions: list[ParsedTransaction] = []
    errors: list[str] = []
    warnings: list[str] = []

    lines = non_blank_lines(content)
    start = 1 if has_header(lines, HEADER_KEYWORDS) else 0

    for index in range(start, len(lines)):
        fields = split_line(lines[index], DELIMITER)
        if len(fields) < 3 or not all(fields[:3]):
            warnings.append(f"{file_name}: skipped incomplete line {index + 1}")
            continue
        date_str, description, value_str = fields[:3]

        try:
            txn_date = parse_date(date_str)
            cents = parse_currency_to_cents(value_str)
        except ValueError as exc:
            logger.warning("%s: line %d: %s", file_name, index + 1, exc)
            errors.append(f"{file_name}: error parsing line {index + 1}: {exc}")
            continue

        amount, txn_type = signed_to_record(cents, file_source, sign_groups)
        transactions.append(
            ParsedTransaction(
                description=description,
                amount=amount,
                transaction_type=txn_type,
                purchase_date=txn_date,
                payment_date=txn_date,
                source="csv",
                source_file=file_name,
            )
        )

    return ParseResult(transactions=transactions, errors=errors, warnings=warnings)
