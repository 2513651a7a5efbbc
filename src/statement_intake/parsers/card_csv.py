"""Credit card statement CSV parser (the default delimited format).

Card CSV format (semicolon separated, header optional)::

    Data;Descricao;Valor
    16/09/2025;UBER 3/6;-45,00

Sign convention:
    Natural sign unless the account's file-source tag says otherwise
    (card accounts are usually tagged as inverted).

Card descriptions carry parcel markers, so installment detection and date
reconstruction are applied.
"""

from __future__ import annotations

import logging

from statement_intake.installments import apply_installment_dates
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

DELIMITER = ";"
HEADER_KEYWORDS = ("data",)


def parse(
    content: str,
    file_name: str,
    file_source: str | None = None,
    sign_groups: dict[str, list[str]] | None = None,
) -> ParseResult:
    """Parse a card statement CSV into normalized transactions.

    Args:
        content: Full file text.
        file_name: Original file name, stored on every record.
        file_source: Optional sign-convention tag of the owning account.
        sign_groups: Sign-group membership for *file_source*.

    Returns:
        A ParseResult with parsed transactions, per-line errors and
        warnings for rows with fewer than three usable fields.
    """
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
        info, purchase_date, payment_date, original = apply_installment_dates(
            description, txn_date
        )

        transactions.append(
            ParsedTransaction(
                description=info.clean_description,
                amount=amount,
                transaction_type=txn_type,
                purchase_date=purchase_date,
                payment_date=payment_date,
                is_installment=info.is_installment,
                installment_number=info.current,
                installment_total=info.total,
                original_purchase_date=original,
                source="csv",
                source_file=file_name,
            )
        )

    return ParseResult(transactions=transactions, errors=errors, warnings=warnings)
