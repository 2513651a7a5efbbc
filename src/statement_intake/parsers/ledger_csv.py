"""Internal cash-withdrawal ledger CSV parser ("sangria" sheet).

Ledger CSV format (comma separated, header optional, extra columns allowed)::

    Numeracao,Data,NOME,VALOR,Credito/Debito,Tipo conta
    1,05/09/2025,FORNECEDOR ABC,"150,00",DEBITO,CAIXA

Sign convention:
    The amount column is unsigned; the Credito/Debito column decides the
    type (``DEBITO``/``DÉBITO`` is an expense, anything else income).

Ledger entries never carry parcel markers, so no installment detection.
"""

from __future__ import annotations

import logging

from statement_intake.models import EXPENSE, INCOME, ParsedTransaction, ParseResult
from statement_intake.normalize import parse_currency_to_cents, parse_date, strip_accents
from statement_intake.parsers.delimited import (
    check_file_source,
    has_header,
    non_blank_lines,
    split_line,
)

logger = logging.getLogger(__name__)

DELIMITER = ","
HEADER_KEYWORDS = ("numeracao", "numeração")
MIN_FIELDS = 5


def parse(
    content: str,
    file_name: str,
    file_source: str | None = None,
    sign_groups: dict[str, list[str]] | None = None,
) -> ParseResult:
    """Parse a cash-withdrawal ledger CSV into normalized transactions.

    ``file_source`` is validated against ``sign_groups`` like every other
    parser, but the ledger's explicit credit/debit column always decides
    the transaction type.

    Returns:
        A ParseResult with parsed transactions and per-line errors. Lines
        made only of empty fields are skipped without an error.
    """
    check_file_source(file_source, sign_groups)

    transactions: list[ParsedTransaction] = []
    errors: list[str] = []
    warnings: list[str] = []

    lines = non_blank_lines(content)
    start = 1 if has_header(lines, HEADER_KEYWORDS) else 0

    for index in range(start, len(lines)):
        line = lines[index]
        fields = split_line(line, DELIMITER)
        if len(fields) < MIN_FIELDS:
            continue

        if not any(fields):
            continue

        _, date_str, description, value_str, credit_debit = fields[:MIN_FIELDS]
        if not date_str or not description or not value_str:
            warnings.append(f"{file_name}: skipped incomplete line {index + 1}")
            continue

        try:
            txn_date = parse_date(date_str)
            cents = parse_currency_to_cents(value_str)
        except ValueError as exc:
            logger.warning("%s: line %d: %s", file_name, index + 1, exc)
            errors.append(f"{file_name}: error parsing line {index + 1}: {exc}")
            continue

        is_expense = "DEBITO" in strip_accents(credit_debit.upper())

        transactions.append(
            ParsedTransaction(
                description=description,
                amount=abs(cents),
                transaction_type=EXPENSE if is_expense else INCOME,
                purchase_date=txn_date,
                payment_date=txn_date,
                source="csv",
                source_file=file_name,
            )
        )

    return ParseResult(transactions=transactions, errors=errors, warnings=warnings)
