"""OFX statement parser.

OFX format (SGML-ish, closing tags optional for leaf elements)::

    <BANKID>341
    <ACCTID>12345-6
    <STMTTRN>
      <TRNTYPE>DEBIT
      <DTPOSTED>20250916120000[-3:BRT]
      <TRNAMT>-45.00
      <FITID>20250916001
      <MEMO>UBER 3/6
    </STMTTRN>

Sign convention:
    Natural sign: negative amounts are expenses, non-negative are income,
    unless a file-source tag says otherwise.

Blocks missing ``DTPOSTED``, ``TRNAMT`` or ``MEMO`` are skipped. Installment
markers in the memo are stripped and the purchase date reconstructed.
"""

from __future__ import annotations

import logging
import re
from datetime import date

from statement_intake.installments import apply_installment_dates
from statement_intake.models import AccountInfo, ParsedTransaction, ParseResult
from statement_intake.normalize import parse_currency_to_cents
from statement_intake.parsers.delimited import check_file_source, signed_to_record

logger = logging.getLogger(__name__)

_BLOCK = re.compile(r"<STMTTRN>([\s\S]*?)</STMTTRN>")
_BANK_ID = re.compile(r"<BANKID>(\d+)")
_ACCT_ID = re.compile(r"<ACCTID>([^<\r\n]+)")
_ACCT_TYPE = re.compile(r"<ACCTTYPE>([^<\r\n]+)")
_DT_POSTED = re.compile(r"<DTPOSTED>(\d{8})")
_TRN_AMT = re.compile(r"<TRNAMT>([^<\r\n]+)")
_FIT_ID = re.compile(r"<FITID>([^<\r\n]+)")
_MEMO = re.compile(r"<MEMO>([^<\r\n]+)")


def _first(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def parse(
    content: str,
    file_name: str,
    file_source: str | None = None,
    sign_groups: dict[str, list[str]] | None = None,
) -> ParseResult:
    """Parse OFX *content* into normalized transactions.

    Args:
        content: Full file text.
        file_name: Original file name, stored on every record.
        file_source: Optional sign-convention tag of the owning account.
        sign_groups: Sign-group membership for *file_source*.

    Returns:
        A ParseResult with the transactions, per-block errors and the
        account info found in the header.

    Raises:
        UnknownFileSourceError: If *file_source* is not configured.
    """
    check_file_source(file_source, sign_groups)

    transactions: list[ParsedTransaction] = []
    errors: list[str] = []
    warnings: list[str] = []

    account_info = AccountInfo(
        bank_id=_first(_BANK_ID, content),
        account_id=_first(_ACCT_ID, content),
        account_type=_first(_ACCT_TYPE, content),
    )

    for block_no, match in enumerate(_BLOCK.finditer(content), start=1):
        block = match.group(1)
        date_str = _first(_DT_POSTED, block)
        amount_str = _first(_TRN_AMT, block)
        memo = _first(_MEMO, block)

        if not date_str or not amount_str or not memo:
            warnings.append(f"{file_name}: skipped transaction {block_no} (missing date, amount or memo)")
            continue

        try:
            txn_date = date(int(date_str[0:4]), int(date_str[4:6]), int(date_str[6:8]))
            cents = parse_currency_to_cents(amount_str)
        except ValueError as exc:
            logger.warning("%s: transaction %d: %s", file_name, block_no, exc)
            errors.append(f"{file_name}: error parsing transaction {block_no}: {exc}")
            continue

        amount, txn_type = signed_to_record(cents, file_source, sign_groups)
        info, purchase_date, payment_date, original = apply_installment_dates(memo, txn_date)

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
                fit_id=_first(_FIT_ID, block),
                source="ofx",
                source_file=file_name,
            )
        )

    return ParseResult(
        transactions=transactions,
        errors=errors,
        warnings=warnings,
        account_info=account_info,
    )
