"""Review CSV and ledger CSV readers/writers, plus the import summary printer.

- :func:`export_review` writes an import preview to a review CSV that a
  person can edit (category corrections) before confirming.
- :func:`read_review` reads it back into ``ImportedTransaction`` objects.
- :func:`read_ledger` / :func:`write_ledger` persist stored transactions in
  a flat CSV, standing in for the external storage collaborator when the
  pipeline is driven from the CLI.
- :func:`print_summary` prints a human-readable summary of a preview.

Amounts are written as integer cents so nothing is lost in round trips.
"""

from __future__ import annotations

import csv
from collections import Counter
from datetime import date
from pathlib import Path

from statement_intake.models import (
    ClassificationResult,
    ImportedTransaction,
    ImportPreview,
    ParsedTransaction,
    StoredTransaction,
)

REVIEW_COLUMNS = [
    "row",
    "purchase_date",
    "payment_date",
    "description",
    "amount_cents",
    "transaction_type",
    "is_installment",
    "installment_number",
    "installment_total",
    "original_purchase_date",
    "fit_id",
    "source",
    "source_file",
    "is_duplicate",
    "duplicate_type",
    "duplicate_similarity",
    "duplicate_of",
    "category_id",
    "suggested_category_id",
    "method",
    "confidence",
]

LEDGER_COLUMNS = [
    "id",
    "account_id",
    "purchase_date",
    "payment_date",
    "description",
    "amount_cents",
    "transaction_type",
    "category_id",
    "suggested_category_id",
    "classification_method",
    "is_ignored",
    "is_installment",
    "installment_number",
    "installment_total",
    "original_purchase_date",
    "fit_id",
    "source",
    "source_file",
    "duplicate_status",
]


# ---------------------------------------------------------------------------
# Review CSV
# ---------------------------------------------------------------------------


def export_review(preview: ImportPreview, output_path: str | Path) -> Path:
    """Write the records of *preview* to a review CSV, in file order.

    Returns:
        The :class:`~pathlib.Path` to the written CSV file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=REVIEW_COLUMNS)
        writer.writeheader()
        for row_no, item in enumerate(preview.transactions):
            txn = item.transaction
            cls = item.classification
            info = item.duplicate_info or {}
            writer.writerow(
                {
                    "row": row_no,
                    "purchase_date": txn.purchase_date.isoformat(),
                    "payment_date": txn.payment_date.isoformat(),
                    "description": txn.description,
                    "amount_cents": txn.amount,
                    "transaction_type": txn.transaction_type,
                    "is_installment": str(txn.is_installment),
                    "installment_number": _opt(txn.installment_number),
                    "installment_total": _opt(txn.installment_total),
                    "original_purchase_date": _opt_date(txn.original_purchase_date),
                    "fit_id": txn.fit_id or "",
                    "source": txn.source,
                    "source_file": txn.source_file,
                    "is_duplicate": str(item.is_duplicate),
                    "duplicate_type": info.get("type", ""),
                    "duplicate_similarity": _opt(info.get("similarity")),
                    "duplicate_of": _opt(info.get("existing_transaction", {}).get("id")),
                    "category_id": _opt(cls.category_id),
                    "suggested_category_id": _opt(cls.suggested_category_id),
                    "method": cls.method,
                    "confidence": cls.confidence,
                }
            )

    return output_path


def read_review(path: str | Path) -> list[ImportedTransaction]:
    """Read a review CSV written by :func:`export_review`.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If a required column is missing.
    """
    items: list[ImportedTransaction] = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            txn = ParsedTransaction(
                description=row["description"],
                amount=int(row["amount_cents"]),
                transaction_type=row["transaction_type"],
                purchase_date=date.fromisoformat(row["purchase_date"]),
                payment_date=date.fromisoformat(row["payment_date"]),
                is_installment=row.get("is_installment") == "True",
                installment_number=_int_or_none(row.get("installment_number")),
                installment_total=_int_or_none(row.get("installment_total")),
                original_purchase_date=_date_or_none(row.get("original_purchase_date")),
                fit_id=row.get("fit_id") or None,
                source=row.get("source") or "csv",
                source_file=row.get("source_file", ""),
            )
            cls = ClassificationResult(
                category_id=_int_or_none(row.get("category_id")),
                method=row.get("method") or "manual",
                confidence=_int_or_none(row.get("confidence")) or 0,
                suggested_category_id=_int_or_none(row.get("suggested_category_id")),
            )
            items.append(
                ImportedTransaction(
                    transaction=txn,
                    classification=cls,
                    is_duplicate=row.get("is_duplicate") == "True",
                )
            )
    return items


# ---------------------------------------------------------------------------
# Ledger CSV
# ---------------------------------------------------------------------------


def read_ledger(path: str | Path) -> list[StoredTransaction]:
    """Read stored transactions from a ledger CSV. A missing file is empty."""
    path = Path(path)
    if not path.exists():
        return []

    stored: list[StoredTransaction] = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            stored.append(
                StoredTransaction(
                    id=int(row["id"]),
                    account_id=int(row["account_id"]),
                    description=row["description"],
                    amount=int(row["amount_cents"]),
                    transaction_type=row["transaction_type"],
                    purchase_date=date.fromisoformat(row["purchase_date"]),
                    payment_date=date.fromisoformat(row["payment_date"]),
                    category_id=_int_or_none(row.get("category_id")),
                    suggested_category_id=_int_or_none(row.get("suggested_category_id")),
                    classification_method=row.get("classification_method") or "manual",
                    is_ignored=row.get("is_ignored") == "True",
                    is_installment=row.get("is_installment") == "True",
                    installment_number=_int_or_none(row.get("installment_number")),
                    installment_total=_int_or_none(row.get("installment_total")),
                    original_purchase_date=_date_or_none(row.get("original_purchase_date")),
                    fit_id=row.get("fit_id") or None,
                    source=row.get("source") or "csv",
                    source_file=row.get("source_file", ""),
                    duplicate_status=row.get("duplicate_status") or "approved",
                )
            )
    return stored


def write_ledger(transactions: list[StoredTransaction], path: str | Path) -> Path:
    """Write *transactions* to a ledger CSV, overwriting it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=LEDGER_COLUMNS)
        writer.writeheader()
        for txn in transactions:
            writer.writerow(
                {
                    "id": txn.id,
                    "account_id": txn.account_id,
                    "purchase_date": txn.purchase_date.isoformat(),
                    "payment_date": txn.payment_date.isoformat(),
                    "description": txn.description,
                    "amount_cents": txn.amount,
                    "transaction_type": txn.transaction_type,
                    "category_id": _opt(txn.category_id),
                    "suggested_category_id": _opt(txn.suggested_category_id),
                    "classification_method": txn.classification_method,
                    "is_ignored": str(txn.is_ignored),
                    "is_installment": str(txn.is_installment),
                    "installment_number": _opt(txn.installment_number),
                    "installment_total": _opt(txn.installment_total),
                    "original_purchase_date": _opt_date(txn.original_purchase_date),
                    "fit_id": txn.fit_id or "",
                    "source": txn.source,
                    "source_file": txn.source_file,
                    "duplicate_status": txn.duplicate_status,
                }
            )
    return path


# ---------------------------------------------------------------------------
# Summary printer
# ---------------------------------------------------------------------------


def print_summary(preview: ImportPreview, file_name: str) -> None:
    """Print a human-readable import summary to stdout.

    The summary includes record and duplicate counts, the classification
    breakdown by method, the records left for manual review, and any
    warnings and errors.
    """
    items = preview.transactions
    stats = preview.duplicate_stats
    methods: Counter[str] = Counter(item.classification.method for item in items)
    unresolved = [item for item in items if item.classification.category_id is None]
    suggested = sum(1 for item in unresolved if item.classification.suggested_category_id)
    classified = len(items) - len(unresolved)
    pct = classified / len(items) * 100 if items else 0.0

    print()
    print(f"== Import Summary: {file_name} ==")
    print(f"Transactions: {len(items)}")
    print(
        f"Duplicates:   {stats.total} "
        f"(identifier {stats.fit_id_count}, exact {stats.exact_count}, fuzzy {stats.fuzzy_count})"
    )
    print(f"Classified:   {classified} / {len(items)} ({pct:.1f}%)")
    print(f"  - Rule:     {methods.get('rule', 0)}")
    print(f"  - History:  {methods.get('history', 0)}")
    print(f"  - AI:       {methods.get('ai', 0)}")
    print(f"  - Manual:   {len(unresolved)} ({suggested} with a suggestion)")

    if unresolved:
        print()
        print("Needs review:")
        for item in unresolved[:10]:
            txn = item.transaction
            print(
                f"  {txn.purchase_date.isoformat()}  {txn.description:<30} "
                f"R$ {txn.amount / 100:,.2f}"
            )

    if preview.warnings:
        print()
        print(f"Warnings: {len(preview.warnings)}")
        for w in preview.warnings:
            print(f"  - {w}")

    if preview.errors:
        print()
        print(f"Errors: {len(preview.errors)}")
        for e in preview.errors:
            print(f"  - {e}")

    print()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _opt(value: object) -> str:
    return "" if value is None else str(value)


def _opt_date(value: date | None) -> str:
    return value.isoformat() if value else ""


def _int_or_none(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


def _date_or_none(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value)
