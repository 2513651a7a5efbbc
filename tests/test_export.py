"""Tests for statement_intake.export -- review CSV, ledger CSV and summary printer.

Covers:
- export_review: column schema, file order, duplicate and classification
  fields, output directory creation.
- read_review: reading an exported file back.
- read_ledger / write_ledger: stored transactions.
- print_summary: counts, method breakdown, review list, warnings/errors.
"""

from __future__ import annotations

import csv
from datetime import date
from pathlib import Path

from statement_intake.export import (
    LEDGER_COLUMNS,
    REVIEW_COLUMNS,
    export_review,
    print_summary,
    read_ledger,
    read_review,
    write_ledger,
)
from statement_intake.models import (
    EXPENSE,
    INCOME,
    ClassificationResult,
    DuplicateStats,
    ImportedTransaction,
    ImportPreview,
    ParsedTransaction,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _preview() -> ImportPreview:
    uber = ParsedTransaction(
        description="UBER",
        amount=4500,
        transaction_type=EXPENSE,
        purchase_date=date(2025, 7, 16),
        payment_date=date(2025, 9, 16),
        is_installment=True,
        installment_number=3,
        installment_total=6,
        original_purchase_date=date(2025, 7, 16),
        fit_id="20250916001",
        source="ofx",
        source_file="extrato.ofx",
    )
    padaria = ParsedTransaction(
        description="PADARIA CENTRAL",
        amount=1250,
        transaction_type=EXPENSE,
        purchase_date=date(2025, 9, 12),
        payment_date=date(2025, 9, 12),
        source="ofx",
        source_file="extrato.ofx",
    )
    pix = ParsedTransaction(
        description="PIX RECEBIDO JOAO",
        amount=125000,
        transaction_type=INCOME,
        purchase_date=date(2025, 9, 10),
        payment_date=date(2025, 9, 10),
        source="ofx",
        source_file="extrato.ofx",
    )
    return ImportPreview(
        success=True,
        transactions=[
            ImportedTransaction(
                transaction=uber,
                classification=ClassificationResult(category_id=2, method="rule", confidence=100),
            ),
            ImportedTransaction(
                transaction=padaria,
                classification=ClassificationResult(
                    category_id=None, method="manual", confidence=0, suggested_category_id=3
                ),
                is_duplicate=True,
                duplicate_info={
                    "type": "fuzzy",
                    "similarity": 88,
                    "reason": "Close date",
                    "fit_id_match": False,
                    "existing_transaction": {"id": 7},
                },
            ),
            ImportedTransaction(
                transaction=pix,
                classification=ClassificationResult(category_id=1, method="history", confidence=75),
            ),
        ],
        warnings=["extrato.ofx: skipped transaction 4 (missing date, amount or memo)"],
        errors=["extrato.ofx: error parsing transaction 5: bad date"],
        duplicate_stats=DuplicateStats(total=1, fuzzy_count=1),
    )


def _read_rows(path: Path) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


# ---------------------------------------------------------------------------
# Review CSV
# ---------------------------------------------------------------------------


class TestExportReview:
    def test_columns(self, tmp_path: Path):
        path = export_review(_preview(), tmp_path / "review.csv")

        with open(path, newline="", encoding="utf-8") as f:
            header = next(csv.reader(f))
        assert header == REVIEW_COLUMNS

    def test_file_order_and_fields(self, tmp_path: Path):
        rows = _read_rows(export_review(_preview(), tmp_path / "review.csv"))

        assert [r["row"] for r in rows] == ["0", "1", "2"]
        uber = rows[0]
        assert uber["purchase_date"] == "2025-07-16"
        assert uber["payment_date"] == "2025-09-16"
        assert uber["amount_cents"] == "4500"
        assert uber["is_installment"] == "True"
        assert uber["installment_number"] == "3"
        assert uber["fit_id"] == "20250916001"
        assert uber["category_id"] == "2"
        assert uber["method"] == "rule"
        assert uber["is_duplicate"] == "False"
        assert uber["duplicate_type"] == ""

    def test_duplicate_and_suggestion_fields(self, tmp_path: Path):
        padaria = _read_rows(export_review(_preview(), tmp_path / "review.csv"))[1]

        assert padaria["is_duplicate"] == "True"
        assert padaria["duplicate_type"] == "fuzzy"
        assert padaria["duplicate_similarity"] == "88"
        assert padaria["duplicate_of"] == "7"
        assert padaria["category_id"] == ""
        assert padaria["suggested_category_id"] == "3"

    def test_creates_output_directory(self, tmp_path: Path):
        path = export_review(_preview(), tmp_path / "review" / "nested" / "out.csv")
        assert path.is_file()


class TestReadReview:
    def test_reads_exported_file(self, tmp_path: Path):
        items = read_review(export_review(_preview(), tmp_path / "review.csv"))

        assert len(items) == 3
        uber, padaria, pix = items
        assert uber.transaction.description == "UBER"
        assert uber.transaction.installment_total == 6
        assert uber.transaction.original_purchase_date == date(2025, 7, 16)
        assert uber.classification.category_id == 2
        assert padaria.is_duplicate is True
        assert padaria.classification.category_id is None
        assert padaria.classification.suggested_category_id == 3
        assert pix.transaction.transaction_type == INCOME
        assert pix.transaction.original_purchase_date is None

    def test_edited_category_is_picked_up(self, tmp_path: Path):
        path = export_review(_preview(), tmp_path / "review.csv")
        rows = _read_rows(path)
        rows[1]["category_id"] = "4"
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=REVIEW_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)

        assert read_review(path)[1].classification.category_id == 4


# ---------------------------------------------------------------------------
# Ledger CSV
# ---------------------------------------------------------------------------


class TestLedger:
    def test_missing_ledger_is_empty(self, tmp_path: Path):
        assert read_ledger(tmp_path / "ledger.csv") == []

    def test_write_then_read(self, tmp_path: Path, stored_transaction):
        stored = [
            stored_transaction("SUPERMERCADO EXTRA", -5000, date(2025, 9, 10), txn_id=1),
            stored_transaction("PIX", 125000, date(2025, 9, 10), txn_id=2,
                               transaction_type=INCOME, fit_id="F1"),
        ]
        stored[0].category_id = 3

        path = write_ledger(stored, tmp_path / "ledger.csv")
        loaded = read_ledger(path)

        assert loaded == stored

    def test_columns(self, tmp_path: Path):
        path = write_ledger([], tmp_path / "ledger.csv")
        with open(path, newline="", encoding="utf-8") as f:
            assert next(csv.reader(f)) == LEDGER_COLUMNS


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


class TestPrintSummary:
    def test_counts_and_breakdown(self, capsys):
        print_summary(_preview(), "extrato.ofx")
        out = capsys.readouterr().out

        assert "== Import Summary: extrato.ofx ==" in out
        assert "Transactions: 3" in out
        assert "Classified:   2 / 3 (66.7%)" in out
        assert "Rule:     1" in out
        assert "History:  1" in out
        assert "Manual:   1 (1 with a suggestion)" in out

    def test_lists_records_needing_review(self, capsys):
        print_summary(_preview(), "extrato.ofx")
        out = capsys.readouterr().out

        assert "Needs review:" in out
        assert "PADARIA CENTRAL" in out

    def test_warnings_and_errors(self, capsys):
        print_summary(_preview(), "extrato.ofx")
        out = capsys.readouterr().out

        assert "Warnings: 1" in out
        assert "Errors: 1" in out

    def test_empty_preview(self, capsys):
        print_summary(ImportPreview(success=True), "empty.csv")
        out = capsys.readouterr().out

        assert "Transactions: 0" in out
        assert "(0.0%)" in out
