"""Shared pytest fixtures for Statement Intake tests.

Provides reusable fixtures for:
- tmp_project_dir: A temporary directory holding a full set of config files
  (config, categories, rules, history) for integration-style testing.
- sample_categories / sample_rules / sample_history: in-memory catalogs that
  mirror the config fixtures.
- stored_transaction(): a factory for ledger records.
- Convenience fixtures for statement fixture file paths.
"""

from __future__ import annotations

import shutil
from datetime import date, datetime
from pathlib import Path

import pytest

from statement_intake.history import HistoryStore
from statement_intake.models import (
    EXPENSE,
    Category,
    ClassificationRule,
    LearnedPattern,
    MatchMode,
    StoredTransaction,
)

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FIXTURES_CONFIG_DIR = FIXTURES_DIR / "config"


# ---------------------------------------------------------------------------
# Fixture file path helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the tests/fixtures/ directory."""
    return FIXTURES_DIR


@pytest.fixture
def ofx_sample() -> Path:
    """Path to the OFX bank statement fixture."""
    return FIXTURES_DIR / "extrato_itau.ofx"


@pytest.fixture
def card_sample_csv() -> Path:
    """Path to the credit card statement fixture."""
    return FIXTURES_DIR / "fatura_visa.csv"


@pytest.fixture
def ledger_sample_csv() -> Path:
    """Path to the cash-withdrawal ledger fixture."""
    return FIXTURES_DIR / "sangria_setembro.csv"


@pytest.fixture
def bank_sample_csv() -> Path:
    """Path to the bank account CSV fixture."""
    return FIXTURES_DIR / "inter_extrato.csv"


@pytest.fixture
def revenue_sample_csv() -> Path:
    """Path to the monthly revenue summary fixture."""
    return FIXTURES_DIR / "faturamento.csv"


# ---------------------------------------------------------------------------
# Project directory
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary project directory with the fixture config files copied in."""
    project = tmp_path / "project"
    project.mkdir()
    for name in ("config.toml", "categories.toml", "rules.toml", "history.toml"):
        shutil.copy2(FIXTURES_CONFIG_DIR / name, project / name)
    return project


# ---------------------------------------------------------------------------
# In-memory catalogs
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_categories() -> list[Category]:
    """The category catalog from fixtures/config/categories.toml."""
    return [
        Category(id=1, name="Receitas", subcategory="PIX Recebido Cliente"),
        Category(id=2, name="Transporte", subcategory="Aplicativos"),
        Category(id=3, name="Alimentacao", subcategory="Supermercado"),
        Category(id=4, name="Alimentacao", subcategory="Restaurantes"),
        Category(id=5, name="Transferencia Interna"),
    ]


@pytest.fixture
def sample_rules() -> list[ClassificationRule]:
    """The rules from fixtures/config/rules.toml."""
    return [
        ClassificationRule(
            id=1,
            pattern="UBER;99POP",
            match_mode=MatchMode.CONTAINS,
            category_id=2,
            priority=10,
        ),
        ClassificationRule(
            id=2,
            pattern="PIX RECEBIDO",
            match_mode=MatchMode.STARTS_WITH,
            category_id=1,
            transaction_type="income",
            priority=5,
        ),
        ClassificationRule(
            id=3,
            pattern="TRANSF PROPRIA",
            match_mode=MatchMode.EXACT,
            category_id=5,
            priority=1,
            is_active=False,
        ),
    ]


@pytest.fixture
def sample_patterns() -> list[LearnedPattern]:
    """The learned patterns from fixtures/config/history.toml."""
    stamp = datetime(2025, 9, 1, 10, 0, 0)
    return [
        LearnedPattern(id=1, description="SUPERMERCADO EXTRA", category_id=3, count=3,
                       last_used=stamp, created_at=stamp),
        LearnedPattern(id=2, description="SUPERMERCADO EXTRA", category_id=4, count=1,
                       last_used=stamp, created_at=stamp),
        LearnedPattern(id=3, description="PADARIA CENTRAL", category_id=3, count=1,
                       last_used=stamp, created_at=stamp),
        LearnedPattern(id=4, description="PADARIA CENTRAL", category_id=4, count=1,
                       last_used=stamp, created_at=stamp),
    ]


@pytest.fixture
def sample_history(sample_patterns: list[LearnedPattern]) -> HistoryStore:
    """A HistoryStore seeded with sample_patterns."""
    return HistoryStore(sample_patterns)


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


def make_stored(
    description: str,
    amount: int,
    purchase_date: date,
    *,
    txn_id: int = 1,
    account_id: int = 1,
    transaction_type: str = EXPENSE,
    fit_id: str | None = None,
) -> StoredTransaction:
    """Build a StoredTransaction; *amount* is signed as the ledger keeps it."""
    return StoredTransaction(
        id=txn_id,
        account_id=account_id,
        description=description,
        amount=amount,
        transaction_type=transaction_type,
        purchase_date=purchase_date,
        payment_date=purchase_date,
        fit_id=fit_id,
    )


@pytest.fixture
def stored_transaction():
    """Factory fixture wrapping :func:`make_stored`."""
    return make_stored
