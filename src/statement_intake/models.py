"""Core data models for Statement Intake.

This module defines the dataclasses shared by the parsers, the duplicate
detector, the classification cascade and the pipeline. It has zero internal
imports -- everything depends on it, but it depends on nothing within the
package.

Amounts are always integer cents. Parsed transactions carry the absolute
magnitude and express the sign only through ``transaction_type``; stored
transactions keep the signed value the ledger persists (expenses negative).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime

INCOME = "income"
EXPENSE = "expense"

METHOD_RULE = "rule"
METHOD_HISTORY = "history"
METHOD_AI = "ai"
METHOD_MANUAL = "manual"


class MatchMode(str, enum.Enum):
    """How a classification rule pattern is compared to a description."""

    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EXACT = "exact"


@dataclass
class ParsedTransaction:
    """A single line item produced by a format parser.

    Transient: produced by ``parsers``, consumed by the duplicate detector
    and the classification cascade, never persisted as-is.

    Attributes:
        description: Free-text description with any installment marker
            removed.
        amount: Absolute magnitude in cents (never negative).
        transaction_type: ``"income"`` or ``"expense"``.
        purchase_date: Purchase date. For installments this is the
            reconstructed original purchase date.
        payment_date: Date the (installment) payment falls on.
        is_installment: True if a parcel marker was found.
        installment_number: Current parcel, 1-based.
        installment_total: Total number of parcels.
        original_purchase_date: Set only for installments.
        fit_id: Bank-issued unique identifier (OFX ``FITID``), if any.
        source: ``"ofx"`` or ``"csv"``.
        source_file: Name of the file the record came from.
    """

    description: str
    amount: int
    transaction_type: str
    purchase_date: date
    payment_date: date
    is_installment: bool = False
    installment_number: int | None = None
    installment_total: int | None = None
    original_purchase_date: date | None = None
    fit_id: str | None = None
    source: str = "csv"
    source_file: str = ""


@dataclass
class StoredTransaction:
    """A transaction as persisted by the ledger (external collaborator).

    ``amount`` is signed here: expenses are negative. Duplicate comparison
    always uses ``abs(amount)``.
    """

    id: int
    account_id: int
    description: str
    amount: int
    transaction_type: str
    purchase_date: date
    payment_date: date
    category_id: int | None = None
    suggested_category_id: int | None = None
    classification_method: str = METHOD_MANUAL
    is_ignored: bool = False
    is_installment: bool = False
    installment_number: int | None = None
    installment_total: int | None = None
    original_purchase_date: date | None = None
    fit_id: str | None = None
    source: str = "csv"
    source_file: str = ""
    duplicate_status: str = "approved"


@dataclass
class Category:
    """A category in the catalog, optionally with a subcategory."""

    id: int
    name: str
    subcategory: str | None = None

    @property
    def display_name(self) -> str:
        """Render as ``name`` or ``name > subcategory``."""
        if self.subcategory:
            return f"{self.name} > {self.subcategory}"
        return self.name


@dataclass
class ClassificationRule:
    """A deterministic, priority-ordered classification rule.

    Attributes:
        id: Rule identifier.
        pattern: One or more sub-patterns joined by ``;`` (OR semantics).
        match_mode: How each sub-pattern is compared.
        category_id: Category assigned when the rule fires.
        transaction_type: Transaction type the rule targets.
        priority: Higher priorities are evaluated first.
        account_id: If set, the rule only applies to this account.
        min_amount: Inclusive lower bound on the absolute amount, in cents.
        max_amount: Inclusive upper bound on the absolute amount, in cents.
        is_active: Inactive rules are never evaluated.
    """

    id: int
    pattern: str
    match_mode: MatchMode
    category_id: int
    transaction_type: str = EXPENSE
    priority: int = 0
    account_id: int | None = None
    min_amount: int | None = None
    max_amount: int | None = None
    is_active: bool = True


@dataclass
class LearnedPattern:
    """A (description, category) pair learned from human corrections."""

    id: int
    description: str
    category_id: int
    count: int = 1
    last_used: datetime = field(default_factory=datetime.now)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class DuplicateMatch:
    """One new record paired with one existing record."""

    existing: StoredTransaction
    new: ParsedTransaction
    similarity: int
    reason: str


@dataclass
class DuplicateDetection:
    """All duplicate signals found for a single new record."""

    exact_matches: list[DuplicateMatch] = field(default_factory=list)
    fuzzy_matches: list[DuplicateMatch] = field(default_factory=list)
    fit_id_match: StoredTransaction | None = None

    @property
    def has_duplicates(self) -> bool:
        return (
            self.fit_id_match is not None
            or bool(self.exact_matches)
            or bool(self.fuzzy_matches)
        )


@dataclass
class DuplicateStats:
    """Batch-level duplicate counts. A record may count in several buckets."""

    total: int = 0
    fit_id_count: int = 0
    exact_count: int = 0
    fuzzy_count: int = 0


@dataclass
class ClassificationResult:
    """Outcome of the classification cascade for one record.

    Attributes:
        category_id: Assigned category, or None if unresolved.
        method: ``"rule"``, ``"history"``, ``"ai"`` or ``"manual"``.
        confidence: Integer 0-100.
        suggested_category_id: Low-confidence history candidate offered
            for human review.
    """

    category_id: int | None
    method: str
    confidence: int
    suggested_category_id: int | None = None


@dataclass
class AccountInfo:
    """Account metadata found in an OFX header."""

    bank_id: str | None = None
    account_id: str | None = None
    account_type: str | None = None


@dataclass
class ParseResult:
    """Return type for every statement parser.

    Attributes:
        transactions: Records parsed successfully, in file order.
        errors: Per-record failures (the record was dropped) or a single
            whole-file error.
        warnings: Rows skipped because required fields were empty.
        account_info: Account metadata, for formats that carry it.
    """

    transactions: list[ParsedTransaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    account_info: AccountInfo | None = None


@dataclass
class RevenueRow:
    """One month of the revenue summary, amounts in cents."""

    month: int
    year: int
    credit_cash: int = 0
    credit_2x: int = 0
    credit_3x: int = 0
    credit_4x: int = 0
    credit_5x: int = 0
    credit_6x: int = 0
    debit: int = 0
    cash: int = 0
    pix: int = 0
    gira_credit: int = 0

    @property
    def total(self) -> int:
        return (
            self.credit_cash
            + self.credit_2x
            + self.credit_3x
            + self.credit_4x
            + self.credit_5x
            + self.credit_6x
            + self.debit
            + self.cash
            + self.pix
            + self.gira_credit
        )


@dataclass
class RevenueResult:
    """Return type for the revenue-summary parser."""

    rows: list[RevenueRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class ImportedTransaction:
    """A parsed record annotated with duplicate and classification results."""

    transaction: ParsedTransaction
    classification: ClassificationResult
    is_duplicate: bool = False
    duplicate_info: dict | None = None


@dataclass
class ImportPreview:
    """Result of previewing a statement upload.

    Nothing is persisted: the caller reviews ``transactions`` and passes the
    ones it keeps to :func:`~statement_intake.pipeline.confirm_import`.
    """

    success: bool
    transactions: list[ImportedTransaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duplicate_stats: DuplicateStats = field(default_factory=DuplicateStats)
    account_info: AccountInfo | None = None


@dataclass
class AccountConfig:
    """Configuration for a single account.

    Attributes:
        id: Account identifier used by rules and stored transactions.
        name: Human-readable display name, e.g. "Cartao Visa".
        account_type: ``"bank"`` or ``"credit_card"``. Credit-card
            accounts are classified through the history-only route.
        file_source: Sign-convention tag for this account's files, e.g.
            ``"itau"`` or ``"cartao_visa"``. Empty means natural sign.
    """

    id: int
    name: str
    account_type: str = "bank"
    file_source: str = ""


@dataclass
class DuplicateSettings:
    """Tolerances for fuzzy duplicate detection."""

    date_tolerance_days: int = 3
    amount_tolerance_cents: int = 100
    min_similarity: int = 80


@dataclass
class ClassificationSettings:
    """Thresholds for the classification cascade."""

    history_min_confidence: int = 70
    ai_confidence: int = 80
    max_workers: int = 4


@dataclass
class ImportSettings:
    """Filename and content hints used by format sniffing."""

    ledger_keywords: list[str] = field(default_factory=lambda: ["sangria"])
    bank_keywords: list[str] = field(default_factory=lambda: ["inter"])
    ledger_marker: str = "TIPO CONTA"


@dataclass
class AppConfig:
    """Top-level application configuration loaded from config.toml.

    Attributes:
        accounts: Configured accounts.
        duplicates: Fuzzy-match tolerances.
        classification: Cascade thresholds and fan-out.
        imports: Format-sniffing hints.
        sign_sources: Mapping of sign group (``natural``,
            ``always_expense``, ``inverted``) to file-source tags.
        llm_provider: ``"anthropic"`` or ``"none"``.
        llm_model: Model identifier.
        llm_api_key_env: Name of the environment variable holding the key.
    """

    accounts: list[AccountConfig] = field(default_factory=list)
    duplicates: DuplicateSettings = field(default_factory=DuplicateSettings)
    classification: ClassificationSettings = field(default_factory=ClassificationSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    sign_sources: dict[str, list[str]] = field(default_factory=dict)
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_api_key_env: str = "ANTHROPIC_API_KEY"

    def get_account(self, name: str) -> AccountConfig:
        """Look up an account by name (case-insensitive).

        Raises:
            KeyError: If no account has that name.
        """
        for acct in self.accounts:
            if acct.name.lower() == name.lower():
                return acct
        raise KeyError(name)


@dataclass
class LearnResult:
    """Outcome of learning from a corrected review CSV.

    Attributes:
        learned: Corrections recorded into history.
        skipped: Corrected rows with no counterpart in the original file,
            or with an unreadable category.
        patterns: The patterns created or incremented, in file order.
    """

    learned: int = 0
    skipped: int = 0
    patterns: list[LearnedPattern] = field(default_factory=list)
