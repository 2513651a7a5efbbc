"""Import pipeline orchestration.

Composes the stages of a statement upload: parse (after format sniffing),
detect duplicates against the caller's existing records, and classify each
record. The two annotations are merged per record, by position, into an
:class:`~statement_intake.models.ImportPreview`.

Nothing here persists anything. The caller reviews the preview and hands the
records it keeps to :func:`confirm_import`, which builds the stored form.
"""

from __future__ import annotations

import logging

from statement_intake.categorizer import classify_transactions_batch
from statement_intake.duplicates import detect_duplicates_batch, get_duplicate_stats
from statement_intake.history import HistoryStore
from statement_intake.llm import LLMAdapter
from statement_intake.models import (
    EXPENSE,
    AccountConfig,
    AppConfig,
    Category,
    ClassificationRule,
    DuplicateDetection,
    ImportedTransaction,
    ImportPreview,
    LearnedPattern,
    StoredTransaction,
)
from statement_intake.parsers import parse_file

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def preview_import(
    content: str,
    file_name: str,
    account: AccountConfig,
    existing: list[StoredTransaction],
    rules: list[ClassificationRule],
    history: HistoryStore | list[LearnedPattern],
    categories: list[Category],
    config: AppConfig | None = None,
    llm_adapter: LLMAdapter | None = None,
) -> ImportPreview:
    """Parse a statement file and annotate every record for review.

    Stages executed in order:

    1. **Parse** -- sniff the format and parse with the account's sign
       convention.
    2. **Deduplicate** -- compare against *existing* (identifier, exact,
       then fuzzy).
    3. **Classify** -- rules, history, LLM, manual; credit-card accounts
       use the history-only route.
    4. **Merge** -- one :class:`ImportedTransaction` per parsed record, in
       file order.

    Args:
        content: Full file text.
        file_name: Original file name.
        account: Account the file belongs to.
        existing: The owner's stored transactions.
        rules: Classification rules.
        history: Learned patterns (a store or a plain list).
        categories: Category catalog.
        config: Application configuration; defaults apply when omitted.
        llm_adapter: Generative fallback; None skips that tier.

    Returns:
        An ImportPreview. ``success`` is False only when the file yielded
        no transactions and reported errors.

    Raises:
        UnknownFileSourceError: If the account's file source is not in any
            configured sign group.
    """
    if config is None:
        config = AppConfig()

    # -- Stage 1: Parse -------------------------------------------------------
    parse_result = parse_file(
        content,
        file_name,
        file_source=account.file_source or None,
        settings=config.imports,
        sign_groups=config.sign_sources or None,
    )
    transactions = parse_result.transactions
    logger.info(
        "%s: parsed %d transaction(s), %d error(s)",
        file_name,
        len(transactions),
        len(parse_result.errors),
    )

    if not transactions:
        return ImportPreview(
            success=not parse_result.errors,
            errors=parse_result.errors,
            warnings=parse_result.warnings,
            account_info=parse_result.account_info,
        )

    # -- Stage 2: Deduplicate -------------------------------------------------
    duplicates = detect_duplicates_batch(transactions, existing, config.duplicates)
    stats = get_duplicate_stats(duplicates)
    if stats.total:
        logger.info("%s: %d possible duplicate(s)", file_name, stats.total)

    # -- Stage 3: Classify ----------------------------------------------------
    patterns = history.patterns() if isinstance(history, HistoryStore) else history
    classifications = classify_transactions_batch(
        transactions,
        account.id,
        rules,
        patterns,
        categories,
        llm_adapter=llm_adapter,
        settings=config.classification,
        card_account=account.account_type == "credit_card",
    )

    # -- Stage 4: Merge -------------------------------------------------------
    merged = [
        ImportedTransaction(
            transaction=txn,
            classification=classifications[index],
            is_duplicate=index in duplicates,
            duplicate_info=_duplicate_info(duplicates[index]) if index in duplicates else None,
        )
        for index, txn in enumerate(transactions)
    ]

    return ImportPreview(
        success=True,
        transactions=merged,
        errors=parse_result.errors,
        warnings=parse_result.warnings,
        duplicate_stats=stats,
        account_info=parse_result.account_info,
    )


def confirm_import(
    reviewed: list[ImportedTransaction],
    account_id: int,
    next_id: int = 1,
) -> list[StoredTransaction]:
    """Build stored records from the reviewed records the caller keeps.

    Expenses get a negative amount. Classification fields are copied from
    each record's cascade result.

    Args:
        reviewed: Records approved by the caller.
        account_id: Owning account.
        next_id: Identifier for the first new record.
    """
    stored: list[StoredTransaction] = []
    for offset, item in enumerate(reviewed):
        txn = item.transaction
        cls = item.classification
        stored.append(
            StoredTransaction(
                id=next_id + offset,
                account_id=account_id,
                description=txn.description,
                amount=-txn.amount if txn.transaction_type == EXPENSE else txn.amount,
                transaction_type=txn.transaction_type,
                purchase_date=txn.purchase_date,
                payment_date=txn.payment_date,
                category_id=cls.category_id,
                suggested_category_id=cls.suggested_category_id,
                classification_method=cls.method,
                is_installment=txn.is_installment,
                installment_number=txn.installment_number,
                installment_total=txn.installment_total,
                original_purchase_date=txn.original_purchase_date,
                fit_id=txn.fit_id,
                source=txn.source,
                source_file=txn.source_file,
                duplicate_status="approved",
            )
        )
    return stored


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _duplicate_info(detection: DuplicateDetection) -> dict:
    """Summarize a detection for review.

    The snapshot is taken from the first exact match, else the best fuzzy
    match, else the identifier match.
    """
    if detection.exact_matches:
        kind, similarity = "exact", 100
        match = detection.exact_matches[0]
        existing, reason = match.existing, match.reason
    elif detection.fuzzy_matches:
        match = detection.fuzzy_matches[0]
        kind, similarity = "fuzzy", match.similarity
        existing, reason = match.existing, match.reason
    else:
        kind, similarity = "exact", 100
        existing = detection.fit_id_match
        reason = "Same bank transaction identifier"

    return {
        "type": kind,
        "similarity": similarity,
        "reason": reason,
        "fit_id_match": detection.fit_id_match is not None,
        "existing_transaction": {
            "id": existing.id,
            "description": existing.description,
            "purchase_date": existing.purchase_date,
            "amount": existing.amount,
            "transaction_type": existing.transaction_type,
        },
    }
