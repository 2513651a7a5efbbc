"""Classification cascade: rules, learned history, LLM fallback, manual review.

Each record is classified by trying tiers in strict order; the first tier
that resolves wins:

1. **Rules** -- active rules in descending priority. A rule's pattern is a
   ``;``-separated list of OR-joined sub-patterns compared with the rule's
   match mode. Account scope and an inclusive amount range further restrict
   it. Confidence 100.
2. **History** -- learned (description, category) counts. The most used
   category wins with confidence ``best / total * 100``; accepted only at
   or above the configured threshold (70), otherwise kept as a suggestion.
3. **LLM** -- the catalog and the transaction go to an ``LLMAdapter``; the
   answer must name a catalog entry exactly (case-insensitive).
   Confidence 80.
4. **Manual** -- unresolved, carrying the history suggestion if any.

Every tier is a plain function returning a ``ClassificationResult`` or
``None`` ("pass to the next tier"), so the cascade is a chain of fallback
checks and each tier is testable on its own.

Credit-card accounts take a separate single-tier route based only on
history (see :func:`classify_card_transaction`).

Depends on ``models``, ``normalize``, ``history`` and the ``LLMAdapter``
protocol from ``llm``.
"""

from __future__ import annotations

import csv
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from statement_intake.history import HistoryStore
from statement_intake.llm import LLMAdapter
from statement_intake.models import (
    METHOD_AI,
    METHOD_HISTORY,
    METHOD_MANUAL,
    METHOD_RULE,
    Category,
    ClassificationResult,
    ClassificationRule,
    ClassificationSettings,
    LearnedPattern,
    LearnResult,
    MatchMode,
    ParsedTransaction,
    StoredTransaction,
)
from statement_intake.normalize import normalize_description

logger = logging.getLogger(__name__)

RULE_CONFIDENCE = 100

HISTORY_EXACT = "exact"
HISTORY_CONTAINS = "contains"


# ---------------------------------------------------------------------------
# Tier 1 -- rules
# ---------------------------------------------------------------------------


def matches(mode: MatchMode, text: str, pattern: str) -> bool:
    """Compare one normalized sub-pattern against a normalized description."""
    mode = MatchMode(mode)
    if mode is MatchMode.CONTAINS:
        return pattern in text
    if mode is MatchMode.STARTS_WITH:
        return text.startswith(pattern)
    if mode is MatchMode.ENDS_WITH:
        return text.endswith(pattern)
    if mode is MatchMode.EXACT:
        return text == pattern
    raise ValueError(f"Unsupported match mode: {mode!r}")


def split_pattern(pattern: str) -> list[str]:
    """Split a ``;``-joined rule pattern into normalized sub-patterns."""
    parts = (normalize_description(p) for p in pattern.split(";"))
    return [p for p in parts if p]


def active_rules(rules: list[ClassificationRule]) -> list[ClassificationRule]:
    """Active rules in descending priority, ties kept in input order."""
    return sorted(
        (r for r in rules if r.is_active),
        key=lambda r: r.priority,
        reverse=True,
    )


def rule_matches(
    rule: ClassificationRule,
    normalized_description: str,
    amount: int,
    account_id: int | None,
) -> bool:
    """True if *rule* applies to a record.

    Args:
        rule: The rule to evaluate.
        normalized_description: Output of ``normalize_description``.
        amount: Record amount in cents; compared by absolute value.
        account_id: Account the record belongs to.
    """
    if rule.account_id is not None and rule.account_id != account_id:
        return False

    if not any(
        matches(rule.match_mode, normalized_description, sub)
        for sub in split_pattern(rule.pattern)
    ):
        return False

    abs_amount = abs(amount)
    if rule.min_amount is not None and abs_amount < rule.min_amount:
        return False
    if rule.max_amount is not None and abs_amount > rule.max_amount:
        return False
    return True


def apply_rules(
    description: str,
    amount: int,
    account_id: int | None,
    rules: list[ClassificationRule],
) -> ClassificationResult | None:
    """Tier 1: the first matching rule in priority order wins."""
    normalized = normalize_description(description)
    for rule in active_rules(rules):
        if rule_matches(rule, normalized, amount, account_id):
            logger.debug("Rule %d matched %r", rule.id, description)
            return ClassificationResult(
                category_id=rule.category_id,
                method=METHOD_RULE,
                confidence=RULE_CONFIDENCE,
            )
    return None


# ---------------------------------------------------------------------------
# Tier 2 -- learned history
# ---------------------------------------------------------------------------


def history_candidates(
    description: str,
    history: list[LearnedPattern],
    lookup: str = HISTORY_EXACT,
) -> list[LearnedPattern]:
    """Learned patterns for *description*, most used first.

    With ``lookup="exact"`` the stored description must equal the record's
    (case-insensitive, trimmed); with ``"contains"`` it must contain it.
    """
    needle = description.strip().lower()
    if not needle:
        return []
    if lookup == HISTORY_EXACT:
        found = [p for p in history if p.description.strip().lower() == needle]
    elif lookup == HISTORY_CONTAINS:
        found = [p for p in history if needle in p.description.lower()]
    else:
        raise ValueError(f"Unsupported history lookup: {lookup!r}")
    return sorted(found, key=lambda p: p.count, reverse=True)


def classify_by_history(
    description: str,
    history: list[LearnedPattern],
    lookup: str = HISTORY_EXACT,
) -> ClassificationResult | None:
    """Tier 2: the most used learned category, with its share as confidence.

    Returns None when nothing was learned for the description. The caller
    decides whether the confidence is high enough to accept.
    """
    candidates = history_candidates(description, history, lookup)
    if not candidates:
        return None

    best = candidates[0]
    total = sum(p.count for p in candidates)
    confidence = math.floor(best.count / total * 100 + 0.5) if total > 0 else 0
    return ClassificationResult(
        category_id=best.category_id,
        method=METHOD_HISTORY,
        confidence=confidence,
    )


# ---------------------------------------------------------------------------
# Tier 3 -- LLM
# ---------------------------------------------------------------------------


def classify_by_ai(
    description: str,
    amount: int,
    categories: list[Category],
    llm_adapter: LLMAdapter | None,
    confidence: int = 80,
) -> ClassificationResult | None:
    """Tier 3: ask the LLM to pick one catalog entry.

    Any failure (no adapter, exception, empty or unknown answer) returns
    None so the cascade falls through.
    """
    if llm_adapter is None or not categories:
        return None

    catalog = [c.display_name for c in categories]
    try:
        answer = llm_adapter.suggest_category(description, abs(amount), catalog)
    except Exception as exc:
        logger.warning("LLM classification failed for %r: %s", description, exc)
        return None

    if not answer:
        return None

    wanted = answer.strip().lower()
    for category in categories:
        if category.display_name.lower() == wanted:
            return ClassificationResult(
                category_id=category.id,
                method=METHOD_AI,
                confidence=confidence,
            )

    logger.warning("LLM answered %r, which is not in the catalog", answer)
    return None


# ---------------------------------------------------------------------------
# Cascade
# ---------------------------------------------------------------------------


def unclassified(suggested_category_id: int | None = None) -> ClassificationResult:
    """Manual-review result, optionally with a suggested category."""
    return ClassificationResult(
        category_id=None,
        method=METHOD_MANUAL,
        confidence=0,
        suggested_category_id=suggested_category_id,
    )


def classify_transaction(
    transaction: ParsedTransaction,
    account_id: int | None,
    rules: list[ClassificationRule],
    history: list[LearnedPattern],
    categories: list[Category],
    llm_adapter: LLMAdapter | None = None,
    settings: ClassificationSettings | None = None,
) -> ClassificationResult:
    """Run the cascade for one record: rules, history, LLM, manual."""
    if settings is None:
        settings = ClassificationSettings()

    result = apply_rules(transaction.description, transaction.amount, account_id, rules)
    if result is not None:
        return result

    history_result = classify_by_history(transaction.description, history)
    if history_result is not None and history_result.confidence >= settings.history_min_confidence:
        return history_result

    result = classify_by_ai(
        transaction.description,
        transaction.amount,
        categories,
        llm_adapter,
        confidence=settings.ai_confidence,
    )
    if result is not None:
        return result

    if history_result is not None:
        return unclassified(suggested_category_id=history_result.category_id)
    return unclassified()


def classify_card_transaction(
    transaction: ParsedTransaction,
    history: list[LearnedPattern],
) -> ClassificationResult:
    """Credit-card route: history only, no rules and no LLM.

    Uses the *contains* lookup, and any learned candidate is accepted with
    its share as confidence.
    """
    result = classify_by_history(transaction.description, history, lookup=HISTORY_CONTAINS)
    if result is not None:
        return result
    return unclassified()


def classify_transactions_batch(
    transactions: list[ParsedTransaction],
    account_id: int | None,
    rules: list[ClassificationRule],
    history: list[LearnedPattern],
    categories: list[Category],
    llm_adapter: LLMAdapter | None = None,
    settings: ClassificationSettings | None = None,
    card_account: bool = False,
) -> list[ClassificationResult]:
    """Classify a batch, preserving input order.

    When an LLM adapter is present the per-record cascades run on a thread
    pool of ``settings.max_workers`` so that LLM calls overlap; results are
    still returned in the order of *transactions*.
    """
    if settings is None:
        settings = ClassificationSettings()

    def classify_one(txn: ParsedTransaction) -> ClassificationResult:
        if card_account:
            return classify_card_transaction(txn, history)
        return classify_transaction(
            txn, account_id, rules, history, categories, llm_adapter, settings
        )

    if llm_adapter is None or card_account or settings.max_workers <= 1 or len(transactions) <= 1:
        return [classify_one(txn) for txn in transactions]

    with ThreadPoolExecutor(max_workers=settings.max_workers) as executor:
        return list(executor.map(classify_one, transactions))


# ---------------------------------------------------------------------------
# Learning feedback
# ---------------------------------------------------------------------------


def learn_from_correction(
    store: HistoryStore,
    description: str,
    category_id: int,
) -> LearnedPattern:
    """Record that a person put *description* in *category_id*."""
    return store.record(description, category_id)


def apply_correction(
    transaction: StoredTransaction,
    category_id: int,
    store: HistoryStore,
) -> StoredTransaction:
    """Apply a human category correction and feed it back into history.

    The record becomes manually classified and loses its suggestion.
    """
    transaction.category_id = category_id
    transaction.suggested_category_id = None
    transaction.classification_method = METHOD_MANUAL
    learn_from_correction(store, transaction.description, category_id)
    return transaction


def learn_from_review(
    original_path: Path,
    corrected_path: Path,
    store: HistoryStore,
) -> LearnResult:
    """Compare an exported review CSV with its corrected copy.

    Rows are paired by their ``row`` column. Every row whose
    ``category_id`` was set or changed in the corrected file is recorded
    into *store* with the corrected description. Rows cleared by the
    person, rows missing from the original and rows with a non-numeric
    category are not learned; the latter two count as skipped.

    Raises:
        FileNotFoundError: If either file does not exist.
        KeyError: If a CSV has no ``row`` column.
    """
    original_rows = _read_review_indexed(original_path)
    corrected_rows = _read_review_indexed(corrected_path)
    result = LearnResult()

    for row_no, corrected in corrected_rows.items():
        original = original_rows.get(row_no)
        if original is None:
            result.skipped += 1
            continue

        new_value = (corrected.get("category_id") or "").strip()
        if not new_value or new_value == (original.get("category_id") or "").strip():
            continue

        try:
            category_id = int(new_value)
        except ValueError:
            logger.warning("Row %s: category_id %r is not a number", row_no, new_value)
            result.skipped += 1
            continue

        description = corrected.get("description") or original.get("description", "")
        result.patterns.append(learn_from_correction(store, description, category_id))
        result.learned += 1

    return result


def _read_review_indexed(path: Path) -> dict[str, dict[str, str]]:
    """Read a review CSV and return rows indexed by their ``row`` column."""
    result: dict[str, dict[str, str]] = {}
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            result[row["row"]] = dict(row)
    return result
