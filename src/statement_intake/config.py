"""Configuration loading, writing, and project initialization.

Reads TOML files using stdlib ``tomllib`` and writes them using
``tomli_w``. A project directory holds four files:

- ``config.toml`` -- accounts, duplicate tolerances, cascade thresholds,
  format-sniffing hints, sign groups and LLM settings.
- ``categories.toml`` -- the category catalog.
- ``rules.toml`` -- classification rules.
- ``history.toml`` -- learned patterns (system-managed).

Depends only on ``models``, ``history`` and ``signs``.
"""

from __future__ import annotations

import tomllib
from datetime import datetime
from pathlib import Path

import tomli_w

from statement_intake.history import HistoryStore
from statement_intake.models import (
    AccountConfig,
    AppConfig,
    Category,
    ClassificationRule,
    ClassificationSettings,
    DuplicateSettings,
    ImportSettings,
    LearnedPattern,
    MatchMode,
)
from statement_intake.signs import DEFAULT_SIGN_GROUPS

# ---------------------------------------------------------------------------
# Default file content
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_TOML = """\
# Statement Intake configuration

[duplicates]
date_tolerance_days = 3
amount_tolerance_cents = 100   # R$ 1,00
min_similarity = 80            # percent

[classification]
history_min_confidence = 70
ai_confidence = 80
max_workers = 4                # concurrent LLM calls

[import]
ledger_keywords = ["sangria"]
bank_keywords = ["inter"]
ledger_marker = "TIPO CONTA"

[sign_sources]
natural = ["itau", "nubank_pj", "nubank_pessoal", "inter"]
always_expense = ["sangria"]
inverted = ["cartao_master", "cartao_visa"]

[llm]
provider = "anthropic"          # "anthropic" or "none"
model = "claude-sonnet-4-20250514"
api_key_env = "ANTHROPIC_API_KEY"  # Name of env var containing the API key

# Account definitions
[[accounts]]
id = 1
name = "Itau"
account_type = "bank"
file_source = "itau"

[[accounts]]
id = 2
name = "Inter"
account_type = "bank"
file_source = "inter"

[[accounts]]
id = 3
name = "Sangria"
account_type = "bank"
file_source = "sangria"

[[accounts]]
id = 4
name = "Cartao Visa"
account_type = "credit_card"
file_source = "cartao_visa"
"""

_DEFAULT_CATEGORIES_TOML = """\
# Category catalog. Rendered for the LLM as "name" or "name > subcategory".

[[categories]]
id = 1
name = "Receitas"
subcategory = "PIX Recebido Cliente"

[[categories]]
id = 2
name = "Transporte"
subcategory = "Aplicativos"

[[categories]]
id = 3
name = "Alimentacao"
subcategory = "Supermercado"

[[categories]]
id = 4
name = "Alimentacao"
subcategory = "Restaurantes"

[[categories]]
id = 5
name = "Transferencia Interna"
"""

_DEFAULT_RULES_TOML = """\
# Classification rules, evaluated in descending priority; first match wins.
# pattern: one or more sub-patterns separated by ";" (any may match)
# match_mode: "contains", "starts_with", "ends_with" or "exact"
# Optional: account_id, min_amount / max_amount (cents, absolute value)

# Example:
# [[rules]]
# id = 1
# pattern = "UBER;99POP"
# match_mode = "contains"
# category_id = 2
# transaction_type = "expense"
# priority = 10
"""

_DEFAULT_HISTORY_TOML = """\
# Learned patterns, managed by the learn command. Do not hand-edit.
"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
    """
    data = _read_toml(root / "config.toml")

    dup = data.get("duplicates", {})
    cls = data.get("classification", {})
    imp = data.get("import", {})
    llm = data.get("llm", {})
    defaults = ImportSettings()

    accounts = [
        AccountConfig(
            id=int(a["id"]),
            name=a["name"],
            account_type=a.get("account_type", "bank"),
            file_source=a.get("file_source", ""),
        )
        for a in data.get("accounts", [])
    ]

    sign_sources = {
        group: list(data.get("sign_sources", {}).get(group, members))
        for group, members in DEFAULT_SIGN_GROUPS.items()
    }

    return AppConfig(
        accounts=accounts,
        duplicates=DuplicateSettings(
            date_tolerance_days=dup.get("date_tolerance_days", 3),
            amount_tolerance_cents=dup.get("amount_tolerance_cents", 100),
            min_similarity=dup.get("min_similarity", 80),
        ),
        classification=ClassificationSettings(
            history_min_confidence=cls.get("history_min_confidence", 70),
            ai_confidence=cls.get("ai_confidence", 80),
            max_workers=cls.get("max_workers", 4),
        ),
        imports=ImportSettings(
            ledger_keywords=imp.get("ledger_keywords", defaults.ledger_keywords),
            bank_keywords=imp.get("bank_keywords", defaults.bank_keywords),
            ledger_marker=imp.get("ledger_marker", defaults.ledger_marker),
        ),
        sign_sources=sign_sources,
        llm_provider=llm.get("provider", "anthropic"),
        llm_model=llm.get("model", "claude-sonnet-4-20250514"),
        llm_api_key_env=llm.get("api_key_env", "ANTHROPIC_API_KEY"),
    )


def load_categories(root: Path) -> list[Category]:
    """Load ``categories.toml`` and return the catalog in file order.

    Raises:
        FileNotFoundError: If ``categories.toml`` does not exist.
    """
    data = _read_toml(root / "categories.toml")
    return [
        Category(
            id=int(c["id"]),
            name=c["name"],
            subcategory=c.get("subcategory") or None,
        )
        for c in data.get("categories", [])
    ]


def load_rules(root: Path) -> list[ClassificationRule]:
    """Load ``rules.toml`` and return the rules in file order.

    Raises:
        FileNotFoundError: If ``rules.toml`` does not exist.
        ValueError: If a rule names an unknown match mode.
    """
    data = _read_toml(root / "rules.toml")
    return [
        ClassificationRule(
            id=int(r["id"]),
            pattern=r["pattern"],
            match_mode=MatchMode(r.get("match_mode", "contains")),
            category_id=int(r["category_id"]),
            transaction_type=r.get("transaction_type", "expense"),
            priority=r.get("priority", 0),
            account_id=r.get("account_id"),
            min_amount=r.get("min_amount"),
            max_amount=r.get("max_amount"),
            is_active=r.get("is_active", True),
        )
        for r in data.get("rules", [])
    ]


def load_history(root: Path) -> HistoryStore:
    """Load ``history.toml`` into a :class:`HistoryStore`.

    A missing file yields an empty store.
    """
    path = root / "history.toml"
    if not path.exists():
        return HistoryStore()
    data = _read_toml(path)
    patterns = [
        LearnedPattern(
            id=int(p["id"]),
            description=p["description"],
            category_id=int(p["category_id"]),
            count=p.get("count", 1),
            last_used=_as_datetime(p.get("last_used")),
            created_at=_as_datetime(p.get("created_at")),
        )
        for p in data.get("patterns", [])
    ]
    return HistoryStore(patterns)


def save_history(root: Path, store: HistoryStore) -> None:
    """Rewrite ``history.toml`` from *store*, most used patterns first."""
    patterns = [
        {
            "id": p.id,
            "description": p.description,
            "category_id": p.category_id,
            "count": p.count,
            "last_used": p.last_used,
            "created_at": p.created_at,
        }
        for p in store.patterns()
    ]
    body = tomli_w.dumps({"patterns": patterns}) if patterns else ""
    (root / "history.toml").write_text(_DEFAULT_HISTORY_TOML + body, encoding="utf-8")


def initialize(target_dir: Path) -> None:
    """Create the default config files in *target_dir*.

    Idempotent: existing files are **not** overwritten.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    _write_if_missing(target_dir / "config.toml", _DEFAULT_CONFIG_TOML)
    _write_if_missing(target_dir / "categories.toml", _DEFAULT_CATEGORIES_TOML)
    _write_if_missing(target_dir / "rules.toml", _DEFAULT_RULES_TOML)
    _write_if_missing(target_dir / "history.toml", _DEFAULT_HISTORY_TOML)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _as_datetime(value: object) -> datetime:
    """TOML datetimes come back as ``datetime``; anything else means now."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return datetime.now()


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")
