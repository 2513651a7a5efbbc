"""Tests for statement_intake.config -- loading, saving, and initialization."""

import tomllib
from datetime import datetime
from pathlib import Path

import pytest

from statement_intake.config import (
    initialize,
    load_categories,
    load_config,
    load_history,
    load_rules,
    save_history,
)
from statement_intake.history import HistoryStore
from statement_intake.models import AccountConfig, AppConfig, MatchMode
from statement_intake.signs import DEFAULT_SIGN_GROUPS


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for loading config.toml into an AppConfig."""

    def test_loads_default_config(self, tmp_path: Path):
        """Default config.toml produced by initialize() is loadable."""
        initialize(tmp_path)
        config = load_config(tmp_path)

        assert isinstance(config, AppConfig)
        assert len(config.accounts) == 4
        assert config.duplicates.date_tolerance_days == 3
        assert config.duplicates.amount_tolerance_cents == 100
        assert config.duplicates.min_similarity == 80
        assert config.classification.history_min_confidence == 70
        assert config.classification.ai_confidence == 80
        assert config.sign_sources == DEFAULT_SIGN_GROUPS

    def test_account_fields(self, tmp_path: Path):
        """Each account entry maps to a correct AccountConfig."""
        initialize(tmp_path)
        config = load_config(tmp_path)

        card = config.accounts[3]
        assert isinstance(card, AccountConfig)
        assert card.id == 4
        assert card.name == "Cartao Visa"
        assert card.account_type == "credit_card"
        assert card.file_source == "cartao_visa"

    def test_get_account_case_insensitive(self, tmp_project_dir: Path):
        config = load_config(tmp_project_dir)
        assert config.get_account("itau").id == 1

    def test_get_unknown_account_raises(self, tmp_project_dir: Path):
        config = load_config(tmp_project_dir)
        with pytest.raises(KeyError):
            config.get_account("Bradesco")

    def test_fixture_config(self, tmp_project_dir: Path):
        config = load_config(tmp_project_dir)

        assert config.llm_provider == "none"
        assert config.llm_api_key_env == "TEST_ANTHROPIC_KEY"
        assert config.classification.max_workers == 2
        assert config.sign_sources["inverted"] == ["cartao_visa"]

    def test_missing_sections_use_defaults(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text('[[accounts]]\nid = 1\nname = "Itau"\n')

        config = load_config(tmp_path)

        assert config.accounts[0].account_type == "bank"
        assert config.accounts[0].file_source == ""
        assert config.duplicates.min_similarity == 80
        assert config.imports.ledger_marker == "TIPO CONTA"
        assert config.sign_sources == DEFAULT_SIGN_GROUPS
        assert config.llm_provider == "anthropic"

    def test_missing_config_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------


class TestLoadCategories:
    def test_loads_default_categories(self, tmp_path: Path):
        initialize(tmp_path)
        categories = load_categories(tmp_path)

        assert [c.id for c in categories] == [1, 2, 3, 4, 5]
        assert categories[1].display_name == "Transporte > Aplicativos"
        assert categories[4].subcategory is None
        assert categories[4].display_name == "Transferencia Interna"

    def test_missing_categories_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_categories(tmp_path)


class TestLoadRules:
    def test_default_rules_file_is_empty(self, tmp_path: Path):
        initialize(tmp_path)
        assert load_rules(tmp_path) == []

    def test_fixture_rules(self, tmp_project_dir: Path):
        rules = load_rules(tmp_project_dir)

        assert [r.id for r in rules] == [1, 2, 3]
        assert rules[0].pattern == "UBER;99POP"
        assert rules[0].match_mode is MatchMode.CONTAINS
        assert rules[1].match_mode is MatchMode.STARTS_WITH
        assert rules[1].transaction_type == "income"
        assert rules[2].is_active is False
        assert rules[0].account_id is None

    def test_unknown_match_mode_rejected(self, tmp_path: Path):
        (tmp_path / "rules.toml").write_text(
            '[[rules]]\nid = 1\npattern = "X"\nmatch_mode = "regex"\ncategory_id = 1\n'
        )
        with pytest.raises(ValueError):
            load_rules(tmp_path)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class TestHistoryFile:
    def test_loads_fixture_history(self, tmp_project_dir: Path):
        store = load_history(tmp_project_dir)

        assert len(store) == 4
        top = store.patterns()[0]
        assert top.description == "SUPERMERCADO EXTRA"
        assert top.count == 3
        assert top.last_used == datetime(2025, 9, 1, 10, 0, 0)

    def test_missing_file_is_empty_store(self, tmp_path: Path):
        assert len(load_history(tmp_path)) == 0

    def test_default_history_file_is_empty(self, tmp_path: Path):
        initialize(tmp_path)
        assert len(load_history(tmp_path)) == 0

    def test_round_trip(self, tmp_path: Path):
        store = HistoryStore()
        stamp = datetime(2025, 9, 20, 8, 30, 0)
        store.record("POSTO IPIRANGA", 2, now=stamp)
        store.record("POSTO IPIRANGA", 2, now=stamp)
        store.record("PADARIA CENTRAL", 3, now=stamp)

        save_history(tmp_path, store)
        loaded = load_history(tmp_path)

        assert [(p.description, p.category_id, p.count) for p in loaded.patterns()] == [
            ("POSTO IPIRANGA", 2, 2),
            ("PADARIA CENTRAL", 3, 1),
        ]
        assert loaded.patterns()[0].created_at == stamp

    def test_saved_file_is_valid_toml(self, tmp_path: Path):
        store = HistoryStore()
        store.record("UBER", 2)
        save_history(tmp_path, store)

        with open(tmp_path / "history.toml", "rb") as f:
            data = tomllib.load(f)
        assert data["patterns"][0]["description"] == "UBER"

    def test_save_empty_store(self, tmp_path: Path):
        save_history(tmp_path, HistoryStore())
        assert len(load_history(tmp_path)) == 0


# ---------------------------------------------------------------------------
# initialize
# ---------------------------------------------------------------------------


class TestInitialize:
    def test_creates_config_files(self, tmp_path: Path):
        initialize(tmp_path)
        for name in ("config.toml", "categories.toml", "rules.toml", "history.toml"):
            assert (tmp_path / name).is_file()

    def test_config_files_are_valid_toml(self, tmp_path: Path):
        initialize(tmp_path)
        for name in ("config.toml", "categories.toml", "rules.toml", "history.toml"):
            with open(tmp_path / name, "rb") as f:
                tomllib.load(f)

    def test_idempotent_does_not_overwrite(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text("# custom\n")
        initialize(tmp_path)
        assert (tmp_path / "config.toml").read_text() == "# custom\n"

    def test_creates_missing_parent_directories(self, tmp_path: Path):
        target = tmp_path / "a" / "b"
        initialize(target)
        assert (target / "config.toml").is_file()
