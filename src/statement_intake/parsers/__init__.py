"""Parser registry and format sniffing for statement files.

Each statement parser is a module exposing
``parse(content, file_name, file_source=None, sign_groups=None)`` that
returns a :class:`~statement_intake.models.ParseResult`. The ``PARSERS``
dict maps parser names to parse functions, ``get_parser()`` provides a
lookup with a clear error on unknown names, and ``parse_file()`` picks the
parser from the file name and content.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from statement_intake.models import ImportSettings, ParseResult
from statement_intake.parsers import bank_csv, card_csv, ledger_csv, ofx

logger = logging.getLogger(__name__)

PARSERS: dict[str, Callable[..., ParseResult]] = {
    "ofx": ofx.parse,
    "card_csv": card_csv.parse,
    "ledger_csv": ledger_csv.parse,
    "bank_csv": bank_csv.parse,
}


def get_parser(name: str) -> Callable[..., ParseResult]:
    """Look up a parser by name.

    Raises:
        KeyError: If no parser is registered under the given name.
    """
    return PARSERS[name]


def detect_format(content: str, file_name: str, settings: ImportSettings | None = None) -> str | None:
    """Choose a parser name for a file, or None if the format is unknown.

    OFX wins when the extension or the content says so. CSV files are
    routed by file-name keywords (ledger first, then bank) and fall back to
    the card format.
    """
    if settings is None:
        settings = ImportSettings()
    lower_name = file_name.lower()

    if lower_name.endswith(".ofx") or "<OFX>" in content or "<STMTTRN>" in content:
        return "ofx"

    if lower_name.endswith(".csv"):
        if any(kw.lower() in lower_name for kw in settings.ledger_keywords):
            return "ledger_csv"
        if settings.ledger_marker and settings.ledger_marker in content:
            return "ledger_csv"
        if any(kw.lower() in lower_name for kw in settings.bank_keywords):
            return "bank_csv"
        return "card_csv"

    return None


def parse_file(
    content: str,
    file_name: str,
    file_source: str | None = None,
    settings: ImportSettings | None = None,
    sign_groups: dict[str, list[str]] | None = None,
) -> ParseResult:
    """Sniff the format of a statement file and parse it.

    Args:
        content: Full file text.
        file_name: Original file name (extension and keywords drive the
            choice of parser).
        file_source: Optional sign-convention tag of the owning account.
        settings: Format-sniffing hints. Defaults to ``ImportSettings()``.
        sign_groups: Sign-group membership for *file_source*.

    Returns:
        The parser's ParseResult, or an empty result with a single error
        for unrecognized formats.

    Raises:
        UnknownFileSourceError: If *file_source* is not configured.
    """
    name = detect_format(content, file_name, settings)
    if name is None:
        logger.warning("Unknown file format: %s", file_name)
        return ParseResult(errors=[f"Unknown file format: {file_name}"])

    logger.info("Parsing %s with %s parser", file_name, name)
    return get_parser(name)(content, file_name, file_source, sign_groups)
