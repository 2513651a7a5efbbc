"""Click CLI entry point for the statement command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``pipeline``, ``categorizer``, ``config``, ``parsers``
and ``export`` modules.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from statement_intake import __version__


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _read_statement(path: Path) -> str:
    """Read a statement file; Brazilian bank exports are often Latin-1."""
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _brl(cents: int) -> str:
    return f"R$ {cents / 100:,.2f}"


def _missing_project(exc: Exception) -> None:
    click.echo(
        f"Error: {exc}. Run 'statement init' to create the project files.",
        err=True,
    )
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="statement-intake")
def cli() -> None:
    """Import bank statements, flag duplicates and classify transactions."""


@cli.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Account name from config.toml.")
@click.option(
    "--ledger", default="ledger.csv", type=click.Path(), help="Stored transactions CSV."
)
@click.option("--output", default=None, type=click.Path(), help="Review CSV to write.")
@click.option("--no-llm", is_flag=True, default=False, help="Skip LLM classification.")
@click.option("--verbose", is_flag=True, default=False, help="Detailed progress output.")
@click.option("--debug", is_flag=True, default=False, help="Developer-level diagnostics.")
def import_file(
    file: str,
    account: str,
    ledger: str,
    output: str | None,
    no_llm: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Parse a statement FILE and write a review CSV."""
    _configure_logging(verbose, debug)
    root = Path.cwd()

    # Load configuration
    try:
        from statement_intake.config import (
            load_categories,
            load_config,
            load_history,
            load_rules,
        )

        config = load_config(root)
        categories = load_categories(root)
        rules = load_rules(root)
        history = load_history(root)
    except FileNotFoundError as exc:
        _missing_project(exc)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)

    try:
        acct = config.get_account(account)
    except KeyError:
        names = ", ".join(a.name for a in config.accounts) or "none configured"
        click.echo(f"Error: unknown account {account!r} (available: {names})", err=True)
        sys.exit(1)

    # Select LLM adapter
    from statement_intake.llm import AnthropicAdapter

    if no_llm or config.llm_provider == "none":
        llm_adapter = None
        if verbose:
            click.echo("LLM classification disabled.")
    else:
        llm_adapter = AnthropicAdapter(
            model=config.llm_model,
            api_key_env=config.llm_api_key_env,
        )
        if verbose:
            click.echo(f"Using LLM: {config.llm_provider} ({config.llm_model})")

    from statement_intake.export import export_review, print_summary, read_ledger
    from statement_intake.pipeline import preview_import
    from statement_intake.signs import UnknownFileSourceError

    file_path = Path(file)
    try:
        existing = read_ledger(root / ledger)
        preview = preview_import(
            _read_statement(file_path),
            file_path.name,
            acct,
            existing,
            rules,
            history,
            categories,
            config=config,
            llm_adapter=llm_adapter,
        )
    except UnknownFileSourceError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error importing {file_path.name}: {exc}", err=True)
        sys.exit(1)

    if not preview.success:
        for error in preview.errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    output_path = Path(output) if output else root / "review" / f"{file_path.stem}-review.csv"
    try:
        written = export_review(preview, output_path)
        if verbose:
            click.echo(f"Wrote review file to {written}")
    except Exception as exc:
        click.echo(f"Error writing review file: {exc}", err=True)
        sys.exit(1)

    print_summary(preview, file_path.name)


@cli.command()
@click.argument("review", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Account name from config.toml.")
@click.option(
    "--ledger", default="ledger.csv", type=click.Path(), help="Stored transactions CSV."
)
@click.option(
    "--include-duplicates",
    is_flag=True,
    default=False,
    help="Also store rows flagged as possible duplicates.",
)
def confirm(review: str, account: str, ledger: str, include_duplicates: bool) -> None:
    """Append the rows of a reviewed CSV to the ledger."""
    _configure_logging(verbose=False, debug=False)
    root = Path.cwd()

    try:
        from statement_intake.config import load_config

        config = load_config(root)
        acct = config.get_account(account)
    except FileNotFoundError as exc:
        _missing_project(exc)
    except KeyError:
        click.echo(f"Error: unknown account {account!r}", err=True)
        sys.exit(1)

    from statement_intake.export import read_ledger, read_review, write_ledger
    from statement_intake.pipeline import confirm_import

    try:
        reviewed = read_review(review)
    except KeyError as exc:
        click.echo(f"Error: review file is missing required column: {exc}", err=True)
        sys.exit(1)
    except ValueError as exc:
        click.echo(f"Error reading review file: {exc}", err=True)
        sys.exit(1)

    kept = [item for item in reviewed if include_duplicates or not item.is_duplicate]
    ledger_path = root / ledger
    existing = read_ledger(ledger_path)
    next_id = max((t.id for t in existing), default=0) + 1
    stored = confirm_import(kept, acct.id, next_id=next_id)

    try:
        write_ledger(existing + stored, ledger_path)
    except Exception as exc:
        click.echo(f"Error writing ledger: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Stored {len(stored)} transaction(s) for {acct.name}.")
    skipped = len(reviewed) - len(kept)
    if skipped:
        click.echo(f"Skipped {skipped} possible duplicate(s).")


@cli.command()
@click.option(
    "--original", required=True, type=click.Path(exists=True), help="Exported review CSV."
)
@click.option(
    "--corrected", required=True, type=click.Path(exists=True), help="User-corrected CSV."
)
@click.option("--verbose", is_flag=True, default=False, help="Show each learned pattern.")
def learn(original: str, corrected: str, verbose: bool) -> None:
    """Compare a review CSV with its corrected copy and learn the corrections."""
    _configure_logging(verbose, debug=False)
    root = Path.cwd()

    try:
        from statement_intake.config import load_history, save_history

        store = load_history(root)
    except Exception as exc:
        click.echo(f"Error loading history: {exc}", err=True)
        sys.exit(1)

    from statement_intake.categorizer import learn_from_review

    try:
        result = learn_from_review(Path(original), Path(corrected), store)
    except KeyError as exc:
        click.echo(f"Error: CSV file is missing required column: {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error during learning: {exc}", err=True)
        sys.exit(1)

    try:
        save_history(root, store)
    except Exception as exc:
        click.echo(f"Error saving history: {exc}", err=True)
        sys.exit(1)

    click.echo()
    click.echo("== Learn Summary ==")
    click.echo(f"  Corrections learned:  {result.learned}")
    click.echo(f"  Rows skipped:         {result.skipped}")

    if verbose and result.patterns:
        click.echo()
        click.echo("Learned patterns:")
        for pattern in result.patterns:
            click.echo(
                f'  "{pattern.description}" -> category {pattern.category_id} '
                f"(seen {pattern.count}x)"
            )

    click.echo()


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def revenue(file: str) -> None:
    """Parse a monthly revenue summary FILE and print its totals."""
    from statement_intake.parsers import revenue_csv

    result = revenue_csv.parse(_read_statement(Path(file)))

    for error in result.errors:
        click.echo(f"Warning: {error}", err=True)
    if not result.rows:
        click.echo("Error: no revenue rows found.", err=True)
        sys.exit(1)

    click.echo()
    click.echo(f"{'Month':<9} {'Credit':>14} {'Debit':>14} {'Pix':>14} {'Total':>16}")
    for row in result.rows:
        credit = (
            row.credit_cash
            + row.credit_2x
            + row.credit_3x
            + row.credit_4x
            + row.credit_5x
            + row.credit_6x
            + row.gira_credit
        )
        click.echo(
            f"{row.month:02d}/{row.year:<6} {_brl(credit):>14} {_brl(row.debit):>14} "
            f"{_brl(row.pix):>14} {_brl(row.total):>16}"
        )
    click.echo(f"{'Total':<9} {'':>14} {'':>14} {'':>14} {_brl(sum(r.total for r in result.rows)):>16}")
    click.echo()


@cli.command()
@click.option("--delete", "delete_id", type=int, default=None, help="Delete pattern ID.")
@click.option("--edit", "edit_id", type=int, default=None, help="Edit pattern ID.")
@click.option("--description", default=None, help="New description for --edit.")
@click.option("--category", "category_id", type=int, default=None, help="New category for --edit.")
def patterns(
    delete_id: int | None,
    edit_id: int | None,
    description: str | None,
    category_id: int | None,
) -> None:
    """List learned classification patterns, or edit or delete one."""
    root = Path.cwd()

    try:
        from statement_intake.config import load_categories, load_history, save_history

        store = load_history(root)
        categories = {c.id: c.display_name for c in load_categories(root)}
    except FileNotFoundError as exc:
        _missing_project(exc)
    except Exception as exc:
        click.echo(f"Error loading history: {exc}", err=True)
        sys.exit(1)

    if delete_id is not None and edit_id is not None:
        click.echo("Error: use either --delete or --edit, not both", err=True)
        sys.exit(1)

    if delete_id is not None:
        try:
            store.delete(delete_id)
        except KeyError:
            click.echo(f"Error: no learned pattern with id {delete_id}", err=True)
            sys.exit(1)
        save_history(root, store)
        click.echo(f"Deleted pattern {delete_id}.")
        return

    if edit_id is not None:
        if description is None or category_id is None:
            click.echo("Error: --edit needs both --description and --category", err=True)
            sys.exit(1)
        if category_id not in categories:
            click.echo(f"Error: unknown category {category_id}", err=True)
            sys.exit(1)
        try:
            pattern = store.update(edit_id, description, category_id)
        except KeyError:
            click.echo(f"Error: no learned pattern with id {edit_id}", err=True)
            sys.exit(1)
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        save_history(root, store)
        click.echo(
            f'Updated pattern {edit_id}: "{pattern.description}" -> '
            f"{categories[pattern.category_id]}"
        )
        return

    if not len(store):
        click.echo("No learned patterns yet.")
        return

    for pattern in store.patterns():
        category = categories.get(pattern.category_id, f"#{pattern.category_id}")
        click.echo(f"{pattern.id:>4}  {pattern.count:>4}x  {category:<35} {pattern.description}")


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Initialize a project directory with default configuration files."""
    from statement_intake.config import initialize

    target = Path(target_dir).resolve()

    try:
        initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized statement-intake project in {target}")
