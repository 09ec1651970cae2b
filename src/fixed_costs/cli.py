"""Click CLI entry point for the ``fixed-costs`` command.

Handles argument parsing, config loading, store construction and error
display.  All business logic is delegated to ``pipeline``, ``importer``,
``categorizer``, ``actions``, ``config`` and ``report`` modules.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from fixed_costs import __version__


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


def _open_store(root: Path):
    """Load config from *root* and build a store, exiting on failure.

    Returns:
        ``(config, store)``.
    """
    from fixed_costs.config import load_config
    from fixed_costs.store import ConfigError, RestStore

    try:
        config = load_config(root)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)

    try:
        store = RestStore.from_env(config.store)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    return config, store


verbose_option = click.option(
    "--verbose", is_flag=True, default=False, help="Detailed progress output."
)
debug_option = click.option(
    "--debug", is_flag=True, default=False, help="Developer-level diagnostics."
)


@click.group()
@click.version_option(version=__version__, prog_name="fixed-costs")
def cli() -> None:
    """Detect recurring transactions (fixed costs) in scraped bank data."""


@cli.command()
@click.option(
    "--account",
    "account_id",
    envvar="ACCOUNT_ID",
    default=None,
    help="Account to process. Defaults to all active accounts.",
)
@verbose_option
@debug_option
def detect(account_id: str | None, verbose: bool, debug: bool) -> None:
    """Detect installments, direct debits and periodic charges."""
    _configure_logging(verbose, debug)

    from fixed_costs.context import DetectionContext
    from fixed_costs.pipeline import run
    from fixed_costs.report import print_summary
    from fixed_costs.store import StoreError

    config, store = _open_store(Path.cwd())
    ctx = DetectionContext(store=store, config=config.detection)

    if verbose:
        target = account_id if account_id else "all active accounts"
        click.echo(f"Detecting recurring transactions for {target}")

    try:
        with store:
            summary = run(ctx, account_id=account_id or None)
    except StoreError as exc:
        click.echo(f"Failed to fetch accounts: {exc}", err=True)
        sys.exit(1)

    print_summary(summary)

    if summary.failed:
        for result in summary.failed:
            click.echo(f"Error: account {result.account_id} failed: {result.error}", err=True)
        sys.exit(1)


@cli.command(name="list")
@click.option("--account", "account_id", envvar="ACCOUNT_ID", default=None, help="Only this account.")
@click.option("--pending", is_flag=True, default=False, help="Only items awaiting confirmation.")
def list_items(account_id: str | None, pending: bool) -> None:
    """List stored recurring items."""
    from fixed_costs.report import format_items
    from fixed_costs.store import StoreError

    _, store = _open_store(Path.cwd())
    try:
        with store:
            items = store.fetch_recurring(account_id or None)
    except StoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if pending:
        items = [item for item in items if not item.is_confirmed]
    click.echo(format_items(items))


def _set_confirmation(item_id: str, confirmed: bool) -> None:
    from fixed_costs.actions import confirm_item, reject_item
    from fixed_costs.store import StoreError

    _, store = _open_store(Path.cwd())
    action = confirm_item if confirmed else reject_item
    try:
        with store:
            action(store, item_id)
    except StoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"{'Confirmed' if confirmed else 'Rejected'} recurring item {item_id}")


@cli.command()
@click.argument("item_id")
def confirm(item_id: str) -> None:
    """Mark a recurring item as confirmed."""
    _set_confirmation(item_id, True)


@cli.command()
@click.argument("item_id")
def reject(item_id: str) -> None:
    """Mark a recurring item as not confirmed."""
    _set_confirmation(item_id, False)


@cli.command()
@click.option(
    "--account",
    "account_id",
    envvar="ACCOUNT_ID",
    default=None,
    help="Account to categorize. Defaults to all active accounts.",
)
@verbose_option
def categorize(account_id: str | None, verbose: bool) -> None:
    """Assign categories to uncategorized transactions using keyword rules."""
    _configure_logging(verbose, debug=False)

    from fixed_costs.categorizer import categorize_account
    from fixed_costs.context import DetectionContext
    from fixed_costs.store import StoreError

    config, store = _open_store(Path.cwd())
    ctx = DetectionContext(store=store, config=config.detection)

    matched = unmatched = 0
    try:
        with store:
            if account_id:
                account_ids = [account_id]
            else:
                account_ids = [a.id for a in store.fetch_active_accounts()]
            for acct in account_ids:
                result = categorize_account(ctx, acct)
                matched += result.matched
                unmatched += result.unmatched
    except StoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo()
    click.echo("== Categorize Summary ==")
    click.echo(f"  Categorized:  {matched}")
    click.echo(f"  No match:     {unmatched}")
    click.echo()


@cli.command(name="import")
@click.argument("account_id")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@verbose_option
def import_transactions(account_id: str, source: Path, verbose: bool) -> None:
    """Import scraped transactions from a JSON file into ACCOUNT_ID."""
    _configure_logging(verbose, debug=False)

    from fixed_costs.importer import import_records, load_records
    from fixed_costs.store import StoreError

    try:
        records = load_records(source)
    except ValueError as exc:
        click.echo(f"Error reading {source}: {exc}", err=True)
        sys.exit(1)

    _, store = _open_store(Path.cwd())
    try:
        with store:
            result = import_records(store, account_id, records)
    except StoreError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo()
    click.echo("== Import Summary ==")
    click.echo(f"  Imported:     {result.inserted}")
    click.echo(f"  Duplicates:   {result.skipped}")
    click.echo(f"  Skipped:      {len(result.warnings)}")
    click.echo()


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
def init(target_dir: str) -> None:
    """Write a default config.toml."""
    from fixed_costs.config import initialize

    target = Path(target_dir).resolve()

    try:
        created = initialize(target)
    except Exception as exc:
        click.echo(f"Error initializing project: {exc}", err=True)
        sys.exit(1)

    if created:
        click.echo(f"Initialized fixed-costs project in {target}")
    else:
        click.echo(f"config.toml already exists in {target}; left unchanged")
