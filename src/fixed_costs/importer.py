"""Load scraper output into the store's ``transactions`` table.

The scraping engine writes one JSON document per run.  Records are mapped
through :func:`fixed_costs.normalize.row_from_scraped` and inserted one at a
time; a uniqueness conflict means the transaction was imported by an
earlier run and is counted as skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from fixed_costs.normalize import row_from_scraped
from fixed_costs.store import ConflictError, TransactionStore

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of importing one batch of scraper records."""

    inserted: int = 0
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)


def records_from_json(data: object) -> list[dict]:
    """Extract transaction records from a scraper JSON document.

    Accepts a bare list of records, a single scraped account
    (``{"txns": [...]}``) or a full scrape result
    (``{"accounts": [{"txns": [...]}, ...]}``).

    Raises:
        ValueError: If the document has none of these shapes.
    """
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    if isinstance(data, dict):
        if "accounts" in data:
            records: list[dict] = []
            for account in data.get("accounts") or []:
                records.extend(records_from_json(account))
            return records
        if "txns" in data:
            return records_from_json(data.get("txns") or [])
    raise ValueError("Expected a list of transactions or an object with 'txns' or 'accounts'")


def load_records(path: Path) -> list[dict]:
    """Read scraper records from the JSON file at *path*."""
    with open(path, encoding="utf-8") as f:
        return records_from_json(json.load(f))


def import_records(
    store: TransactionStore,
    account_id: str,
    records: list[dict],
) -> ImportResult:
    """Insert scraper *records* as transactions of *account_id*.

    Records that cannot be mapped (bad date or amount, no date at all) are
    reported in ``warnings`` and not sent.

    Raises:
        StoreError: On any store failure other than a duplicate.  Rows
            inserted before the failure are kept.
    """
    result = ImportResult()
    for position, record in enumerate(records):
        label = record.get("identifier") or f"#{position}"
        try:
            row = row_from_scraped(account_id, record)
        except ValueError as exc:
            result.warnings.append(f"Skipped scraped transaction {label}: {exc}")
            continue
        if row["date"] is None:
            result.warnings.append(f"Skipped scraped transaction {label}: missing date")
            continue

        try:
            store.insert_transaction(row)
        except ConflictError:
            logger.debug("Transaction %s already imported", label)
            result.skipped += 1
            continue
        result.inserted += 1

    for warning in result.warnings:
        logger.warning(warning)
    logger.info(
        "Account %s: imported %d transaction(s), %d duplicate(s) skipped",
        account_id,
        result.inserted,
        result.skipped,
    )
    return result
