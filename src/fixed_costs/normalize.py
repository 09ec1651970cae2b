"""Normalization boundary between loosely-typed records and :class:`Transaction`.

Two shapes reach this package from outside:

- **Store rows** -- snake_case dicts returned by the hosted data store's
  ``transactions`` table.
- **Scraper records** -- camelCase dicts produced by the bank-scraping
  engine, one list per external account.  Each institution fills in a
  slightly different subset of fields.

Detectors only ever see :class:`~fixed_costs.models.Transaction` objects
built here.  Missing optional fields become explicit ``None`` values;
installment metadata that breaks the ``number <= total`` invariant is
dropped rather than passed along.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from fixed_costs.models import Transaction


@dataclass
class NormalizeResult:
    """Transactions that survived normalization plus skipped-row warnings."""

    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_date(value: Any) -> date:
    """Parse a calendar date from a ``date`` or an ISO date/timestamp string.

    Timestamps such as ``"2024-01-15T00:00:00.000Z"`` keep only their date
    part.

    Raises:
        ValueError: If *value* is empty or not an ISO date.
    """
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValueError("missing date")
    return date.fromisoformat(text[:10])


def parse_amount(value: Any) -> Decimal:
    """Convert a JSON number or numeric string to :class:`Decimal`.

    Floats go through ``str()`` so ``12.5`` becomes ``Decimal("12.5")``
    rather than its binary expansion.

    Raises:
        ValueError: If *value* is missing or not numeric.
    """
    if value is None or value == "":
        raise ValueError("missing amount")
    if isinstance(value, Decimal):
        return value
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"invalid amount {value!r}")
    return amount


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _installment_fields(number: Any, total: Any) -> tuple[int | None, int | None]:
    """Return ``(number, total)`` or ``(None, None)`` if they are inconsistent."""
    num = _optional_int(number)
    tot = _optional_int(total)
    if num is None or tot is None:
        return None, None
    if num < 1 or tot < 1 or num > tot:
        return None, None
    return num, tot


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def transaction_from_row(row: dict) -> Transaction:
    """Build a :class:`Transaction` from one store row.

    Args:
        row: A dict with at least ``id``, ``date`` and ``charged_amount``.
            ``account_id``, ``description``, ``installment_number``,
            ``installment_total``, ``category_id`` and ``memo`` are optional.

    Returns:
        A fully-typed :class:`Transaction`.

    Raises:
        ValueError: If ``id`` or ``date`` is missing, or the date or amount
            cannot be parsed.
    """
    txn_id = row.get("id")
    if txn_id is None or txn_id == "":
        raise ValueError("missing id")

    number, total = _installment_fields(
        row.get("installment_number"), row.get("installment_total")
    )

    return Transaction(
        id=str(txn_id),
        account_id=str(row.get("account_id") or ""),
        date=parse_date(row.get("date")),
        description=str(row.get("description") or ""),
        charged_amount=parse_amount(row.get("charged_amount")),
        installment_number=number,
        installment_total=total,
        category_id=_optional_str(row.get("category_id")),
        memo=_optional_str(row.get("memo")),
    )


def transactions_from_rows(rows: list[dict]) -> NormalizeResult:
    """Normalize a batch of store rows, skipping the malformed ones.

    Returns:
        A :class:`NormalizeResult` with one warning per skipped row.
    """
    result = NormalizeResult()
    for ordinal, row in enumerate(rows):
        try:
            result.transactions.append(transaction_from_row(row))
        except ValueError as exc:
            label = row.get("id", f"#{ordinal}") if isinstance(row, dict) else f"#{ordinal}"
            result.warnings.append(f"Skipped malformed transaction {label}: {exc}")
    return result


def row_from_scraped(account_id: str, record: dict) -> dict:
    """Map a raw scraper record into the store's ``transactions`` row shape.

    Args:
        account_id: Store id of the account the record belongs to.
        record: One transaction as returned by the scraping engine.

    Returns:
        A dict ready to be inserted into the ``transactions`` table.
    """
    installments = record.get("installments") or {}
    number, total = _installment_fields(installments.get("number"), installments.get("total"))

    raw_date = record.get("date")
    txn_date = parse_date(raw_date).isoformat() if raw_date else None
    raw_processed = record.get("processedDate")
    processed = parse_date(raw_processed).isoformat() if raw_processed else None

    return {
        "account_id": account_id,
        "identifier": _optional_str(record.get("identifier")),
        "date": txn_date,
        "processed_date": processed,
        "original_amount": str(parse_amount(record.get("originalAmount") or 0)),
        "original_currency": record.get("originalCurrency") or "ILS",
        "charged_amount": str(parse_amount(record.get("chargedAmount") or 0)),
        "description": record.get("description") or "",
        "memo": record.get("memo") or None,
        "type": record.get("type") or "normal",
        "installment_number": number,
        "installment_total": total,
    }
