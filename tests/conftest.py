"""Shared pytest fixtures for fixed-costs tests.

Provides reusable fixtures for:
- FakeStore: an in-memory implementation of the store protocol, with
  switches for simulating conflicts, missing tables and failures.
- make_txn: a builder for Transaction objects with sensible defaults.
- ctx: a DetectionContext wired to a fresh FakeStore.
"""

from __future__ import annotations

import itertools
from datetime import date
from decimal import Decimal

import pytest

from fixed_costs.context import DetectionContext
from fixed_costs.models import Account, CategoryRule, RecurringItem, Transaction
from fixed_costs.normalize import transaction_from_row
from fixed_costs.store import ConflictError, NotProvisionedError, StoreError

# ---------------------------------------------------------------------------
# Transaction builder
# ---------------------------------------------------------------------------

_txn_ids = itertools.count(1)


def make_txn(
    description: str = "SPOTIFY",
    amount: str | Decimal = "-19.90",
    txn_date: date = date(2024, 1, 15),
    account_id: str = "acct-a",
    installment_number: int | None = None,
    installment_total: int | None = None,
    category_id: str | None = None,
    txn_id: str | None = None,
) -> Transaction:
    """Build a Transaction with a unique id."""
    return Transaction(
        id=txn_id or f"txn-{next(_txn_ids)}",
        account_id=account_id,
        date=txn_date,
        description=description,
        charged_amount=Decimal(str(amount)),
        installment_number=installment_number,
        installment_total=installment_total,
        category_id=category_id,
    )


def monthly(description: str, amounts: list[str], start: date = date(2024, 1, 10), **kwargs):
    """Build one transaction per month (same day) with the given amounts."""
    txns = []
    for offset, amount in enumerate(amounts):
        month = start.month - 1 + offset
        txn_date = date(start.year + month // 12, month % 12 + 1, start.day)
        txns.append(make_txn(description=description, amount=amount, txn_date=txn_date, **kwargs))
    return txns


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory store implementing the ``TransactionStore`` protocol.

    Attributes:
        accounts: Active accounts returned by ``fetch_active_accounts``.
        transactions: Every transaction, any account.
        items: Stored recurring items.
        rules: Category rules.
        failing_accounts: Accounts whose transaction queries raise
            ``StoreError``.
        failing_inserts: Accounts whose inserts raise ``StoreError``.
        imported_rows: Raw rows passed to ``insert_transaction``.
        accounts_missing: If True, listing accounts raises
            ``NotProvisionedError``.
        accounts_error: If set, listing accounts raises this error.
        hidden_items: Items that exist in the "database" but are invisible
            to reads, so an insert of the same identity conflicts (as with
            a concurrent run).
    """

    def __init__(self) -> None:
        self.accounts: list[Account] = []
        self.transactions: list[Transaction] = []
        self.items: list[RecurringItem] = []
        self.rules: list[CategoryRule] = []
        self.failing_accounts: set[str] = set()
        self.failing_inserts: set[str] = set()
        self.accounts_missing = False
        self.accounts_error: StoreError | None = None
        self.hidden_items: set[tuple[str, str, str]] = set()
        self.imported_rows: list[dict] = []
        self.insert_calls = 0
        self.exists_calls = 0
        self.closed = False
        self._ids = itertools.count(1)

    def __enter__(self) -> FakeStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.closed = True

    # -- helpers -------------------------------------------------------------

    def add(self, *txns: Transaction) -> None:
        for batch in txns:
            if isinstance(batch, list):
                self.transactions.extend(batch)
            else:
                self.transactions.append(batch)

    def items_for(self, account_id: str, item_type: str | None = None) -> list[RecurringItem]:
        return [
            i
            for i in self.items
            if i.account_id == account_id and (item_type is None or i.type == item_type)
        ]

    # -- protocol ------------------------------------------------------------

    def fetch_active_accounts(self) -> list[Account]:
        if self.accounts_missing:
            raise NotProvisionedError(
                "HTTP 404: Could not find the table 'public.accounts' in the schema cache"
            )
        if self.accounts_error is not None:
            raise self.accounts_error
        return [a for a in self.accounts if a.status == "active"]

    def fetch_transactions(
        self,
        account_id: str,
        *,
        installments_only: bool = False,
        uncategorized_only: bool = False,
        limit: int | None = None,
        ascending: bool = True,
    ) -> list[Transaction]:
        if account_id in self.failing_accounts:
            raise StoreError("HTTP 500: connection reset")
        txns = [t for t in self.transactions if t.account_id == account_id]
        if installments_only:
            txns = [t for t in txns if t.is_installment]
        if uncategorized_only:
            txns = [t for t in txns if t.category_id is None]
        txns.sort(key=lambda t: t.date, reverse=not ascending)
        if limit is not None:
            txns = txns[:limit]
        return txns

    def fetch_recurring(self, account_id: str | None = None) -> list[RecurringItem]:
        return [i for i in self.items if account_id is None or i.account_id == account_id]

    def recurring_exists(self, account_id: str, item_type: str, description: str) -> bool:
        self.exists_calls += 1
        return any(
            i.account_id == account_id and i.type == item_type and i.description == description
            for i in self.items
        )

    def insert_recurring(self, items: list[RecurringItem]) -> list[RecurringItem]:
        self.insert_calls += 1
        saved = []
        for item in items:
            if item.account_id in self.failing_inserts:
                raise StoreError("HTTP 500: permission denied for table recurring")
            ident = (item.account_id, item.type, item.description)
            if ident in self.hidden_items or self.recurring_exists(*ident):
                raise ConflictError("HTTP 409: duplicate key value violates unique constraint")
            stored = RecurringItem(
                account_id=item.account_id,
                type=item.type,
                description=item.description,
                amount_avg=item.amount_avg,
                is_confirmed=item.is_confirmed,
                id=f"rec-{next(self._ids)}",
            )
            self.items.append(stored)
            saved.append(stored)
        return saved

    def set_confirmed(self, item_id: str, confirmed: bool) -> None:
        for item in self.items:
            if item.id == item_id:
                item.is_confirmed = confirmed
                return
        raise StoreError(f"Recurring item {item_id!r} not found")

    def fetch_category_rules(self) -> list[CategoryRule]:
        return list(self.rules)

    def insert_transaction(self, row: dict) -> None:
        if row["account_id"] in self.failing_inserts:
            raise StoreError("HTTP 500: permission denied for table transactions")
        identifier = row.get("identifier")
        if identifier and any(
            r["account_id"] == row["account_id"] and r.get("identifier") == identifier
            for r in self.imported_rows
        ):
            raise ConflictError("HTTP 409: duplicate key value violates unique constraint")
        self.imported_rows.append(row)
        self.transactions.append(transaction_from_row({**row, "id": f"imp-{len(self.imported_rows)}"}))

    def set_transaction_category(self, transaction_id: str, category_id: str) -> None:
        for txn in self.transactions:
            if txn.id == transaction_id:
                txn.category_id = category_id
                return
        raise StoreError(f"Transaction {transaction_id!r} not found")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> FakeStore:
    """A fresh, empty in-memory store."""
    return FakeStore()


@pytest.fixture
def ctx(store: FakeStore) -> DetectionContext:
    """A detection context backed by the ``store`` fixture."""
    return DetectionContext(store=store)
