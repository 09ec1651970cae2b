"""Store accessor protocol and the hosted (PostgREST) implementation.

The detectors never talk HTTP themselves.  They receive an object
conforming to :class:`TransactionStore` through the detection context;
:class:`RestStore` is the concrete implementation that calls the hosted
store's PostgREST endpoint (``<url>/rest/v1/<table>``) via httpx, and tests
use an in-memory fake.

Failures are reported with the exception hierarchy below so that callers
can tell a uniqueness conflict or a missing table apart from everything
else.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import httpx

from fixed_costs.models import Account, CategoryRule, RecurringItem, StoreConfig, Transaction
from fixed_costs.normalize import parse_amount, transactions_from_rows

logger = logging.getLogger(__name__)

# Postgres / PostgREST error codes we react to.
UNIQUE_VIOLATION = "23505"
UNDEFINED_TABLE = "42P01"
TABLE_NOT_IN_SCHEMA_CACHE = "PGRST205"

_MISSING_TABLE_MARKERS = ("schema cache", "does not exist")


class StoreError(Exception):
    """Any failure talking to the data store."""


class NotProvisionedError(StoreError):
    """The requested table does not exist (yet)."""


class ConflictError(StoreError):
    """An insert violated a uniqueness constraint."""


class ConfigError(Exception):
    """Store connection settings are missing from the environment."""


class TransactionStore(Protocol):
    """Narrow CRUD interface the detection pipeline needs.

    Every method raises :class:`StoreError` (or a subclass) on failure.
    """

    def fetch_active_accounts(self) -> list[Account]:
        """Return every account whose status is ``active``."""
        ...

    def fetch_transactions(
        self,
        account_id: str,
        *,
        installments_only: bool = False,
        uncategorized_only: bool = False,
        limit: int | None = None,
        ascending: bool = True,
    ) -> list[Transaction]:
        """Return an account's transactions ordered by date."""
        ...

    def insert_transaction(self, row: dict) -> None:
        """Insert one scraped transaction row.

        Raises:
            ConflictError: If the transaction was already imported.
        """
        ...

    def fetch_recurring(self, account_id: str | None = None) -> list[RecurringItem]:
        """Return recurring items, for one account or all of them."""
        ...

    def recurring_exists(self, account_id: str, item_type: str, description: str) -> bool:
        """Return True if an item with this identity is already stored."""
        ...

    def insert_recurring(self, items: list[RecurringItem]) -> list[RecurringItem]:
        """Insert items and return them with their store ids.

        Raises:
            ConflictError: If any item already exists.
        """
        ...

    def set_confirmed(self, item_id: str, confirmed: bool) -> None:
        """Set ``is_confirmed`` on one recurring item."""
        ...

    def fetch_category_rules(self) -> list[CategoryRule]:
        """Return all keyword-to-category rules in store order."""
        ...

    def set_transaction_category(self, transaction_id: str, category_id: str) -> None:
        """Assign a category to one transaction."""
        ...


def _classify_error(response: httpx.Response) -> StoreError:
    """Turn an error response into the matching :class:`StoreError` subclass."""
    code = ""
    message = response.text[:200]
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = str(body.get("code") or "")
        message = str(body.get("message") or message)

    text = f"HTTP {response.status_code}: {message}"
    # A bare 409 without a Postgres code is still a duplicate-key response.
    if code == UNIQUE_VIOLATION or (response.status_code == 409 and not code):
        return ConflictError(text)
    lowered = message.lower()
    if code in (UNDEFINED_TABLE, TABLE_NOT_IN_SCHEMA_CACHE) or any(
        marker in lowered for marker in _MISSING_TABLE_MARKERS
    ):
        return NotProvisionedError(text)
    return StoreError(text)


def _item_from_row(row: dict) -> RecurringItem:
    return RecurringItem(
        id=str(row.get("id") or ""),
        account_id=str(row.get("account_id") or ""),
        type=str(row.get("type") or ""),
        description=str(row.get("description") or ""),
        amount_avg=parse_amount(row.get("amount_avg") or 0),
        is_confirmed=bool(row.get("is_confirmed")),
    )


def _item_to_row(item: RecurringItem) -> dict:
    return {
        "account_id": item.account_id,
        "type": item.type,
        "description": item.description,
        "amount_avg": str(item.amount_avg),
        "is_confirmed": item.is_confirmed,
    }


class RestStore:
    """Store accessor backed by the hosted store's PostgREST API.

    Args:
        url: Base URL of the hosted project, e.g.
            ``"https://abc.supabase.co"``.
        key: API key sent as both ``apikey`` and bearer token.
        config: Table names and timeout.
        transport: Optional httpx transport (tests pass a
            ``httpx.MockTransport``).
    """

    def __init__(
        self,
        url: str,
        key: str,
        config: StoreConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        self._client = httpx.Client(
            base_url=url.rstrip("/") + "/rest/v1",
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
            transport=transport,
        )

    @classmethod
    def from_env(cls, config: StoreConfig) -> RestStore:
        """Build a store from the environment variables named in *config*.

        Raises:
            ConfigError: If either variable is unset or empty.
        """
        url = os.environ.get(config.url_env, "")
        key = os.environ.get(config.key_env, "")
        missing = [name for name, value in ((config.url_env, url), (config.key_env, key)) if not value]
        if missing:
            raise ConfigError(
                f"Missing store credentials in environment: {', '.join(missing)}"
            )
        return cls(url, key, config)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RestStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- HTTP plumbing -------------------------------------------------------

    def _request(
        self,
        method: str,
        table: str,
        params: dict | None = None,
        json: list | dict | None = None,
        prefer: str | None = None,
    ) -> list[dict]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"Request to {table!r} failed: {exc}") from exc

        if response.is_error:
            raise _classify_error(response)
        if not response.content:
            return []
        body = response.json()
        return body if isinstance(body, list) else [body]

    def _fetch_pages(self, table: str, params: dict, limit: int | None = None) -> list[dict]:
        """GET *table* in ``page_size`` chunks until a short page or *limit*.

        The server caps every response at its ``max-rows`` setting without
        saying so, so a single unpaged GET can silently lose rows.
        """
        page_size = self.config.page_size
        rows: list[dict] = []
        while limit is None or len(rows) < limit:
            size = page_size if limit is None else min(page_size, limit - len(rows))
            page = self._request(
                "GET", table, params={**params, "limit": size, "offset": len(rows)}
            )
            rows.extend(page)
            if len(page) < size:
                break
        return rows

    # -- Accounts ------------------------------------------------------------

    def fetch_active_accounts(self) -> list[Account]:
        rows = self._request(
            "GET",
            self.config.accounts_table,
            params={"select": "id,bank_name,status", "status": "eq.active"},
        )
        return [
            Account(
                id=str(row["id"]),
                name=str(row.get("bank_name") or ""),
                status=str(row.get("status") or "active"),
            )
            for row in rows
        ]

    # -- Transactions --------------------------------------------------------

    def fetch_transactions(
        self,
        account_id: str,
        *,
        installments_only: bool = False,
        uncategorized_only: bool = False,
        limit: int | None = None,
        ascending: bool = True,
    ) -> list[Transaction]:
        params: dict[str, str | int] = {
            "select": "*",
            "account_id": f"eq.{account_id}",
            "order": "date.asc,id.asc" if ascending else "date.desc,id.desc",
        }
        if installments_only:
            params["installment_number"] = "not.is.null"
            params["installment_total"] = "not.is.null"
        if uncategorized_only:
            params["category_id"] = "is.null"
        rows = self._fetch_pages(self.config.transactions_table, params, limit)
        result = transactions_from_rows(rows)
        for warning in result.warnings:
            logger.warning("%s (account %s)", warning, account_id)
        return result.transactions

    def insert_transaction(self, row: dict) -> None:
        self._request("POST", self.config.transactions_table, json=row)

    def set_transaction_category(self, transaction_id: str, category_id: str) -> None:
        self._request(
            "PATCH",
            self.config.transactions_table,
            params={"id": f"eq.{transaction_id}"},
            json={"category_id": category_id},
        )

    # -- Recurring items -----------------------------------------------------

    def fetch_recurring(self, account_id: str | None = None) -> list[RecurringItem]:
        params = {"select": "*", "order": "amount_avg.desc"}
        if account_id is not None:
            params["account_id"] = f"eq.{account_id}"
        rows = self._request("GET", self.config.recurring_table, params=params)
        return [_item_from_row(row) for row in rows]

    def recurring_exists(self, account_id: str, item_type: str, description: str) -> bool:
        rows = self._request(
            "GET",
            self.config.recurring_table,
            params={
                "select": "id",
                "account_id": f"eq.{account_id}",
                "type": f"eq.{item_type}",
                "description": f"eq.{description}",
                "limit": 1,
            },
        )
        return bool(rows)

    def insert_recurring(self, items: list[RecurringItem]) -> list[RecurringItem]:
        if not items:
            return []
        rows = self._request(
            "POST",
            self.config.recurring_table,
            json=[_item_to_row(item) for item in items],
            prefer="return=representation",
        )
        return [_item_from_row(row) for row in rows]

    def set_confirmed(self, item_id: str, confirmed: bool) -> None:
        rows = self._request(
            "PATCH",
            self.config.recurring_table,
            params={"id": f"eq.{item_id}"},
            json={"is_confirmed": confirmed},
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"Recurring item {item_id!r} not found")

    # -- Category rules ------------------------------------------------------

    def fetch_category_rules(self) -> list[CategoryRule]:
        rows = self._request(
            "GET",
            self.config.category_rules_table,
            params={"select": "id,keyword,category_id"},
        )
        return [
            CategoryRule(
                id=str(row.get("id") or ""),
                keyword=str(row.get("keyword") or ""),
                category_id=str(row["category_id"]),
            )
            for row in rows
            if row.get("keyword") and row.get("category_id") is not None
        ]
