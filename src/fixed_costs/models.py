"""Core data models for fixed-costs.

This module defines the dataclasses shared by every stage of recurring
detection. It has zero internal imports -- everything depends on it, but it
depends on nothing within the package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

# Recurring item types.  The type is fixed when an item is created.
INSTALLMENT = "installment"
DIRECT_DEBIT = "direct_debit"
DETECTED = "detected"

RECURRING_TYPES = (INSTALLMENT, DIRECT_DEBIT, DETECTED)

# Per-account run states.
PENDING = "pending"
RUNNING = "running"
SUCCEEDED = "succeeded"
FAILED = "failed"

DEFAULT_DIRECT_DEBIT_KEYWORDS = [
    "הוראת קבע",  # direct debit
    "העברה קבועה",  # standing order
    "תשלום קבוע",  # fixed payment
    "direct debit",
    "standing order",
    "recurring payment",
    "subscription",
]


@dataclass
class Transaction:
    """A single persisted transaction for one account.

    Instances are only ever built by the normalization boundary in
    :mod:`fixed_costs.normalize`, so detectors can rely on the field types.

    Attributes:
        id: Opaque identifier assigned by the store.
        account_id: Owning account.
        date: Transaction date (not the processing date).
        description: Free-text merchant/payee string as scraped.
        charged_amount: Signed decimal amount. Negative means expense,
            positive means income or refund.
        installment_number: Position in an installment series, or ``None``.
        installment_total: Length of the installment series, or ``None``.
            Always set when ``installment_number`` is set.
        category_id: Assigned category, or ``None`` if uncategorized.
        memo: Free-text memo from the bank, if any.
    """

    id: str
    account_id: str
    date: date
    description: str
    charged_amount: Decimal
    installment_number: int | None = None
    installment_total: int | None = None
    category_id: str | None = None
    memo: str | None = None

    @property
    def is_installment(self) -> bool:
        return self.installment_number is not None and self.installment_total is not None


@dataclass
class RecurringItem:
    """A recurring financial obligation attached to an account.

    Detectors produce candidates (``id`` is empty); the reconciler persists
    them and the store fills in ``id``.  ``(account_id, type, description)``
    identifies an item.

    Attributes:
        account_id: Owning account.
        type: One of :data:`INSTALLMENT`, :data:`DIRECT_DEBIT`,
            :data:`DETECTED`.
        description: Display label.  Installments embed the series
            progress, e.g. ``"IKEA (1/12)"``.
        amount_avg: Representative amount.  Installments keep the signed
            charge; the other types store an absolute magnitude.
        is_confirmed: Whether the user (or the detector's confidence)
            approved this item.
        id: Store identifier, or empty string for an unsaved candidate.
    """

    account_id: str
    type: str
    description: str
    amount_avg: Decimal
    is_confirmed: bool = False
    id: str = ""

    @property
    def key(self) -> tuple[str, str]:
        """Identity within one account: ``(type, description)``."""
        return (self.type, self.description)


@dataclass
class Account:
    """A bank or credit-card account known to the store."""

    id: str
    name: str = ""
    status: str = "active"


@dataclass
class CategoryRule:
    """A keyword-to-category assignment rule.

    Attributes:
        keyword: Substring matched case-insensitively against the
            transaction description.
        category_id: Category assigned on match.
        id: Store identifier of the rule.
    """

    keyword: str
    category_id: str
    id: str = ""


@dataclass
class DetectionCounts:
    """Number of recurring items saved, per type."""

    installments: int = 0
    direct_debits: int = 0
    detected: int = 0

    @property
    def total(self) -> int:
        return self.installments + self.direct_debits + self.detected

    def add(self, other: DetectionCounts) -> None:
        self.installments += other.installments
        self.direct_debits += other.direct_debits
        self.detected += other.detected

    def record(self, item_type: str) -> None:
        """Count one saved item of *item_type*."""
        if item_type == INSTALLMENT:
            self.installments += 1
        elif item_type == DIRECT_DEBIT:
            self.direct_debits += 1
        elif item_type == DETECTED:
            self.detected += 1
        else:
            raise ValueError(f"Unknown recurring type: {item_type!r}")


@dataclass
class AccountResult:
    """Outcome of running detection for one account.

    Attributes:
        account_id: The account processed.
        name: Display name, when known.
        status: One of ``pending``, ``running``, ``succeeded``, ``failed``.
        counts: Items saved for this account.  Zero when the run failed.
        error: Error message when ``status`` is ``failed``.
    """

    account_id: str
    name: str = ""
    status: str = PENDING
    counts: DetectionCounts = field(default_factory=DetectionCounts)
    error: str = ""

    @property
    def success(self) -> bool:
        return self.status == SUCCEEDED


@dataclass
class BatchSummary:
    """Aggregate outcome of a detection run over one or more accounts.

    Attributes:
        results: One entry per account, in processing order.
        totals: Sum of the counts of every succeeded account.
        notes: Informational messages (e.g. benign empty state).
    """

    results: list[AccountResult] = field(default_factory=list)
    totals: DetectionCounts = field(default_factory=DetectionCounts)
    notes: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[AccountResult]:
        return [r for r in self.results if r.status == FAILED]

    @property
    def succeeded(self) -> list[AccountResult]:
        return [r for r in self.results if r.status == SUCCEEDED]


@dataclass
class StoreConfig:
    """Connection settings for the hosted data store.

    Secrets are never stored here, only the names of the environment
    variables that hold them.

    Attributes:
        url_env: Environment variable with the store's base URL.
        key_env: Environment variable with the store's API key.
        timeout: HTTP timeout in seconds for every store request.
        page_size: Rows requested per page when reading transactions;
            keep at or below the server's ``max-rows``.
        accounts_table: Table listing accounts and their ``status``.
        transactions_table: Table of scraped transactions.
        recurring_table: Table of recurring items.
        category_rules_table: Table of keyword-to-category rules.
    """

    url_env: str = "SUPABASE_URL"
    key_env: str = "SUPABASE_KEY"
    timeout: float = 30.0
    page_size: int = 1000
    accounts_table: str = "accounts"
    transactions_table: str = "transactions"
    recurring_table: str = "recurring"
    category_rules_table: str = "category_rules"


@dataclass
class DetectionConfig:
    """Tuning knobs for the three detectors.

    Attributes:
        direct_debit_keywords: Phrases marking a standing order / direct
            debit, matched case-insensitively anywhere in the description.
        direct_debit_limit: Maximum number of transactions scanned for
            direct-debit keywords.
        min_occurrences: Minimum group size for periodic detection.
        max_variation: Coefficient of variation (stddev / mean) that a
            group's amounts must stay strictly below.
        min_gap_days: Shortest gap, in days, counted as monthly.
        max_gap_days: Longest gap, in days, counted as monthly.
        confirm_installments: Whether new installment items are created
            already confirmed.
    """

    direct_debit_keywords: list[str] = field(
        default_factory=lambda: list(DEFAULT_DIRECT_DEBIT_KEYWORDS)
    )
    direct_debit_limit: int = 1000
    min_occurrences: int = 3
    max_variation: Decimal = Decimal("0.10")
    min_gap_days: int = 20
    max_gap_days: int = 45
    confirm_installments: bool = True


@dataclass
class AppConfig:
    """Top-level application configuration loaded from ``config.toml``."""

    store: StoreConfig = field(default_factory=StoreConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
