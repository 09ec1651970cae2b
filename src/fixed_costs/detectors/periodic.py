"""Periodicity detector: recurring charges inferred from history.

Detection algorithm:

1. **Group** transactions by description, trimmed and lower-cased.  Groups
   with fewer than ``min_occurrences`` (3) members are dropped: three
   occurrences is the minimum evidence for a monthly pattern.
2. **Amount consistency** -- the population standard deviation of the
   group's absolute amounts divided by their mean (the coefficient of
   variation) must be below ``max_variation`` (10%).  This tolerates small
   price drift while rejecting unrelated charges that share a name.
3. **Monthly spacing** -- with the dates sorted, at least one run of three
   consecutive dates must have both gaps within ``[min_gap_days,
   max_gap_days]`` (20-45 days).  Other gaps in the group do not matter.

Amounts are compared by magnitude, so a group mixing charges and refunds
conflates the two.
"""

from __future__ import annotations

import statistics
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from fixed_costs.context import DetectionContext
from fixed_costs.models import DETECTED, DetectionConfig, RecurringItem, Transaction
from fixed_costs.reconciler import ExistingItemIndex

_CENT = Decimal("0.01")


@dataclass
class PeriodicGroup:
    """A description group that passed both tests."""

    description: str
    count: int
    mean_amount: Decimal
    variation: Decimal


def normalize_description(description: str) -> str:
    return description.strip().lower()


def group_by_description(transactions: list[Transaction]) -> dict[str, list[Transaction]]:
    groups: dict[str, list[Transaction]] = defaultdict(list)
    for txn in transactions:
        groups[normalize_description(txn.description)].append(txn)
    return groups


def coefficient_of_variation(amounts: list[Decimal]) -> Decimal | None:
    """Return ``pstdev / mean`` of *amounts*, or ``None`` if the mean is zero.

    Uses the population standard deviation (divide by N).
    """
    if not amounts:
        return None
    mean = statistics.mean(amounts)
    if mean == 0:
        return None
    return statistics.pstdev(amounts, mu=mean) / mean


def has_monthly_pattern(dates: list[date], min_gap: int = 20, max_gap: int = 45) -> bool:
    """Check for one run of three dates with both gaps in ``[min_gap, max_gap]``."""
    ordered = sorted(dates)
    for first, second, third in zip(ordered, ordered[1:], ordered[2:]):
        gap1 = (second - first).days
        gap2 = (third - second).days
        if min_gap <= gap1 <= max_gap and min_gap <= gap2 <= max_gap:
            return True
    return False


def find_periodic_groups(
    transactions: list[Transaction],
    config: DetectionConfig | None = None,
) -> list[PeriodicGroup]:
    """Return every description group with consistent amounts and monthly spacing.

    Groups are returned in order of first appearance in *transactions*.
    """
    config = config or DetectionConfig()
    found: list[PeriodicGroup] = []

    for description, txns in group_by_description(transactions).items():
        if len(txns) < config.min_occurrences:
            continue

        amounts = [abs(t.charged_amount) for t in txns]
        variation = coefficient_of_variation(amounts)
        if variation is None or variation >= config.max_variation:
            continue

        if not has_monthly_pattern(
            [t.date for t in txns], config.min_gap_days, config.max_gap_days
        ):
            continue

        found.append(
            PeriodicGroup(
                description=description,
                count=len(txns),
                mean_amount=statistics.mean(amounts),
                variation=variation,
            )
        )

    return found


def find_periodic(
    account_id: str,
    transactions: list[Transaction],
    index: ExistingItemIndex,
    config: DetectionConfig | None = None,
) -> list[RecurringItem]:
    """Emit an unconfirmed candidate for each new periodic group."""
    candidates: list[RecurringItem] = []
    for group in find_periodic_groups(transactions, config):
        if index.contains(DETECTED, group.description):
            continue
        candidates.append(
            RecurringItem(
                account_id=account_id,
                type=DETECTED,
                description=group.description,
                amount_avg=group.mean_amount.quantize(_CENT),
                is_confirmed=False,
            )
        )
    return candidates


def detect(ctx: DetectionContext, account_id: str, index: ExistingItemIndex) -> list[RecurringItem]:
    """Run periodic detection over the account's full, date-ordered history."""
    transactions = ctx.store.fetch_transactions(account_id, ascending=True)
    candidates = find_periodic(account_id, transactions, index, ctx.config)
    for item in candidates:
        ctx.logger.info(
            "Detected recurring pattern %r for account %s (average %s)",
            item.description,
            account_id,
            item.amount_avg,
        )
    return candidates
