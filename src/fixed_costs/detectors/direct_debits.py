"""Direct-debit detector.

Banks do not flag standing orders explicitly; the description is the only
signal.  A transaction is a direct debit when its description contains one
of the configured keywords (Hebrew and English), case-insensitively.
Keyword matches are trusted enough that new items are created confirmed.
"""

from __future__ import annotations

import re

from fixed_costs.context import DetectionContext
from fixed_costs.models import DIRECT_DEBIT, RecurringItem, Transaction
from fixed_costs.reconciler import ExistingItemIndex


def compile_keywords(keywords: list[str]) -> re.Pattern[str] | None:
    """Build one case-insensitive pattern matching any keyword literally.

    Returns:
        The compiled pattern, or ``None`` if *keywords* has no usable entry.
    """
    parts = [re.escape(kw.strip()) for kw in keywords if kw.strip()]
    if not parts:
        return None
    return re.compile("|".join(parts), re.IGNORECASE)


def find_direct_debits(
    account_id: str,
    transactions: list[Transaction],
    index: ExistingItemIndex,
    keywords: list[str],
) -> list[RecurringItem]:
    """Emit one candidate per distinct description matching a keyword.

    Descriptions are compared exactly (no normalization), so two spellings
    of the same payee are two candidates.
    """
    pattern = compile_keywords(keywords)
    if pattern is None:
        return []

    candidates: list[RecurringItem] = []
    seen: set[str] = set()

    for txn in transactions:
        if txn.description in seen or not pattern.search(txn.description):
            continue
        seen.add(txn.description)
        if index.contains(DIRECT_DEBIT, txn.description):
            continue
        candidates.append(
            RecurringItem(
                account_id=account_id,
                type=DIRECT_DEBIT,
                description=txn.description,
                amount_avg=abs(txn.charged_amount),
                is_confirmed=True,
            )
        )

    return candidates


def detect(ctx: DetectionContext, account_id: str, index: ExistingItemIndex) -> list[RecurringItem]:
    """Scan the account's recent transactions for direct-debit keywords."""
    transactions = ctx.store.fetch_transactions(
        account_id, limit=ctx.config.direct_debit_limit, ascending=False
    )
    candidates = find_direct_debits(
        account_id, transactions, index, ctx.config.direct_debit_keywords
    )
    for item in candidates:
        ctx.logger.info(
            "Detected direct debit %r for account %s (amount %s)",
            item.description,
            account_id,
            item.amount_avg,
        )
    return candidates
