"""Installment extractor.

Card issuers tag each payment of an installment plan with its position and
the plan length ("payment 3 of 12").  A series is recognized at its first
payment only: the transaction with ``installment_number == 1`` defines the
series, and later payments never produce a candidate.  A series whose first
payment predates the scraped history is therefore never reported.
"""

from __future__ import annotations

from fixed_costs.context import DetectionContext
from fixed_costs.models import INSTALLMENT, RecurringItem, Transaction
from fixed_costs.reconciler import ExistingItemIndex


def installment_label(txn: Transaction) -> str:
    """Return the display label of *txn*'s series, e.g. ``"IKEA (1/12)"``."""
    return f"{txn.description} ({txn.installment_number}/{txn.installment_total})"


def find_installments(
    account_id: str,
    transactions: list[Transaction],
    index: ExistingItemIndex,
    confirmed: bool = True,
) -> list[RecurringItem]:
    """Emit one candidate per installment series started in *transactions*.

    Args:
        account_id: Account the candidates belong to.
        transactions: The account's transactions.  Those without
            installment metadata are ignored.
        index: Items already stored for the account.
        confirmed: Initial ``is_confirmed`` of new installment items.

    Returns:
        New candidates, in transaction order.
    """
    candidates: list[RecurringItem] = []
    emitted: set[str] = set()

    for txn in transactions:
        if not txn.is_installment or txn.installment_number != 1:
            continue
        label = installment_label(txn)
        if label in emitted or index.contains(INSTALLMENT, label):
            continue
        emitted.add(label)
        candidates.append(
            RecurringItem(
                account_id=account_id,
                type=INSTALLMENT,
                description=label,
                amount_avg=txn.charged_amount,
                is_confirmed=confirmed,
            )
        )

    return candidates


def detect(ctx: DetectionContext, account_id: str, index: ExistingItemIndex) -> list[RecurringItem]:
    """Query the account's installment transactions and extract new series."""
    transactions = ctx.store.fetch_transactions(account_id, installments_only=True)
    candidates = find_installments(
        account_id, transactions, index, confirmed=ctx.config.confirm_installments
    )
    for item in candidates:
        ctx.logger.info(
            "Detected installment %r for account %s (amount %s)",
            item.description,
            account_id,
            item.amount_avg,
        )
    return candidates
