"""Keyword-based category assignment.

Rules are plain substrings stored in the ``category_rules`` table.  A rule
matches when its keyword appears anywhere in the transaction description,
case-insensitively.  Among all matching rules the longest keyword wins;
ties are broken by rule order, so earlier rules take precedence.

Only transactions without a category are touched, so a category set by
hand is never overwritten.
"""

from __future__ import annotations

from dataclasses import dataclass

from fixed_costs.context import DetectionContext
from fixed_costs.models import CategoryRule, Transaction


@dataclass
class CategorizeResult:
    """Outcome of categorizing one account's uncategorized transactions."""

    matched: int = 0
    unmatched: int = 0


def match_rule(description: str, rules: list[CategoryRule]) -> CategoryRule | None:
    """Find the best rule for *description*.

    Strategy: case-insensitive substring, longest keyword wins.  Ties are
    broken by list order.

    Args:
        description: The transaction description.
        rules: Rules in store order.

    Returns:
        The winning rule, or ``None`` if no keyword occurs in the
        description.
    """
    haystack = description.casefold()
    best: CategoryRule | None = None
    for rule in rules:
        keyword = rule.keyword.strip().casefold()
        if not keyword or keyword not in haystack:
            continue
        if best is None or len(keyword) > len(best.keyword.strip()):
            best = rule
    return best


def assign_categories(
    transactions: list[Transaction],
    rules: list[CategoryRule],
) -> list[tuple[Transaction, CategoryRule]]:
    """Pair every uncategorized transaction with its matching rule.

    Transactions that already have a ``category_id`` or match no rule are
    left out.
    """
    pairs: list[tuple[Transaction, CategoryRule]] = []
    for txn in transactions:
        if txn.category_id:
            continue
        rule = match_rule(txn.description, rules)
        if rule is not None:
            pairs.append((txn, rule))
    return pairs


def categorize_account(ctx: DetectionContext, account_id: str) -> CategorizeResult:
    """Apply the stored category rules to one account's uncategorized transactions.

    Raises:
        StoreError: If rules or transactions cannot be read, or an update
            fails.  Updates made before the failure are kept.
    """
    rules = ctx.store.fetch_category_rules()
    transactions = ctx.store.fetch_transactions(account_id, uncategorized_only=True)
    pending = [t for t in transactions if not t.category_id]

    result = CategorizeResult()
    if not rules:
        result.unmatched = len(pending)
        return result

    pairs = assign_categories(pending, rules)
    for txn, rule in pairs:
        ctx.store.set_transaction_category(txn.id, rule.category_id)
        txn.category_id = rule.category_id
        ctx.logger.debug("Categorized %s as %s via %r", txn.id, rule.category_id, rule.keyword)

    result.matched = len(pairs)
    result.unmatched = len(pending) - len(pairs)
    ctx.logger.info(
        "Account %s: categorized %d transaction(s), %d unmatched",
        account_id,
        result.matched,
        result.unmatched,
    )
    return result
