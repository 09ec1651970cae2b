"""Deduplicate detector candidates against storage and persist the new ones.

Detection re-runs periodically over overlapping transaction history, so the
same pattern is found again and again.  Two layers keep the store free of
duplicates:

1. :class:`ExistingItemIndex` -- the account's stored items, loaded with a
   single query before the detectors run.  Detectors consult it to avoid
   emitting candidates that are already saved, and the reconciler adds to it
   as it saves.
2. :func:`save_candidates` -- re-checks each candidate against the store
   immediately before inserting it, and treats a uniqueness conflict on
   insert as "already exists".  This covers a concurrent run that saved the
   same item after the index was loaded.
"""

from __future__ import annotations

from fixed_costs.context import DetectionContext
from fixed_costs.models import DetectionCounts, RecurringItem
from fixed_costs.store import ConflictError


class ExistingItemIndex:
    """In-memory set of ``(type, description)`` keys for one account."""

    def __init__(self, account_id: str, keys: set[tuple[str, str]] | None = None) -> None:
        self.account_id = account_id
        self._keys: set[tuple[str, str]] = set(keys or ())

    @classmethod
    def load(cls, ctx: DetectionContext, account_id: str) -> ExistingItemIndex:
        """Load every stored recurring item of *account_id* into an index."""
        items = ctx.store.fetch_recurring(account_id)
        return cls(account_id, {item.key for item in items})

    def contains(self, item_type: str, description: str) -> bool:
        return (item_type, description) in self._keys

    def add(self, item_type: str, description: str) -> None:
        self._keys.add((item_type, description))

    def __len__(self) -> int:
        return len(self._keys)


def save_candidates(
    ctx: DetectionContext,
    candidates: list[RecurringItem],
    index: ExistingItemIndex,
) -> DetectionCounts:
    """Persist every candidate that is not already stored.

    Candidates are handled one at a time: existence check, then insert.
    Existing items and inserts rejected as duplicates are skipped silently.

    Args:
        ctx: Detection context with the store and logger.
        candidates: Candidates from the detectors, in detector order.
        index: The account's existing-item index; updated in place.

    Returns:
        Counts of saved items per type.

    Raises:
        StoreError: Any store failure other than a uniqueness conflict.
            Nothing after the failing candidate is attempted.
    """
    counts = DetectionCounts()
    for candidate in candidates:
        if index.contains(candidate.type, candidate.description):
            ctx.logger.debug("Skipping %s %r: already indexed", candidate.type, candidate.description)
            continue

        if ctx.store.recurring_exists(candidate.account_id, candidate.type, candidate.description):
            ctx.logger.debug("Skipping %s %r: already stored", candidate.type, candidate.description)
            index.add(candidate.type, candidate.description)
            continue

        try:
            ctx.store.insert_recurring([candidate])
        except ConflictError:
            ctx.logger.debug(
                "Skipping %s %r: saved concurrently", candidate.type, candidate.description
            )
            index.add(candidate.type, candidate.description)
            continue

        index.add(candidate.type, candidate.description)
        counts.record(candidate.type)
        ctx.logger.info(
            "Saved %s item %r for account %s",
            candidate.type,
            candidate.description,
            candidate.account_id,
        )

    return counts
