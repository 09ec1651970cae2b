"""User confirmation actions on stored recurring items.

Detection never deletes an item or changes its confirmation state after
creation; these two functions are the only way ``is_confirmed`` changes.
A rejected item stays in the store (unconfirmed) so detection does not
recreate it on the next run.
"""

from __future__ import annotations

import logging

from fixed_costs.store import TransactionStore

logger = logging.getLogger(__name__)


def confirm_item(store: TransactionStore, item_id: str) -> None:
    """Mark the recurring item *item_id* as confirmed."""
    store.set_confirmed(item_id, True)
    logger.info("Confirmed recurring item %s", item_id)


def reject_item(store: TransactionStore, item_id: str) -> None:
    """Mark the recurring item *item_id* as not confirmed."""
    store.set_confirmed(item_id, False)
    logger.info("Rejected recurring item %s", item_id)
