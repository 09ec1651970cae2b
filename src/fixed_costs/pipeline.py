"""Detection orchestration for fixed-costs.

Runs the three detectors and the reconciler for one account, or for every
active account in turn.  Each account moves through ``pending -> running ->
succeeded | failed``; a failure is recorded on that account's
:class:`~fixed_costs.models.AccountResult` and the batch carries on with
the next account.  There are no retries at this layer.
"""

from __future__ import annotations

from fixed_costs.context import DetectionContext
from fixed_costs.detectors import DETECTORS
from fixed_costs.models import (
    FAILED,
    RUNNING,
    SUCCEEDED,
    Account,
    AccountResult,
    BatchSummary,
    RecurringItem,
)
from fixed_costs.reconciler import ExistingItemIndex, save_candidates
from fixed_costs.store import NotProvisionedError

NO_TABLES_NOTE = "Database tables are not set up yet; no accounts to process."
NO_ACCOUNTS_NOTE = "No active accounts found."


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_for_account(ctx: DetectionContext, account: Account | str) -> AccountResult:
    """Run every detector for one account and persist the new items.

    Steps:

    1. Load the account's existing recurring items into an index.
    2. Run the installment, direct-debit and periodicity detectors in that
       order, collecting candidates.
    3. Save the candidates through the reconciler.

    Failures are caught and recorded on the returned result; they never
    propagate.

    Args:
        ctx: Detection context.
        account: The account, or just its id.

    Returns:
        An :class:`AccountResult` with status ``succeeded`` and per-type
        saved counts, or status ``failed`` and the error message.
    """
    if isinstance(account, str):
        account = Account(id=account)
    result = AccountResult(account_id=account.id, name=account.name)

    result.status = RUNNING
    ctx.logger.info("Detecting recurring transactions for account %s", account.id)

    try:
        index = ExistingItemIndex.load(ctx, account.id)
        candidates: list[RecurringItem] = []
        for item_type, detect in DETECTORS.items():
            found = detect(ctx, account.id, index)
            ctx.logger.debug("%s detector found %d candidate(s)", item_type, len(found))
            candidates.extend(found)
        result.counts = save_candidates(ctx, candidates, index)
    except Exception as exc:
        # Recorded on the result; the batch continues.
        result.status = FAILED
        result.error = str(exc)
        ctx.logger.error("Recurring detection failed for account %s: %s", account.id, exc)
        return result

    result.status = SUCCEEDED
    ctx.logger.info(
        "Account %s: saved %d recurring item(s)", account.id, result.counts.total
    )
    return result


def detect_accounts(ctx: DetectionContext, accounts: list[Account]) -> BatchSummary:
    """Run detection for each account in order, aggregating the results."""
    summary = BatchSummary()
    for account in accounts:
        result = detect_for_account(ctx, account)
        summary.results.append(result)
        if result.success:
            summary.totals.add(result.counts)
        else:
            ctx.logger.warning("Account %s failed: %s", account.id, result.error)
    return summary


def run(ctx: DetectionContext, account_id: str | None = None) -> BatchSummary:
    """Run detection for *account_id*, or for all active accounts if omitted.

    In all-accounts mode, a missing accounts table or an empty account list
    is a benign empty state: the returned summary has no results and a note
    explaining why.

    Raises:
        StoreError: If the active accounts cannot be listed for any reason
            other than the table not existing.
    """
    if account_id:
        return detect_accounts(ctx, [Account(id=account_id)])

    try:
        accounts = ctx.store.fetch_active_accounts()
    except NotProvisionedError as exc:
        ctx.logger.info("Accounts table not provisioned: %s", exc)
        return BatchSummary(notes=[NO_TABLES_NOTE])

    if not accounts:
        ctx.logger.info("No active accounts found")
        return BatchSummary(notes=[NO_ACCOUNTS_NOTE])

    ctx.logger.info("Found %d active account(s)", len(accounts))
    return detect_accounts(ctx, accounts)
