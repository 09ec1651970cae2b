"""Human-readable output for detection runs and recurring-item listings."""

from __future__ import annotations

from fixed_costs.models import (
    DETECTED,
    DIRECT_DEBIT,
    INSTALLMENT,
    BatchSummary,
    DetectionCounts,
    RecurringItem,
)

TYPE_LABELS = {
    INSTALLMENT: "Installment",
    DIRECT_DEBIT: "Direct debit",
    DETECTED: "Detected",
}


def _count_lines(counts: DetectionCounts) -> list[str]:
    return [
        f"  - Installments:  {counts.installments}",
        f"  - Direct debits: {counts.direct_debits}",
        f"  - Algorithmic:   {counts.detected}",
        f"  - Total saved:   {counts.total}",
    ]


def format_summary(summary: BatchSummary) -> str:
    """Render a batch summary as text.

    The summary includes:

    - Informational notes (e.g. no accounts to process).
    - One status line per account, with the error for failed ones.
    - Saved counts per category, summed over succeeded accounts.
    """
    lines: list[str] = ["", "== Recurring Detection Summary =="]

    for note in summary.notes:
        lines.append(note)

    if summary.results:
        lines.append(
            f"Accounts: {len(summary.results)} processed, "
            f"{len(summary.succeeded)} succeeded, {len(summary.failed)} failed"
        )
        for result in summary.results:
            label = f"{result.name} ({result.account_id})" if result.name else result.account_id
            if result.success:
                lines.append(f"  {label}: {result.counts.total} new item(s)")
            else:
                lines.append(f"  {label}: FAILED - {result.error}")

    lines.extend(_count_lines(summary.totals))
    lines.append("")
    return "\n".join(lines)


def print_summary(summary: BatchSummary) -> None:
    """Print :func:`format_summary` to stdout."""
    print(format_summary(summary))


def format_items(items: list[RecurringItem]) -> str:
    """Render recurring items as an aligned table, one row per item."""
    if not items:
        return "No recurring items."

    lines = [f"{'ID':<38} {'TYPE':<13} {'STATUS':<10} {'AMOUNT':>12}  DESCRIPTION"]
    for item in items:
        status = "confirmed" if item.is_confirmed else "pending"
        lines.append(
            f"{item.id:<38} {TYPE_LABELS.get(item.type, item.type):<13} "
            f"{status:<10} {item.amount_avg:>12,.2f}  {item.description}"
        )
    return "\n".join(lines)
