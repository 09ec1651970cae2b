"""Detector registry.

Each detector is a module exposing ``detect(ctx, account_id, index)`` that
returns a list of candidate :class:`~fixed_costs.models.RecurringItem`
objects.  ``DETECTORS`` lists them in the order the pipeline runs them,
keyed by the recurring type they produce.
"""

from __future__ import annotations

from collections.abc import Callable

from fixed_costs.detectors import direct_debits, installments, periodic
from fixed_costs.models import DETECTED, DIRECT_DEBIT, INSTALLMENT

DETECTORS: dict[str, Callable] = {
    INSTALLMENT: installments.detect,
    DIRECT_DEBIT: direct_debits.detect,
    DETECTED: periodic.detect,
}
