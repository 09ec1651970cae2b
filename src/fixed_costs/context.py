"""Explicit per-run context handed to every detector and the reconciler."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fixed_costs.models import DetectionConfig
from fixed_costs.store import TransactionStore


@dataclass
class DetectionContext:
    """Collaborators for one detection run.

    Attributes:
        store: Store accessor used for every read and write.
        config: Detector thresholds and keyword list.
        logger: Where detectors report what they found.
    """

    store: TransactionStore
    config: DetectionConfig = field(default_factory=DetectionConfig)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("fixed_costs.pipeline")
    )
