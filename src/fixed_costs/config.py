"""Configuration loading, writing, and project initialization.

Reads TOML config files using stdlib ``tomllib`` and writes them using
``tomli_w``.  Depends only on ``models.py``.

Store credentials never live in ``config.toml``; the file only names the
environment variables that hold them (see
:meth:`fixed_costs.store.RestStore.from_env`).
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import asdict
from decimal import Decimal
from pathlib import Path

import tomli_w

from fixed_costs.models import AppConfig, DetectionConfig, StoreConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"

_HEADER = """\
# fixed-costs configuration
#
# [store] names the environment variables holding the store URL and key;
# secrets are never written to this file.
# [detection] tunes the installment, direct-debit and periodic detectors.

"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    A missing file is not an error: the defaults are used, which is what a
    CI job with only environment variables needs.

    Args:
        root: Project root directory that may contain ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance.

    Raises:
        tomllib.TOMLDecodeError: If the file exists but is not valid TOML.
        ValueError: If a setting has an invalid value.
    """
    path = root / CONFIG_FILENAME
    if not path.is_file():
        logger.debug("No %s in %s; using defaults", CONFIG_FILENAME, root)
        return AppConfig()

    data = _read_toml(path)
    store = data.get("store", {})
    detection = data.get("detection", {})

    store_defaults = StoreConfig()
    detect_defaults = DetectionConfig()

    store_config = StoreConfig(
        url_env=store.get("url_env", store_defaults.url_env),
        key_env=store.get("key_env", store_defaults.key_env),
        timeout=float(store.get("timeout", store_defaults.timeout)),
        page_size=int(store.get("page_size", store_defaults.page_size)),
        accounts_table=store.get("accounts_table", store_defaults.accounts_table),
        transactions_table=store.get("transactions_table", store_defaults.transactions_table),
        recurring_table=store.get("recurring_table", store_defaults.recurring_table),
        category_rules_table=store.get(
            "category_rules_table", store_defaults.category_rules_table
        ),
    )

    detection_config = DetectionConfig(
        direct_debit_keywords=list(
            detection.get("direct_debit_keywords", detect_defaults.direct_debit_keywords)
        ),
        direct_debit_limit=int(
            detection.get("direct_debit_limit", detect_defaults.direct_debit_limit)
        ),
        min_occurrences=int(detection.get("min_occurrences", detect_defaults.min_occurrences)),
        max_variation=Decimal(
            str(detection.get("max_variation", detect_defaults.max_variation))
        ),
        min_gap_days=int(detection.get("min_gap_days", detect_defaults.min_gap_days)),
        max_gap_days=int(detection.get("max_gap_days", detect_defaults.max_gap_days)),
        confirm_installments=bool(
            detection.get("confirm_installments", detect_defaults.confirm_installments)
        ),
    )
    if store_config.page_size < 1:
        raise ValueError("store.page_size must be positive")
    _validate_detection(detection_config)

    return AppConfig(store=store_config, detection=detection_config)


def write_config(root: Path, config: AppConfig) -> Path:
    """Write *config* to ``config.toml`` in *root*, replacing any existing file.

    Returns:
        Path to the written file.
    """
    data = {
        "store": asdict(config.store),
        "detection": asdict(config.detection),
    }
    # TOML has no decimal type.
    data["detection"]["max_variation"] = float(config.detection.max_variation)

    path = root / CONFIG_FILENAME
    path.write_text(_HEADER + tomli_w.dumps(data), encoding="utf-8")
    return path


def initialize(target_dir: Path) -> bool:
    """Create *target_dir* and a default ``config.toml`` inside it.

    Idempotent: an existing ``config.toml`` is **not** overwritten.

    Returns:
        True if a config file was written, False if one already existed.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    if (target_dir / CONFIG_FILENAME).exists():
        return False
    write_config(target_dir, AppConfig())
    return True


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _validate_detection(config: DetectionConfig) -> None:
    if config.min_occurrences < 3:
        raise ValueError("detection.min_occurrences must be at least 3")
    if config.max_variation <= 0:
        raise ValueError("detection.max_variation must be positive")
    if config.min_gap_days < 1 or config.max_gap_days < config.min_gap_days:
        raise ValueError("detection gap bounds must satisfy 1 <= min_gap_days <= max_gap_days")
    if config.direct_debit_limit < 1:
        raise ValueError("detection.direct_debit_limit must be positive")
