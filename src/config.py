# -*- coding: utf-8 -*-
"""
Optimization parameters and environment settings.

Parameters are immutable; runtime tuning goes through dataclasses.replace().
"""
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Tuple

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "routewise.db"


@dataclass(frozen=True)
class OptimizationParams:
    nominal_capacity: int = 60          # seats per bus when a route has no explicit capacity
    low_crowd_threshold: int = 30       # 0 < passengers <= threshold → underutilized
    full_transfer_savings: int = 5000   # one bus cancelled
    per_passenger_savings: int = 50
    decrement_on_assign: bool = False
    run_deadline_seconds: float = 30.0
    main_stop_placeholder: str = "main stop"
    landmark_keywords: Tuple[str, ...] = field(default_factory=lambda: (
        "bus stand", "main", "center", "corner", "colony", "junction",
    ))
    location_tokens: Tuple[str, ...] = field(default_factory=lambda: (
        "erode", "gobi", "kolathur", "salem", "college",
    ))
    partial_tokens: Tuple[str, ...] = field(default_factory=lambda: (
        "main", "center",
    ))


# env var → (field, type)
_ENV_OVERRIDES = {
    "ROUTEWISE_NOMINAL_CAPACITY": ("nominal_capacity", int),
    "ROUTEWISE_LOW_CROWD_THRESHOLD": ("low_crowd_threshold", int),
    "ROUTEWISE_FULL_TRANSFER_SAVINGS": ("full_transfer_savings", int),
    "ROUTEWISE_PER_PASSENGER_SAVINGS": ("per_passenger_savings", int),
    "ROUTEWISE_RUN_DEADLINE_SECONDS": ("run_deadline_seconds", float),
}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_params_from_env(base: OptimizationParams = None) -> OptimizationParams:
    """Apply ROUTEWISE_* environment overrides on top of the defaults."""
    params = base or OptimizationParams()
    overrides = {}
    for env_name, (attr, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            overrides[attr] = cast(raw)
        except ValueError:
            logging.warning("Ignoring invalid %s=%r", env_name, raw)

    decrement = os.getenv("ROUTEWISE_DECREMENT_ON_ASSIGN")
    if decrement:
        overrides["decrement_on_assign"] = _parse_bool(decrement)

    return replace(params, **overrides) if overrides else params


def database_path() -> Path:
    return Path(os.getenv("ROUTEWISE_DB_PATH", str(DEFAULT_DB_PATH)))
