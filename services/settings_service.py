"""
settings_service.py — Replenishment policy and company settings

ReplenishmentPolicy   →  every reorder heuristic as a parameter
CompanySettingsStore  →  JSON-backed company settings with load / save / reload
"""

import os
import re
import json
import logging
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Mapping

logger = logging.getLogger("ERP.Settings")


class SettingsValidationError(ValueError):
    """Raised when company settings fail validation."""
    pass


# ──────────────────────────────────────────────────────
# REPLENISHMENT POLICY
# ──────────────────────────────────────────────────────

def _coerce(key: str, raw: Any, target: type):
    try:
        number = float(raw)
    except (TypeError, ValueError):
        raise SettingsValidationError(f"{key} must be a number (got {raw!r}).") from None

    if target is int:
        if not number.is_integer():
            raise SettingsValidationError(f"{key} must be a whole number (got {raw!r}).")
        return int(number)
    return number


@dataclass(frozen=True)
class ReplenishmentPolicy:
    buffer_multiplier: float = 1.5
    coverage_days: int = 30
    high_priority_days: int = 7
    medium_priority_days: int = 14
    prediction_horizon_days: int = 30
    order_lead_days: int = 7
    analysis_delay_seconds: float = 2.0

    def __post_init__(self):
        if self.buffer_multiplier < 0 or self.coverage_days < 0:
            raise ValueError("buffer_multiplier and coverage_days must be non-negative.")
        if self.high_priority_days > self.medium_priority_days:
            raise ValueError("high_priority_days cannot exceed medium_priority_days.")
        if self.analysis_delay_seconds < 0:
            raise ValueError("analysis_delay_seconds must be non-negative.")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "ReplenishmentPolicy":
        """Read REORDER_<FIELD> keys, falling back to the defaults."""
        values = {}
        for f in fields(cls):
            key = f"REORDER_{f.name.upper()}"
            if key in config and config[key] is not None:
                values[f.name] = _coerce(key, config[key], f.type)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ──────────────────────────────────────────────────────
# COMPANY SETTINGS STORE
# ──────────────────────────────────────────────────────

DEFAULT_COMPANY_SETTINGS = {
    "company_name": "LogiBot",
    "business_number": "123-45-67890",
    "phone": "02-1234-5678",
    "fax": "02-1234-5679",
}

_BUSINESS_NUMBER_RE = re.compile(r"^\d{3}-\d{2}-\d{5}$")
_PHONE_RE = re.compile(r"^(\d{2,3}-\d{3,4}-\d{4}|\d{3,4}-\d{4})$")


def validate_company_settings(settings: Dict[str, Any]) -> None:
    name = str(settings.get("company_name", "")).strip()
    if not name or len(name) > 100:
        raise SettingsValidationError("company_name must be 1-100 characters.")

    if not _BUSINESS_NUMBER_RE.match(str(settings.get("business_number", ""))):
        raise SettingsValidationError(
            "business_number must look like 123-45-67890."
        )

    for key in ("phone", "fax"):
        value = settings.get(key)
        if value and not _PHONE_RE.match(str(value)):
            raise SettingsValidationError(
                f"{key} must look like 02-1234-5678 or 1588-1234."
            )


class CompanySettingsStore:
    """
    Process-wide company settings.

    Loaded once at startup, mutated through save(), re-read with reload().
    """

    def __init__(self, path: str):
        self.path = path
        self._settings: Dict[str, Any] = dict(DEFAULT_COMPANY_SETTINGS)

    def load(self) -> Dict[str, Any]:
        settings = dict(DEFAULT_COMPANY_SETTINGS)
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                stored = json.load(f)
            settings.update({k: v for k, v in stored.items() if k in DEFAULT_COMPANY_SETTINGS})
            logger.info(f"Company settings loaded from {self.path}")
        else:
            logger.info("No stored company settings, using defaults.")

        self._settings = settings
        return self.get()

    def reload(self) -> Dict[str, Any]:
        return self.load()

    def get(self) -> Dict[str, Any]:
        return dict(self._settings)

    def save(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(updates) - set(DEFAULT_COMPANY_SETTINGS)
        if unknown:
            raise SettingsValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        candidate = {**self._settings, **updates}
        validate_company_settings(candidate)

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(candidate, f, ensure_ascii=False, indent=2)

        self._settings = candidate
        logger.info(f"Company settings saved ({', '.join(sorted(updates))})")
        return self.get()
