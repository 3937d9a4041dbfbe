"""
reorder_service.py

Stock Replenishment Calculator
------------------------------

Responsible for:
- Evaluating shortage against safety stock
- Estimating recommended order quantities
- Projecting days until stockout
- Classifying reorder priority

STRICT DESIGN:
- Deterministic math only
- No I/O
- Heuristic constants come from ReplenishmentPolicy
- Product records (or a dataframe of them) must be passed as input
"""

import math
from typing import Dict, Any, Optional
import numpy as np
import pandas as pd

from agents.inventory import ProductRecord
from services.settings_service import ReplenishmentPolicy


class ReorderServiceException(Exception):
    """Base exception for ReorderService errors."""
    pass


class InvalidPolicyException(ReorderServiceException):
    """Raised when an unsupported order quantity model is requested."""
    pass


COVERAGE = "COVERAGE"
BUFFER = "BUFFER"

HIGH = "high"
MEDIUM = "medium"
LOW = "low"


class ReorderService:
    """
    Replenishment calculator.

    Pure functions over ProductRecords; the policy only supplies constants.
    """

    def __init__(self, policy: Optional[ReplenishmentPolicy] = None):
        self.policy = policy or ReplenishmentPolicy()

    # ---------------------------------------------------------
    # CORE CALCULATIONS
    # ---------------------------------------------------------

    def calculate_shortage(self, record: ProductRecord) -> int:
        """Units below safety stock, floored at zero."""
        return max(0, record.safety_stock - record.current_stock)

    def calculate_order_quantity(self, record: ProductRecord, model: str = COVERAGE) -> int:
        """Recommended order quantity for the given model."""

        if model == COVERAGE:
            return int(math.ceil(
                record.average_daily_usage * self.policy.coverage_days + record.safety_stock
            ))

        if model == BUFFER:
            return int(math.ceil(self.calculate_shortage(record) * self.policy.buffer_multiplier))

        raise InvalidPolicyException(f"Unsupported order quantity model: {model}")

    def calculate_days_until_stockout(self, record: ProductRecord) -> int:
        """
        Days of stock left above safety stock at the current usage rate.

        Negative when the product is already below safety stock.
        """
        usage = max(record.average_daily_usage, 1)
        return int(math.floor((record.current_stock - record.safety_stock) / usage))

    def classify_priority(self, days_until_stockout: int) -> str:
        if days_until_stockout < self.policy.high_priority_days:
            return HIGH
        if days_until_stockout < self.policy.medium_priority_days:
            return MEDIUM
        return LOW

    def is_below_safety_stock(self, record: ProductRecord) -> bool:
        return record.current_stock < record.safety_stock

    # ---------------------------------------------------------
    # RECORD EVALUATION
    # ---------------------------------------------------------

    def evaluate(self, record: ProductRecord) -> Dict[str, Any]:
        days = self.calculate_days_until_stockout(record)
        return {
            "code": record.code,
            "name": record.name,
            "current_stock": record.current_stock,
            "safety_stock": record.safety_stock,
            "shortage": self.calculate_shortage(record),
            "days_until_stockout": days,
            "priority": self.classify_priority(days),
            "coverage_order_quantity": self.calculate_order_quantity(record, COVERAGE),
            "buffer_order_quantity": self.calculate_order_quantity(record, BUFFER),
        }

    def evaluate_frame(self, inventory_df: pd.DataFrame) -> pd.DataFrame:
        """
        Vectorised evaluation of a record dataframe.

        Adds shortage, days_until_stockout, priority and both order
        quantities as columns; agrees with evaluate() row by row.
        """
        df = inventory_df.copy()
        if df.empty:
            for col in ("shortage", "days_until_stockout", "priority",
                        "coverage_order_quantity", "buffer_order_quantity"):
                df[col] = pd.Series(dtype=object if col == "priority" else "int64")
            return df

        current = df["current_stock"].astype(float)
        safety = df["safety_stock"].astype(float)
        usage = df["average_daily_usage"].astype(float)

        shortage = np.maximum(0.0, safety - current)
        days = np.floor((current - safety) / np.maximum(usage, 1.0))

        df["shortage"] = shortage.astype("int64")
        df["days_until_stockout"] = days.astype("int64")
        df["priority"] = np.select(
            [days < self.policy.high_priority_days, days < self.policy.medium_priority_days],
            [HIGH, MEDIUM],
            default=LOW,
        )
        df["coverage_order_quantity"] = np.ceil(
            usage * self.policy.coverage_days + safety
        ).astype("int64")
        df["buffer_order_quantity"] = np.ceil(
            shortage * self.policy.buffer_multiplier
        ).astype("int64")
        return df

