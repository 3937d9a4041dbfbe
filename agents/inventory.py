# agents/inventory.py

import os
import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, List, Optional, Any
import pandas as pd


# --------------------------------------------------
# Logging Configuration
# --------------------------------------------------

logger = logging.getLogger("ERP.Inventory")


RECORD_COLUMNS = [
    "code",
    "name",
    "current_stock",
    "safety_stock",
    "average_daily_usage",
    "unit_price",
    "supplier",
    "category",
    "last_order_date",
]


# --------------------------------------------------
# Data Models
# --------------------------------------------------

@dataclass
class ProductRecord:
    code: str
    name: str
    current_stock: int
    safety_stock: int
    average_daily_usage: float = 0.0
    unit_price: float = 0.0
    supplier: str = ""
    category: str = ""
    last_order_date: Optional[date] = None

    def __post_init__(self):
        if not self.code:
            raise ValueError("Product code is required.")

        for field_name in ("current_stock", "safety_stock", "average_daily_usage", "unit_price"):
            value = getattr(self, field_name)
            if value is None or value < 0:
                raise ValueError(
                    f"{field_name} must be non-negative for product {self.code} (got {value})."
                )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        if self.last_order_date is not None:
            payload["last_order_date"] = self.last_order_date.isoformat()
        return payload


# --------------------------------------------------
# Frame Conversion
# --------------------------------------------------

def _parse_date(value) -> Optional[date]:
    if value is None or value == "" or pd.isna(value):
        return None
    if isinstance(value, date):
        return value
    return pd.to_datetime(value).date()


def records_from_frame(df: pd.DataFrame) -> List[ProductRecord]:
    """Build ProductRecords from a dataframe holding RECORD_COLUMNS."""
    if df.empty:
        return []

    df = df.copy()
    for col in ("current_stock", "safety_stock"):
        if col not in df.columns:
            df[col] = 0
        df[col] =pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    for col in ("average_daily_usage", "unit_price"):
        if col not in df.columns:
            df[col] = 0.0
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)
    for col in ("supplier", "category"):
        if col not in df.columns:
            df[col] = ""
        df[col] = df[col].fillna("").astype(str)

    records = []
    for _, row in df.iterrows():
        records.append(ProductRecord(
            code=str(row["code"]).strip(),
            name=str(row["name"]).strip(),
            current_stock=int(row["current_stock"]),
            safety_stock=int(row["safety_stock"]),
            average_daily_usage=float(row["average_daily_usage"]),
            unit_price=float(row["unit_price"]),
            supplier=row["supplier"],
            category=row["category"],
            last_order_date=_parse_date(row.get("last_order_date")),
        ))
    return records


def records_to_frame(records: List[ProductRecord]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    return pd.DataFrame([asdict(r) for r in records], columns=RECORD_COLUMNS)


# --------------------------------------------------
# Inventory Agent
# --------------------------------------------------

class InventoryAgent:
    """
    Holds the product records of the current session.

    Records come from the sample CSV shipped in ``data_base`` or are
    replaced wholesale from the backend product table. Edits stay local.
    """

    SAMPLE_FILE = "sample_products.csv"

    def __init__(self, data_path: str):
        self.data_path = data_path
        self.records: Dict[str, ProductRecord] = {}

    # --------------------------------------------------
    # Load Data
    # --------------------------------------------------

    def load_data(self) -> None:
        path = os.path.join(self.data_path, self.SAMPLE_FILE)
        try:
            logger.info(f"Loading sample products from {path}")
            df = pd.read_csv(path, dtype={"code": str})
        except Exception as e:
            logger.error(f"Error loading sample products: {str(e)}")
            raise

        self.replace(records_from_frame(df))
        logger.info(f"Loaded {len(self.records)} product records.")

    def replace(self, records: List[ProductRecord]) -> None:
        self.records = {r.code: r for r in records}

    # --------------------------------------------------
    # Access
    # --------------------------------------------------

    def list_records(self) -> List[ProductRecord]:
        return list(self.records.values())

    def get(self, code: str) -> ProductRecord:
        if code not in self.records:
            raise KeyError(f"Product '{code}' not found.")
        return self.records[code]

    def update_stock(self, code: str, current_stock: int) -> ProductRecord:
        record = self.get(code)
        if current_stock < 0:
            raise ValueError(f"current_stock must be non-negative (got {current_stock}).")
        record.current_stock = int(current_stock)
        return record

    def as_frame(self) -> pd.DataFrame:
        return records_to_frame(self.list_records())
