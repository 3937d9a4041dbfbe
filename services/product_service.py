import logging
from typing import Dict, Any, List

import pandas as pd

from agents.inventory import ProductRecord, records_from_frame
from services.table_gateway import TableGateway

logger = logging.getLogger("ERP.Products")

TABLE = "products"


def record_from_row(row: Dict[str, Any]) -> ProductRecord:
    """Map a products table row onto a ProductRecord."""
    frame = pd.DataFrame([{
        "code": row.get("code", ""),
        "name": row.get("name", ""),
        "current_stock": row.get("stock", 0),
        "safety_stock": row.get("safety_stock", 0),
        "average_daily_usage": row.get("average_daily_usage", 0),
        "unit_price": row.get("price", 0),
        "supplier": row.get("supplier") or "",
        "category": row.get("category") or "",
        "last_order_date": row.get("last_order_date"),
    }])
    return records_from_frame(frame)[0]


class ProductService:

    def __init__(self, gateway: TableGateway):
        self.gateway = gateway

    def list_rows(self) -> List[Dict[str, Any]]:
        return self.gateway.select(TABLE, order="name")

    def list_records(self) -> List[ProductRecord]:
        records = [record_from_row(row) for row in self.list_rows()]
        logger.info(f"Fetched {len(records)} products from backend.")
        return records

    def find_by_code(self, code: str) -> Dict[str, Any]:
        rows = self.gateway.select(TABLE, filters={"code": code})
        if not rows:
            raise KeyError(f"Product '{code}' not found.")
        return rows[0]

    def create(self, record: ProductRecord) -> Dict[str, Any]:
        row = {
            "code": record.code,
            "name": record.name,
            "category": record.category,
            "price": record.unit_price,
            "stock": record.current_stock,
            "safety_stock": record.safety_stock,
            "average_daily_usage": record.average_daily_usage,
            "supplier": record.supplier,
        }
        return self.gateway.insert(TABLE, [row])[0]

    def update_stock(self, product_id: str, stock: int) -> Dict[str, Any]:
        if stock < 0:
            raise ValueError(f"stock must be non-negative (got {stock}).")
        return self.gateway.update(TABLE, product_id, {"stock": int(stock)})
