import time
import logging
import threading
from datetime import date
from typing import Dict, Any, List, Optional

from services.table_gateway import TableGateway

logger = logging.getLogger("ERP.Procurement")

PURCHASES_TABLE = "purchases"
PURCHASE_ITEMS_TABLE = "purchase_items"

STATUS_COMPLETED = "completed"
STATUS_ORDERED = "ordered"


class ProcurementException(Exception):
    """Base exception for ProcurementService errors."""
    pass


class PurchaseValidationError(ProcurementException):
    """Raised when a purchase is missing its supplier or line items."""
    pass


# --------------------------------------------------
# Document numbers
# --------------------------------------------------

_number_lock = threading.Lock()
_last_issued: Dict[str, int] = {}


def next_document_number(prefix: str) -> str:
    """`<prefix>-<epoch ms>`, strictly increasing per prefix."""
    with _number_lock:
        stamp = max(int(time.time() * 1000), _last_issued.get(prefix, 0) + 1)
        _last_issued[prefix] = stamp
    return f"{prefix}-{stamp}"


def build_line_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalise line items and compute subtotal = quantity * unit_price."""
    lines = []
    for item in items:
        quantity = int(item.get("quantity", 0))
        unit_price = float(item.get("unit_price", 0))
        if quantity <= 0:
            raise PurchaseValidationError(
                f"Quantity for {item.get('product_name') or item.get('product_code')} must be positive."
            )
        if unit_price < 0:
            raise PurchaseValidationError("unit_price must be non-negative.")

        lines.append({
            "product_id": item.get("product_id"),
            "product_code": item.get("product_code"),
            "product_name": item.get("product_name"),
            "quantity": quantity,
            "unit_price": unit_price,
            "subtotal": quantity * unit_price,
        })
    return lines


class ProcurementService:

    def __init__(self, gateway: TableGateway):
        self.gateway = gateway

    # --------------------------------------------------
    # Create purchase (header + line items)
    # --------------------------------------------------

    def create_purchase(
        self,
        supplier_id: str,
        items: List[Dict[str, Any]],
        purchase_date: Optional[str] = None,
        purchase_type: str = "normal",
        status: str = STATUS_COMPLETED,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not supplier_id or not items:
            raise PurchaseValidationError("Select a supplier and at least one product.")

        lines = build_line_items(items)
        total_amount = sum(line["subtotal"] for line in lines)

        purchase = self.gateway.insert(PURCHASES_TABLE, [{
            "purchase_number": next_document_number("PUR"),
            "supplier_id": supplier_id,
            "purchase_date": purchase_date or date.today().isoformat(),
            "purchase_type": purchase_type,
            "status": status,
            "total_amount": total_amount,
            "notes": notes or None,
        }])[0]

        for line in lines:
            line["purchase_id"] = purchase["id"]
        created_items = self.gateway.insert(PURCHASE_ITEMS_TABLE, lines)

        logger.info(
            f"Purchase {purchase['purchase_number']} created for {supplier_id} "
            f"({len(created_items)} items, total {total_amount:,.0f})"
        )
        return {**purchase, "items": created_items}

    # --------------------------------------------------
    # List purchases
    # --------------------------------------------------

    def list_purchases(self, status_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = {"status": status_filter} if status_filter else None
        return self.gateway.select(PURCHASES_TABLE, filters=filters, order="created_at", descending=True)

    def list_items(self, purchase_id: str) -> List[Dict[str, Any]]:
        return self.gateway.select(PURCHASE_ITEMS_TABLE, filters={"purchase_id": purchase_id})

    # --------------------------------------------------
    # Update status
    # --------------------------------------------------

    def update_status(self, purchase_id: str, new_status: str) -> Dict[str, Any]:
        row = self.gateway.update(PURCHASES_TABLE, purchase_id, {"status": new_status})
        logger.info(f"Purchase {row.get('purchase_number', purchase_id)} status changed to {new_status}")
        return row
