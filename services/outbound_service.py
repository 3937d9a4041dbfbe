"""
outbound_service.py — Outbound orders, their line items and tracking numbers
"""
import logging
from datetime import date
from typing import Dict, Any, List, Optional

import pandas as pd

from services.procurement_service import build_line_items, next_document_number, PurchaseValidationError
from services.table_gateway import TableGateway

logger = logging.getLogger("ERP.Outbound")

OUTBOUND_TABLE = "outbound_orders"
OUTBOUND_ITEMS_TABLE = "outbound_items"
PRODUCTS_TABLE = "products"

STATUS_PREPARING = "preparing"
STATUS_IN_TRANSIT = "in_transit"


class OutboundException(Exception):
    """Base exception for OutboundService errors."""
    pass


class OutboundValidationError(OutboundException):
    """Raised for a missing customer, missing items or insufficient stock."""
    pass


class OutboundService:

    def __init__(self, gateway: TableGateway):
        self.gateway = gateway

    # --------------------------------------------------
    # Create outbound order
    # --------------------------------------------------

    def create_outbound(
        self,
        customer_id: str,
        items: List[Dict[str, Any]],
        customer_name: Optional[str] = None,
        outbound_date: Optional[str] = None,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not customer_id or not items:
            raise OutboundValidationError("Select a customer and at least one product.")

        try:
            lines = build_line_items(items)
        except PurchaseValidationError as e:
            raise OutboundValidationError(str(e)) from e

        self._check_stock(lines)

        total_amount = sum(line["subtotal"] for line in lines)
        outbound = self.gateway.insert(OUTBOUND_TABLE, [{
            "outbound_number": next_document_number("OUT"),
            "customer_id": customer_id,
            "customer_name": customer_name,
            "outbound_date": outbound_date or date.today().isoformat(),
            "tracking_number": tracking_number or None,
            "status": STATUS_IN_TRANSIT if tracking_number else STATUS_PREPARING,
            "total_amount": total_amount,
            "notes": notes or None,
        }])[0]

        for line in lines:
            line["outbound_id"] = outbound["id"]
        created_items = self.gateway.insert(OUTBOUND_ITEMS_TABLE, lines)

        logger.info(f"Outbound {outbound['outbound_number']} created ({len(created_items)} items)")
        return {**outbound, "items": created_items}

    def _check_stock(self, lines: List[Dict[str, Any]]) -> None:
        for line in lines:
            if not line.get("product_id"):
                continue
            rows = self.gateway.select(PRODUCTS_TABLE, filters={"id": line["product_id"]})
            available = int(rows[0].get("stock") or 0) if rows else 0
            if line["quantity"] > available:
                raise OutboundValidationError(
                    f"Insufficient stock for {line['product_name']} (stock: {available})"
                )

    # --------------------------------------------------
    # List outbound orders
    # --------------------------------------------------

    def list_outbounds(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        rows = self.gateway.select(OUTBOUND_TABLE, order="created_at", descending=True)
        if not search:
            return rows
        term = search.lower()
        return [
            r for r in rows
            if term in (r.get("customer_name") or "").lower()
            or term in (r.get("outbound_number") or "").lower()
        ]

    def list_items(self, outbound_id: str) -> List[Dict[str, Any]]:
        return self.gateway.select(OUTBOUND_ITEMS_TABLE, filters={"outbound_id": outbound_id})

    # --------------------------------------------------
    # Tracking numbers
    # --------------------------------------------------

    def set_tracking_number(self, outbound_id: str, tracking_number: str) -> Dict[str, Any]:
        return self.gateway.update(OUTBOUND_TABLE, outbound_id, {
            "tracking_number": tracking_number,
            "status": STATUS_IN_TRANSIT,
        })

    def apply_tracking_numbers(self, tracking_df: pd.DataFrame) -> Dict[str, Any]:
        """
        Apply an imported (outbound_number, tracking_number) sheet.

        Writes stop at the first backend failure; earlier writes stay.
        """
        by_number = {r.get("outbound_number"): r for r in self.gateway.select(OUTBOUND_TABLE)}

        updated, unmatched = [], []
        for _, row in tracking_df.iterrows():
            number = str(row["outbound_number"]).strip()
            tracking = str(row["tracking_number"]).strip()
            outbound = by_number.get(number)
            if outbound is None:
                unmatched.append(number)
                continue
            self.set_tracking_number(outbound["id"], tracking)
            updated.append(number)

        logger.info(f"Tracking import: {len(updated)} updated, {len(unmatched)} unmatched")
        return {"updated": updated, "unmatched": unmatched}
