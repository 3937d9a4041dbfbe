# agents/stock_alert_agent.py

import logging
from dataclasses import dataclass
from typing import Dict, List, Set, Any

from agents.inventory import ProductRecord
from services.reorder_service import ReorderService, BUFFER

logger = logging.getLogger("ERP.StockAlerts")


# --------------------------------------------------
# Dataclass
# --------------------------------------------------

@dataclass
class OrderProposal:
    code: str
    name: str
    current_stock: int
    safety_stock: int
    shortage: int
    recommended_order: int
    unit_price: float
    total_cost: float
    supplier: str

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


# --------------------------------------------------
# Stock Alert Agent
# --------------------------------------------------

class StockAlertAgent:
    """
    Tracks products below safety stock.

    Each scan reports the current low-stock set and, when notifications
    are on, the products that became low since the previous scan.
    Dismissed products stay silent until reset.
    """

    def __init__(self, reorder_service: ReorderService):
        self.reorder_service = reorder_service
        self.notifications_enabled = True
        self.dismissed: Set[str] = set()
        self._last_low: Set[str] = set()

    def low_stock(self, records: List[ProductRecord]) -> List[ProductRecord]:
        return [
            r for r in records
            if self.reorder_service.is_below_safety_stock(r) and r.code not in self.dismissed
        ]

    def propose_order(self, record: ProductRecord) -> OrderProposal:
        recommended = self.reorder_service.calculate_order_quantity(record, BUFFER)
        return OrderProposal(
            code=record.code,
            name=record.name,
            current_stock=record.current_stock,
            safety_stock=record.safety_stock,
            shortage=self.reorder_service.calculate_shortage(record),
            recommended_order=recommended,
            unit_price=record.unit_price,
            total_cost=recommended * record.unit_price,
            supplier=record.supplier,
        )

    def scan(self, records: List[ProductRecord]) -> Dict[str, Any]:
        low = self.low_stock(records)
        low_codes = {r.code for r in low}

        new_alerts: List[OrderProposal] = []
        if self.notifications_enabled:
            new_alerts = [self.propose_order(r) for r in low if r.code not in self._last_low]
            for proposal in new_alerts:
                logger.warning(
                    f"Low stock: {proposal.name} (current {proposal.current_stock}, "
                    f"safety {proposal.safety_stock}); propose ordering {proposal.recommended_order}"
                )

        self._last_low = low_codes
        return {
            "low_stock": [self.propose_order(r).to_dict() for r in low],
            "new_alerts": [p.to_dict() for p in new_alerts],
            "notifications_enabled": self.notifications_enabled,
            "all_clear": not low,
        }

    def dismiss(self, code: str) -> None:
        self.dismissed.add(code)
        logger.info(f"Alert dismissed for {code}")

    def set_notifications(self, enabled: bool) -> bool:
        self.notifications_enabled = bool(enabled)
        logger.info(f"Stock alert notifications {'on' if self.notifications_enabled else 'off'}")
        return self.notifications_enabled
