import logging

logger = logging.getLogger("ERP.BulkActions")

from typing import Dict, Any, List, Optional, Set, Tuple
from collections import OrderedDict
from datetime import date
import time

from agents.inventory import ProductRecord
from services.reorder_service import ReorderService, BUFFER
from services import export_service
from services.procurement_service import ProcurementService, STATUS_ORDERED


class BulkActionError(Exception):
    """Base exception for bulk action errors."""
    pass


class EmptySelectionError(BulkActionError):
    """Raised when an action requiring a selection gets none."""
    pass


class UnknownSelectionError(BulkActionError):
    """Raised when a selected code is not among the visible records."""
    pass


EXPORT = "export"
PRINT = "print"
MARK_ORDERED = "mark-ordered"

ACTIONS = (EXPORT, PRINT, MARK_ORDERED)

EXPORT_COLUMNS = OrderedDict([
    ("name", "Product"),
    ("current_stock", "Current stock"),
    ("safety_stock", "Safety stock"),
    ("suggested_order", "Suggested order"),
    ("supplier", "Supplier"),
    ("unit_price", "Unit price"),
    ("order_amount", "Order amount"),
])


class BulkActionDispatcher:
    """
    Bulk actions over the low-stock reorder list.

    Holds the selection set; every action receives the currently visible
    records. No rollback: a failing action leaves earlier writes applied.
    """

    def __init__(
        self,
        reorder_service: ReorderService,
        procurement_service: ProcurementService,
        settings_store,
        activity_logger=None,
    ):
        self.reorder_service = reorder_service
        self.procurement_service = procurement_service
        self.settings_store = settings_store
        self.activity_logger = activity_logger
        self.selection: Set[str] = set()


    # ---------------------------------------------------------
    # REORDER LIST
    # ---------------------------------------------------------

    def candidates(self, records: List[ProductRecord]) -> List[ProductRecord]:
        return [r for r in records if self.reorder_service.is_below_safety_stock(r)]

    def line(self, record: ProductRecord) -> Dict[str, Any]:
        suggested = self.reorder_service.calculate_order_quantity(record, BUFFER)
        return {
            "code": record.code,
            "name": record.name,
            "current_stock": record.current_stock,
            "safety_stock": record.safety_stock,
            "suggested_order": suggested,
            "supplier": record.supplier,
            "unit_price": record.unit_price,
            "order_amount": suggested * record.unit_price,
            "selected": record.code in self.selection,
        }

    def reorder_list(self, records: List[ProductRecord]) -> Dict[str, Any]:
        candidates = self._prune_selection(records)
        lines = [self.line(r) for r in candidates]
        selected = [l for l in lines if l["selected"]]
        return {
            "products": lines,
            "selected_count": len(selected),
            "selected_total": sum(l["order_amount"] for l in selected),
            "all_selected": bool(lines) and len(selected) == len(lines),
        }


    # ---------------------------------------------------------
    # SELECTION
    # ---------------------------------------------------------

    def toggle(self, code: str, selected: bool, records: List[ProductRecord]) -> None:
        visible = {r.code for r in self.candidates(records)}
        if code not in visible:
            raise UnknownSelectionError(f"Product {code} is not in the reorder list.")

        if selected:
            self.selection.add(code)
        else:
            self.selection.discard(code)

    def select_all(self, checked: bool, records: List[ProductRecord]) -> None:
        if checked:
            self.selection = {r.code for r in self.candidates(records)}
        else:
            self.selection.clear()

    def selected_records(self, records: List[ProductRecord]) -> List[ProductRecord]:
        return [r for r in self._prune_selection(records) if r.code in self.selection]


    # ---------------------------------------------------------
    # PUBLIC ENTRY POINT
    # ---------------------------------------------------------

    def dispatch(self, action: str, records: List[ProductRecord], **options) -> Any:
        if action == EXPORT:
            return self.export(records, fmt=options.get("fmt", export_service.XLSX))
        if action == PRINT:
            return self.print_purchase_order(records)
        if action == MARK_ORDERED:
            return self.mark_ordered(records)

        raise BulkActionError(f"Unsupported bulk action: {action}")


    # ---------------------------------------------------------
    # ACTIONS
    # ---------------------------------------------------------

    def export(self, records: List[ProductRecord], fmt: str = export_service.XLSX) -> Tuple[str, bytes]:
        """Export the selection, or every visible record when nothing is selected."""
        chosen = self.selected_records(records) or self.candidates(records)

        rows = []
        for record in chosen:
            line = self.line(record)
            rows.append({label: line[key] for key, label in EXPORT_COLUMNS.items()})

        content = export_service.export_table(
            rows, fmt=fmt, sheet_name="Auto reorder list", columns=list(EXPORT_COLUMNS.values())
        )
        filename = export_service.export_filename("auto_reorder_list", fmt)
        self._log(EXPORT, [r.code for r in chosen], "SUCCESS", filename)
        return filename, content

    def print_purchase_order(self, records: List[ProductRecord]) -> Tuple[str, bytes]:
        chosen = self._require_selection(records, "Select products to print a purchase order.")

        po_number = f"PO-{str(int(time.time() * 1000))[-8:]}"
        lines = [self.line(r) for r in chosen]
        content = export_service.purchase_order_pdf(
            lines,
            po_number=po_number,
            supplier=chosen[0].supplier,
            company=self.settings_store.get(),
            order_date=date.today(),
        )
        self._log(PRINT, [r.code for r in chosen], "SUCCESS", po_number)
        return f"{po_number}.pdf", content

    def mark_ordered(self, records: List[ProductRecord]) -> List[Dict[str, Any]]:
        """
        Record one purchase per supplier for the selection, then clear it.

        The first failing write aborts the rest.
        """
        chosen = self._require_selection(records, "Select products to order.")

        by_supplier: "OrderedDict[str, List[ProductRecord]]" = OrderedDict()
        for record in chosen:
            by_supplier.setdefault(record.supplier or "UNASSIGNED", []).append(record)

        purchases = []
        try:
            for supplier, group in by_supplier.items():
                items = []
                for record in group:
                    line = self.line(record)
                    items.append({
                        "product_code": record.code,
                        "product_name": record.name,
                        "quantity": line["suggested_order"],
                        "unit_price": record.unit_price,
                    })
                purchases.append(self.procurement_service.create_purchase(
                    supplier_id=supplier,
                    items=items,
                    purchase_type="auto_reorder",
                    status=STATUS_ORDERED,
                ))
        except Exception as e:
            logger.error(f"mark-ordered aborted after {len(purchases)} purchase(s): {e}")
            self._log(MARK_ORDERED, [r.code for r in chosen], "FAILED", str(e))
            raise

        self.selection.clear()
        self._log(
            MARK_ORDERED, [r.code for r in chosen], "SUCCESS",
            ",".join(p["purchase_number"] for p in purchases),
        )
        logger.info(f"{len(chosen)} products ordered across {len(purchases)} purchase(s)")
        return purchases


    # ---------------------------------------------------------
    # INTERNAL UTILITIES
    # ---------------------------------------------------------

    def _prune_selection(self, records: List[ProductRecord]) -> List[ProductRecord]:
        """Drop selected codes that are no longer below safety stock."""
        candidates = self.candidates(records)
        self.selection &= {r.code for r in candidates}
        return candidates

    def _require_selection(self, records: List[ProductRecord], message: str) -> List[ProductRecord]:
        chosen = self.selected_records(records)
        if not chosen:
            raise EmptySelectionError(message)
        return chosen

    def _log(self, action: str, codes: List[str], outcome: str, detail: str = "") -> Optional[str]:
        if self.activity_logger is None:
            return None
        return self.activity_logger.log(action, codes, outcome, detail)
