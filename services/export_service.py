"""
export_service.py — Spreadsheet / PDF export and the tracking-number import

Exports are write-only artifacts built from in-memory rows. The only
re-import contract is the two-column tracking-number sheet.
"""
import io
import logging
import os
from datetime import date
from typing import Dict, Any, List, Optional
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

logger = logging.getLogger("ERP.Export")

XLSX = "xlsx"
CSV = "csv"

MIMETYPES = {
    XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    CSV: "text/csv; charset=utf-8",
}

TRACKING_COLUMNS = ["outbound_number", "tracking_number"]


class MalformedImportError(ValueError):
    """Raised when an imported sheet does not have the expected layout."""
    pass


# ──────────────────────────────────────────────────────
# SPREADSHEET EXPORT
# ──────────────────────────────────────────────────────

def export_table(
    rows: List[Dict[str, Any]],
    fmt: str = XLSX,
    sheet_name: str = "Sheet1",
    columns: Optional[List[str]] = None,
) -> bytes:
    df = pd.DataFrame(rows, columns=columns)

    if fmt == CSV:
        # BOM keeps non-ASCII names readable in spreadsheet apps
        return df.to_csv(index=False).encode("utf-8-sig")

    if fmt == XLSX:
        buf = io.BytesIO()
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name[:31], index=False)
        return buf.getvalue()

    raise ValueError(f"Unsupported export format: {fmt}")


def export_filename(base: str, fmt: str, on: Optional[date] = None) -> str:
    return f"{base}_{(on or date.today()).isoformat()}.{fmt}"


# ──────────────────────────────────────────────────────
# TRACKING-NUMBER IMPORT
# ──────────────────────────────────────────────────────

def read_tracking_sheet(source, filename: str) -> pd.DataFrame:
    """
    Read a tracking-number sheet (xlsx or csv).

    Expected columns: outbound_number, tracking_number. Blank rows are
    dropped.
    """
    ext = os.path.splitext(filename or "")[1].lower()
    try:
        if ext in (".xlsx", ".xlsm"):
            df = pd.read_excel(source, dtype=str, engine="openpyxl")
        elif ext == ".csv":
            df = pd.read_csv(source, dtype=str, encoding="utf-8-sig")
        else:
            raise MalformedImportError(f"Unsupported import file type: {ext or filename}")
    except MalformedImportError:
        raise
    except Exception as e:
        logger.error(f"Failed to read import file {filename}: {e}")
        raise MalformedImportError("Could not read the uploaded file.") from e

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in TRACKING_COLUMNS if c not in df.columns]
    if missing:
        raise MalformedImportError(
            f"Unexpected sheet layout, missing column(s): {', '.join(missing)}"
        )

    df = df[TRACKING_COLUMNS].dropna(how="any")
    df = df[(df["outbound_number"].str.strip() != "") & (df["tracking_number"].str.strip() != "")]
    return df.reset_index(drop=True)


# ──────────────────────────────────────────────────────
# PURCHASE ORDER PDF
# ──────────────────────────────────────────────────────

def purchase_order_pdf(
    lines: List[Dict[str, Any]],
    po_number: str,
    supplier: str,
    company: Dict[str, Any],
    order_date: Optional[date] = None,
) -> bytes:
    """
    One-page purchase order.

    `lines` hold name, current_stock, suggested_order, unit_price.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, rightMargin=30, leftMargin=30, topMargin=30, bottomMargin=30)
    styles = getSampleStyleSheet()
    elements = []

    elements.append(Paragraph("PURCHASE ORDER", styles["Title"]))
    elements.append(Paragraph(
        f"Order date: {(order_date or date.today()).isoformat()} &nbsp;&nbsp; PO number: {po_number}",
        styles["Normal"],
    ))
    elements.append(Paragraph(f"Supplier: {escape(supplier)}", styles["Normal"]))
    elements.append(Spacer(1, 12))

    data = [["No.", "Product", "Current stock", "Order qty", "Unit price", "Amount"]]
    total = 0.0
    for i, line in enumerate(lines, start=1):
        amount = line["suggested_order"] * line["unit_price"]
        total += amount
        data.append([
            i, line["name"], line["current_stock"], line["suggested_order"],
            f"{line['unit_price']:,.0f}", f"{amount:,.0f}",
        ])

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#F0F0F0")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#333333")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f"<b>Total order amount: {total:,.0f}</b>", styles["Normal"]))
    elements.append(Spacer(1, 24))
    footer = (
        f"{company.get('company_name', '')} | {company.get('business_number', '')} | "
        f"Tel {company.get('phone', '')} | Fax {company.get('fax', '')}"
    )
    elements.append(Paragraph(escape(footer), styles["Normal"]))

    doc.build(elements)
    logger.info(f"Purchase order {po_number} rendered ({len(lines)} lines)")
    return buf.getvalue()
