from __future__ import annotations

from typing import Any, Mapping

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from orderflow.app.db.models.core_types import DocumentKind

_TITLES = {
    DocumentKind.order: "ORDER",
    DocumentKind.quotation: "QUOTATION",
}

# section, type, description, qty, unit price, vat, subtotal
_COLUMNS = (
    ("Section", 28),
    ("Type", 28),
    ("Description", 50),
    ("Qty", 12),
    ("Price", 24),
    ("VAT", 22),
    ("Subtotal", 26),
)


def _latin1(value: Any) -> str:
    # core fonts only cover latin-1
    text = "" if value is None else str(value)
    return text.encode("latin-1", "replace").decode("latin-1")


def _amount(value: Any) -> str:
    return f"{float(value or 0):,.2f}"


def _line(pdf: FPDF, text: str, *, h: float = 7) -> None:
    pdf.cell(0, h, _latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)


def render_document_pdf(kind: DocumentKind, document: Mapping[str, Any]) -> bytes:
    """Render a serialized order or quotation (see workflow.serialize_document)."""
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, f"{_TITLES[kind]} {_latin1(document.get('custom_id'))}", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    pdf.set_font("Helvetica", "B", 11)
    _line(pdf, "Client")
    pdf.set_font("Helvetica", size=10)
    _line(pdf, f"{document.get('company_name') or ''} - {document.get('client_name') or ''}")
    _line(pdf, f"Phone: {document.get('phone_number') or '-'}")
    if document.get("tax_number"):
        _line(pdf, f"Tax number: {document['tax_number']}")
    address = ", ".join(str(p) for p in (document.get("street"), document.get("city"), document.get("region")) if p)
    if address:
        _line(pdf, f"Address: {address}")
    pdf.ln(3)

    pdf.set_font("Helvetica", "B", 11)
    _line(pdf, "Delivery")
    pdf.set_font("Helvetica", size=10)
    _line(pdf, f"Date: {(document.get('delivery_date') or '')[:10]}")
    _line(pdf, f"Type: {document.get('delivery_type') or '-'}")
    _line(pdf, f"Status: {document.get('status') or '-'}")
    _line(
        pdf,
        "Approvals: supervisor {s} / storekeeper {k} / manager {m}".format(
            s=document.get("supervisoraccept"),
            k=document.get("storekeeperaccept"),
            m=document.get("manageraccept"),
        ),
    )
    if document.get("username"):
        _line(pdf, f"Sales rep: {document['username']}")
    pdf.ln(4)

    pdf.set_font("Helvetica", "B", 9)
    for title, width in _COLUMNS:
        pdf.cell(width, 7, title, border=1, align="C")
    pdf.ln()

    pdf.set_font("Helvetica", size=9)
    for product in document.get("products") or []:
        values = (
            product.get("section"),
            product.get("type"),
            product.get("description"),
            product.get("quantity"),
            _amount(product.get("price")),
            _amount(product.get("vat")),
            _amount(product.get("subtotal")),
        )
        for (title, width), value in zip(_COLUMNS, values):
            text = _latin1(value)
            if pdf.get_string_width(text) > width - 2:
                while text and pdf.get_string_width(text + "...") > width - 2:
                    text = text[:-1]
                text += "..."
            align = "R" if title in {"Qty", "Price", "VAT", "Subtotal"} else "L"
            pdf.cell(width, 7, text, border=1, align=align)
        pdf.ln()

    pdf.ln(4)
    pdf.set_font("Helvetica", "B", 10)
    for label, key in (("Total", "total_price"), ("VAT", "total_vat"), ("Total incl. VAT", "total_subtotal")):
        pdf.cell(150, 7, label, align="R")
        pdf.cell(40, 7, _amount(document.get(key)), align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    if document.get("notes"):
        pdf.ln(4)
        pdf.set_font("Helvetica", "I", 9)
        pdf.multi_cell(0, 5, _latin1(f"Notes: {document['notes']}"))

    return bytes(pdf.output())
