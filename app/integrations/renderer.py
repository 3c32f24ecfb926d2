# app/integrations/renderer.py

import asyncio
from io import BytesIO
from typing import Protocol

from fastapi.concurrency import run_in_threadpool
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from app.constants.error_codes import ErrorCode
from app.core.config import RENDER_TIMEOUT_SECONDS
from app.core.exceptions import AppException


class DocumentRenderer(Protocol):
    def render(self, template: str, context: dict) -> bytes:
        ...


TABLE_STYLE = TableStyle([
    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
    ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
])


class ReportLabRenderer:
    """
    Renders the quote, contract and invoice documents to PDF bytes.

    The context is a plain dict of already formatted values; the renderer
    never touches ORM objects or the database.
    """

    TEMPLATES = ("quote", "contract", "invoice")

    def __init__(self):
        self.styles = getSampleStyleSheet()

    def render(self, template: str, context: dict) -> bytes:
        if template not in self.TEMPLATES:
            raise ValueError(f"Unknown document template: {template}")

        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=30,
            leftMargin=30,
            topMargin=30,
            bottomMargin=30,
            title=context.get("title", template.capitalize()),
        )

        elements = self._header(context)
        elements += getattr(self, f"_{template}_body")(context)
        doc.build(elements)
        return buffer.getvalue()

    # -------------------------------
    # Sections
    # -------------------------------
    def _header(self, context: dict) -> list:
        s = self.styles
        elements = [
            Paragraph(f"<b>{context.get('brand', '')}</b>", s["Title"]),
            Paragraph(f"<b>{context.get('title', '')}</b>", s["Heading2"]),
        ]
        if context.get("company"):
            elements.append(Paragraph(f"Prepared for: {context['company']}", s["Normal"]))
        if context.get("issued_on"):
            elements.append(Paragraph(f"Date: {context['issued_on']}", s["Normal"]))
        elements.append(Spacer(1, 12))
        return elements

    def _line_table(self, heading: str, rows: list[dict]) -> list:
        if not rows:
            return []
        data = [["#", heading, "Qty", "Price", "Total"]]
        for n, r in enumerate(rows, start=1):
            data.append([n, r["name"], r["qty"], r["price"], r["line_total"]])
        table = Table(data, colWidths=[25, 245, 50, 80, 80])
        table.setStyle(TABLE_STYLE)
        return [table, Spacer(1, 12)]

    def _totals(self, totals: list[tuple[str, str]]) -> list:
        table = Table([[label, value] for label, value in totals], colWidths=[400, 80])
        table.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ]))
        return [table, Spacer(1, 12)]

    def _quote_body(self, context: dict) -> list:
        s = self.styles
        elements = []
        elements += self._line_table("Monthly Services", context.get("services", []))
        elements += self._line_table("One-Time Products", context.get("products", []))
        elements += self._totals([
            ("Monthly Recurring", context["mrr"]),
            ("One-Time", context["nrc"]),
            ("Tax", context["tax"]),
            ("Total", context["total"]),
        ])
        elements.append(Paragraph(f"Term: {context.get('term_label', '-')}", s["Normal"]))
        if context.get("notes"):
            elements.append(Paragraph("<b>Notes:</b>", s["Heading3"]))
            elements.append(Paragraph(context["notes"], s["Normal"]))
        return elements

    def _contract_body(self, context: dict) -> list:
        s = self.styles
        elements = self._quote_body(context)
        elements.append(Spacer(1, 12))
        elements.append(Paragraph("<b>Agreement</b>", s["Heading3"]))
        elements.append(Paragraph(
            f"Service term from {context.get('msa_start', '-')} to {context.get('msa_end', '-')}.",
            s["Normal"],
        ))
        if context.get("signer"):
            elements.append(Paragraph(
                f"Signed by {context['signer']} from {context.get('contract_ip') or 'unknown'}",
                s["Normal"],
            ))
        return elements

    def _invoice_body(self, context: dict) -> list:
        s = self.styles
        elements = []
        if context.get("po"):
            elements.append(Paragraph(f"PO: {context['po']}", s["Normal"]))
        elements.append(Paragraph(f"Due: {context.get('due_on', '-')}", s["Normal"]))
        elements.append(Spacer(1, 10))
        elements += self._line_table("Item", context.get("items", []))
        elements += self._totals([("Total Due", context["total"])])
        return elements


def get_renderer() -> DocumentRenderer:
    return ReportLabRenderer()


async def render_pdf(renderer: DocumentRenderer, template: str, context: dict) -> bytes:
    """
    Render off the event loop; ReportLab is CPU bound and blocking.

    The worker thread cannot be interrupted, so on timeout it is left to
    finish in the background and its result is discarded.
    """
    try:
        return await asyncio.wait_for(
            asyncio.shield(run_in_threadpool(renderer.render, template, context)),
            timeout=RENDER_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError as e:
        raise AppException(
            503,
            f"Rendering the {template} document timed out",
            ErrorCode.DOCUMENT_RENDER_TIMEOUT,
            details={"template": template},
        ) from e
