# services/collect/pdf_report.py
from datetime import datetime
from io import BytesIO
from typing import Any, Optional

import pytz
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from services.collect.aggregation import as_money, coerce_amount

MAX_REPORT_ROWS = 1000

HEADER_COLOR = colors.HexColor("#366092")
TABLE_HEADERS = ["Transaction ID", "App ID", "Amount (INR)", "Status", "Date"]


def _short_id(value: str, width: int = 12) -> str:
    return value if len(value) <= width else value[:width] + "..."


def _summary_lines(summary: dict[str, Any]) -> list[str]:
    return [
        f"Total Transactions: {summary['totalTransactions']}",
        f"Total Amount: INR {summary['totalAmount']:.2f}",
        f"Success: {summary['successCount']} (INR {summary['totalAmountReceived']:.2f})",
        f"Failed: {summary['failedCount']}",
        f"Retry: {summary['retryCount']}",
    ]


def build_payments_report(
    summary: dict[str, Any],
    payments: list[dict[str, Any]],
    tz: pytz.BaseTzInfo,
    period: str,
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Render the payments overview PDF.

    Args:
        summary: output of aggregation.summarize
        payments: newest first; only the first MAX_REPORT_ROWS are listed
        tz: zone used for every printed timestamp
        period: human label of the filtered window
    """
    generated_at = (generated_at or datetime.now(pytz.utc)).astimezone(tz)

    output = BytesIO()
    doc = SimpleDocTemplate(
        output, pagesize=A4, rightMargin=30, leftMargin=30, topMargin=30, bottomMargin=18
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=HEADER_COLOR,
        spaceAfter=12,
        alignment=1,
    )
    meta_style = ParagraphStyle("ReportMeta", parent=styles["Normal"], fontSize=9, alignment=1)

    elements = [
        Paragraph("Payments Overview Report", title_style),
        Paragraph(f"Generated: {generated_at.strftime('%d-%m-%Y %I:%M %p %Z')}", meta_style),
        Paragraph(f"Period: {period}", meta_style),
        Spacer(1, 20),
        Paragraph("Summary Statistics", styles["Heading2"]),
    ]
    for line in _summary_lines(summary):
        elements.append(Paragraph(line, styles["Normal"]))
    elements.append(Spacer(1, 20))
    elements.append(Paragraph("Transaction Details", styles["Heading2"]))

    table_data = [TABLE_HEADERS]
    for payment in payments[:MAX_REPORT_ROWS]:
        transaction_date = payment.get("transaction_date")
        table_data.append(
            [
                _short_id(str(payment["uuid"])),
                payment["app_id"],
                f"{as_money(coerce_amount(payment.get('amount'))):.2f}",
                payment.get("pt_status") or "unknown",
                transaction_date.astimezone(tz).strftime("%d-%m-%Y %H:%M") if transaction_date else "",
            ]
        )
    if len(table_data) == 1:
        elements.append(Paragraph("No transactions in this period.", styles["Normal"]))
    else:
        col_width = (A4[0] - 60) / len(TABLE_HEADERS)
        table = Table(table_data, colWidths=[col_width] * len(TABLE_HEADERS), repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, 0), 10),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 1), (-1, -1), 8),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f2f2f2")]),
                ]
            )
        )
        elements.append(table)

    doc.build(elements)
    return output.getvalue()
