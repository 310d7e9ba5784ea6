"""Email bodies, PDF documents and recipient lists for repair and stay reports."""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape
from zoneinfo import ZoneInfo

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from truckbot.schemas import RepairReport, StayReport
from truckbot.utils.markdown import bold
from .message_parser import is_valid_email

logger = logging.getLogger(__name__)

SITE_DETAILS = "Along Uganda Road"
CARGO_TYPE = "WET CARGO"

_PRIMARY = colors.HexColor("#1a237e")
_SECONDARY = colors.HexColor("#0d47a1")
_BORDER = colors.HexColor("#c5cae9")
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class ReportDocument:
    """Everything needed to deliver a report to the user and by email."""

    filename: str
    content: bytes
    subject: str
    body: str
    caption: str


def _now(timezone_name: str, now: Optional[datetime] = None) -> datetime:
    zone = ZoneInfo(timezone_name)
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


def format_report_date(timezone_name: str, now: Optional[datetime] = None) -> str:
    """Long form date such as ``5 March 2025``."""
    moment = _now(timezone_name, now)
    return f"{moment.day} {moment:%B %Y}"


def format_report_timestamp(timezone_name: str, now: Optional[datetime] = None) -> str:
    moment = _now(timezone_name, now)
    return moment.strftime("%d/%m/%Y, %H:%M:%S")


def _safe_filename_part(value: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", value)


def report_title(report_type: str) -> str:
    return report_type[:1].upper() + report_type[1:]


def repair_filename(report: RepairReport) -> str:
    return f"RepairReport-{_safe_filename_part(report.reg_no)}.pdf"


def stay_filename(report: StayReport) -> str:
    return f"{report_title(report.report_type)}Report-{_safe_filename_part(report.omc_name)}.pdf"


def resolve_recipients(email: Optional[str], defaults: Iterable[str]) -> List[str]:
    """Record email first, then defaults; duplicates and invalid addresses dropped."""
    candidates = [email] if email else []
    candidates.extend(defaults)
    recipients: List[str] = []
    for candidate in candidates:
        address = (candidate or "").strip()
        if not is_valid_email(address) or address in recipients:
            continue
        recipients.append(address)
    return recipients


def build_repair_email_body(
    report: RepairReport,
    *,
    timezone_name: str = "Africa/Nairobi",
    now: Optional[datetime] = None,
) -> str:
    entry_info = f"\n• Entry Number: {report.entry_no}" if report.entry_no else ""
    return (
        f"Date: {format_report_date(timezone_name, now)}\n\n"
        f"Dear RRU Team {report.team},\n\n"
        f"TRUCK MAINTENANCE NOTIFICATION - {report.reg_no}\n\n"
        "The truck below has developed a mechanical problem and will be undergoing repairs.\n\n"
        "Vehicle & Driver Details:\n"
        "----------------------\n"
        f"• Registration Number: {report.reg_no}{entry_info}\n"
        f"• Driver's Name: {report.driver_name}\n"
        f"• Mobile Number: {report.driver_no}\n\n"
        "Maintenance Information:\n"
        "---------------------\n"
        f"• Location: {report.location}\n"
        f"• Site Details: {SITE_DETAILS}\n"
        f"• Cargo Type: {CARGO_TYPE}\n"
        f"• Expected Duration: {report.duration_hours} hours\n\n"
        "Thank you for your attention to this matter."
    )


def build_stay_email_body(
    report: StayReport,
    *,
    timezone_name: str = "Africa/Nairobi",
    now: Optional[datetime] = None,
) -> str:
    title_type = report.report_type.upper()
    company = report.omc_name.upper() if report.omc_name else "N/A"
    activity = "spending the night" if report.report_type == "overnight" else "overstaying"
    trucks_list = "\n".join(
        f"• {truck.registration_number} - {truck.reason or 'N/A'}" for truck in report.trucks
    )
    return (
        f"Date: {format_report_date(timezone_name, now)}\n\n"
        f"{title_type} TRUCKS NOTIFICATION\n"
        "---------------------------\n\n"
        f"Company: {company}\n"
        f"Report Type: {title_type} Stay Request\n"
        f"Total Trucks: {len(report.trucks)}\n\n"
        f"The following trucks from {company} will be {activity} at the depot:\n\n"
        f"{trucks_list}\n\n"
        "Contact Information:\n"
        "-----------------\n"
        f"Email: {report.email}\n\n"
        "This is an automated notification. Please contact the company representative "
        "if you need additional information.\n\n"
        "Thank you for your attention to this matter."
    )


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ReportTitle",
            parent=base["Title"],
            fontSize=16,
            textColor=_PRIMARY,
            alignment=TA_CENTER,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        ),
        "subtitle": ParagraphStyle(
            "ReportSubtitle",
            parent=base["Normal"],
            fontSize=13,
            textColor=_SECONDARY,
            alignment=TA_CENTER,
            spaceAfter=12,
            fontName="Helvetica-Bold",
        ),
        "heading": ParagraphStyle(
            "ReportHeading",
            parent=base["Heading2"],
            fontSize=12,
            textColor=_PRIMARY,
            spaceBefore=12,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        ),
        "footer": ParagraphStyle(
            "ReportFooter",
            parent=base["Normal"],
            fontSize=8,
            textColor=colors.grey,
            alignment=TA_CENTER,
            spaceBefore=18,
        ),
    }


def _details_table(rows: Sequence[Tuple[str, str]]) -> Table:
    table = Table([list(row) for row in rows], colWidths=[2 * inch, 4.5 * inch])
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("TEXTCOLOR", (0, 0), (0, -1), _SECONDARY),
                ("BOX", (0, 0), (-1, -1), 0.75, _BORDER),
                ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#fcfcff")),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    return table


def _render(story: list, title: str) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.6 * inch,
        leftMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        title=title,
    )
    doc.build(story)
    content = buffer.getvalue()
    if not content:
        raise RuntimeError("Generated PDF buffer was empty.")
    return content


def render_repair_pdf(
    report: RepairReport,
    *,
    company_name: str,
    timezone_name: str = "Africa/Nairobi",
    now: Optional[datetime] = None,
) -> bytes:
    styles = _styles()
    vehicle_rows = [("Registration Number:", report.reg_no)]
    if report.entry_no:
        vehicle_rows.append(("Entry Number:", report.entry_no))
    vehicle_rows.extend(
        [
            ("Driver's Name:", report.driver_name),
            ("Mobile Number:", report.driver_no),
        ]
    )
    story = [
        Paragraph(escape(company_name), styles["title"]),
        Paragraph("TRUCK MAINTENANCE NOTIFICATION", styles["subtitle"]),
        _details_table(
            [
                ("Date:", format_report_date(timezone_name, now)),
                ("RRU Team:", report.team),
            ]
        ),
        Paragraph("Vehicle &amp; Driver Details", styles["heading"]),
        _details_table(vehicle_rows),
        Paragraph("Maintenance Information", styles["heading"]),
        _details_table(
            [
                ("Location:", report.location),
                ("Site Details:", SITE_DETAILS),
                ("Cargo Type:", CARGO_TYPE),
                ("Duration:", f"{report.duration_hours} hours"),
            ]
        ),
        Paragraph("Contact Information", styles["heading"]),
        _details_table([("Email:", report.email)]),
        Spacer(1, 12),
        Paragraph(
            f"Generated {format_report_timestamp(timezone_name, now)}", styles["footer"]
        ),
    ]
    return _render(story, f"Repair Report {report.reg_no}")


def render_stay_pdf(
    report: StayReport,
    *,
    company_name: str,
    timezone_name: str = "Africa/Nairobi",
    now: Optional[datetime] = None,
) -> bytes:
    styles = _styles()
    truck_rows = [["#", "Registration Number", "Reason"]]
    for index, truck in enumerate(report.trucks, start=1):
        truck_rows.append([str(index), truck.registration_number, truck.reason or "N/A"])
    trucks_table = Table(truck_rows, colWidths=[0.5 * inch, 2.5 * inch, 3.5 * inch])
    trucks_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("BACKGROUND", (0, 0), (-1, 0), _PRIMARY),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("GRID", (0, 0), (-1, -1), 0.5, _BORDER),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5ff")]),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    story = [
        Paragraph(escape(company_name), styles["title"]),
        Paragraph(f"{report.report_type.upper()} TRUCKS NOTIFICATION", styles["subtitle"]),
        Paragraph("Company Information", styles["heading"]),
        _details_table(
            [
                ("Date:", format_report_date(timezone_name, now)),
                ("Company:", report.omc_name.upper()),
                ("Report Type:", f"{report.report_type.upper()} Stay Request"),
                ("Total Trucks:", str(len(report.trucks))),
                ("Email:", report.email),
            ]
        ),
        Paragraph("Truck Details", styles["heading"]),
        trucks_table,
        Spacer(1, 12),
        Paragraph(
            f"Generated {format_report_timestamp(timezone_name, now)}", styles["footer"]
        ),
    ]
    return _render(story, f"{report_title(report.report_type)} Report {report.omc_name}")


def build_repair_document(
    report: RepairReport,
    *,
    company_name: str,
    timezone_name: str = "Africa/Nairobi",
    now: Optional[datetime] = None,
) -> ReportDocument:
    content = render_repair_pdf(
        report, company_name=company_name, timezone_name=timezone_name, now=now
    )
    logger.info("Rendered repair report for %s (%d bytes)", report.reg_no, len(content))
    return ReportDocument(
        filename=repair_filename(report),
        content=content,
        subject=f"Truck Maintenance Notification: {report.reg_no}",
        body=build_repair_email_body(report, timezone_name=timezone_name, now=now),
        caption=f"Maintenance report for {bold(report.reg_no)} generated.",
    )


def build_stay_document(
    report: StayReport,
    *,
    company_name: str,
    timezone_name: str = "Africa/Nairobi",
    now: Optional[datetime] = None,
) -> ReportDocument:
    title = report_title(report.report_type)
    content = render_stay_pdf(
        report, company_name=company_name, timezone_name=timezone_name, now=now
    )
    logger.info("Rendered %s report for %s (%d bytes)", report.report_type, report.omc_name, len(content))
    return ReportDocument(
        filename=stay_filename(report),
        content=content,
        subject=f"{title} Trucks Notification: {report.omc_name}",
        body=build_stay_email_body(report, timezone_name=timezone_name, now=now),
        caption=f"{title} report for {bold(report.omc_name)} generated.",
    )


__all__ = [
    "ReportDocument",
    "build_repair_document",
    "build_repair_email_body",
    "build_stay_document",
    "build_stay_email_body",
    "format_report_date",
    "format_report_timestamp",
    "render_repair_pdf",
    "render_stay_pdf",
    "repair_filename",
    "report_title",
    "resolve_recipients",
    "stay_filename",
]
