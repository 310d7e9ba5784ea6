try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

from truckbot.schemas import RepairReport, StayReport, StayReportTruck
from truckbot.services.report_documents import (
    build_repair_document,
    build_repair_email_body,
    build_stay_document,
    build_stay_email_body,
    format_report_date,
    repair_filename,
    resolve_recipients,
    stay_filename,
)

# 22:30 UTC is already the next day in Nairobi (UTC+3).
NOW = datetime(2025, 3, 4, 22, 30, tzinfo=timezone.utc)


def _repair(**overrides) -> RepairReport:
    values = dict(
        reg_no="KCC492P/ZG1633",
        driver_name="YUSSUF MAALIM",
        driver_no="0722809260",
        location="HASS PETROLEUM ELDORET DEPOT",
        email="driver@company.com",
    )
    values.update(overrides)
    return RepairReport(**values)


def _stay(report_type: str = "overnight") -> StayReport:
    return StayReport(
        report_type=report_type,
        omc_name="ABC Logistics",
        email="manager@abclogistics.com",
        trucks=[
            StayReportTruck(registration_number="KCC492P", reason="Mechanical issue"),
            StayReportTruck(registration_number="KDD123X", reason="Driver rest"),
        ],
    )


def test_report_date_uses_report_timezone():
    assert format_report_date("Africa/Nairobi", NOW) == "5 March 2025"
    assert format_report_date("UTC", NOW) == "4 March 2025"


def test_repair_email_body():
    body = build_repair_email_body(_repair(entry_no="EN-1", team="Nairobi"), now=NOW)
    assert body.startswith("Date: 5 March 2025\n\nDear RRU Team Nairobi,")
    assert "TRUCK MAINTENANCE NOTIFICATION - KCC492P/ZG1633" in body
    assert "• Entry Number: EN-1" in body
    assert "• Expected Duration: 24 hours" in body


def test_repair_email_body_without_entry_number():
    body = build_repair_email_body(_repair(), now=NOW)
    assert "Entry Number" not in body
    assert "Dear RRU Team Eldoret," in body


def test_stay_email_body():
    body = build_stay_email_body(_stay("overnight"), now=NOW)
    assert "OVERNIGHT TRUCKS NOTIFICATION" in body
    assert "Company: ABC LOGISTICS" in body
    assert "Total Trucks: 2" in body
    assert "will be spending the night at the depot" in body
    assert "• KDD123X - Driver rest" in body

    overstay = build_stay_email_body(_stay("overstay"), now=NOW)
    assert "will be overstaying at the depot" in overstay


def test_filenames_replace_unsafe_characters():
    assert repair_filename(_repair()) == "RepairReport-KCC492P_ZG1633.pdf"
    assert stay_filename(_stay("overstay")) == "OverstayReport-ABC_Logistics.pdf"


def test_repair_document_is_a_pdf():
    document = build_repair_document(
        _repair(entry_no="EN-1"), company_name="Fuel & Freight <Ltd>", now=NOW
    )
    assert document.content.startswith(b"%PDF")
    assert document.filename == "RepairReport-KCC492P_ZG1633.pdf"
    assert document.subject == "Truck Maintenance Notification: KCC492P/ZG1633"
    assert "KCC492P/ZG1633" in document.caption


def test_stay_document_is_a_pdf():
    document = build_stay_document(_stay(), company_name="Truck Bot", now=NOW)
    assert document.content.startswith(b"%PDF")
    assert document.subject == "Overnight Trucks Notification: ABC Logistics"
    assert document.caption == "Overnight report for *ABC Logistics* generated."


def test_resolve_recipients_dedupes_and_validates():
    recipients = resolve_recipients(
        "driver@company.com",
        ["ops@company.com", "driver@company.com", "broken@", " fleet@company.com "],
    )
    assert recipients == ["driver@company.com", "ops@company.com", "fleet@company.com"]
    assert resolve_recipients(None, []) == []
