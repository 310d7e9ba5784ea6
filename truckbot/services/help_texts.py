"""Canned help, menu and format replies."""

from __future__ import annotations

from textwrap import dedent

FORMAT_TYPES = ("repair", "overnight", "overstay", "transit")

MAIN_MENU = dedent(
    """
    Welcome! Here are some commands you can use:
    `/newtruck` - Start a new truck entry wizard.
    `/status <reg_no> [sct]` - Check truck status.
    `/row <row_no> [sct]` - Get details for a specific row.
    `/system` - Check bot system status.
    `/help` - Show detailed help.
    """
).strip()

HELP_MESSAGE = dedent(
    """
    *Welcome to the truck logistics bot!* 🤖

    *How to log a truck for the TRANSIT/SCT sheet:*
    The easiest way is to use the guided wizard:
    ➡️ Type `/newtruck`
    The bot will ask you for each piece of information step-by-step. You can review and edit before submitting!

    *Other commands:*
    - `/format [repair|overnight|overstay|transit]` - Show format instructions for full message entry.
    - `/status <reg_no> [sct]` - Check truck status (add sct for SCT sheet).
    - `/row <row_no> [sct]` - Get details for a specific row (add sct for SCT sheet).
    - `/system` - Check bot system status.
    - `/testpdf` - Generate a sample maintenance report PDF.
    - `/help` - Show this help message.

    *For maintenance reports, send details as a plain message (see `/format repair` for details).*
    """
).strip()

REPAIR_FORMAT = dedent(
    """
    📝 *Maintenance Report Format*

    *Required Fields:*
    ```
    Registration Number
    Driver Name
    Mobile Number
    Location
    [Your Email Address - anywhere in msg]
    ```
    *Optional Fields (Use Labels):*
    ```
    entry: [Entry Number]
    hours: [24 or 48] (default: 24)
    team: [Team Name] (default: Eldoret)
    ```
    Example:
    ```
    KCC492P/ZG1633
    YUSSUF MAALIM
    0722809260
    HASS PETROLEUM ELDORET DEPOT
    driver@company.com
    team: Nairobi
    hours: 48
    ```
    """
).strip()

_STAY_FORMAT = dedent(
    """
    📝 *{title} Report Format*

    *Required Fields (Use Labels):*
    ```
    {kind}: yes
    omc: [Company Name]
    email: [Your Email Address]
    truck: [Registration Number]
    reason: [Reason for {kind}]
    ```
    *Repeat truck/reason for multiple trucks:*
    Example:
    ```
    {kind}: yes
    omc: ABC Logistics
    email: manager@abclogistics.com
    truck: KCC492P
    reason: Mechanical issue
    truck: KDD123X
    reason: Driver rest
    ```
    """
).strip()

TRANSIT_FORMAT = dedent(
    """
    📝 *TRANSIT/SCT Truck Data - Full Message Format*

    *For easier entry, use the `/newtruck` command for a guided wizard.*

    *Required Fields (each on its own line):*
    ```
    create truck: [TRUCK NO]
    Entry: [Entry No for TRANSIT] or Entry Note: [Entry Note for SCT]
    Consignor: [Consignor Name]
    Consignee: [Consignee Name]
    Destination: [Destination]
    Bol: [BOL No]
    Order: [50059360]
    Product: [AGO, PMS, IK, Other]
    Comp 1: [Value]
    Comp 2: [Value]
    Comp 3: [Value]
    Comp 4: [Value]
    Comp 5: [Value]
    Comp 6: [Value]
    Permit: [SSD Permit No.] (optional, only for TRANSIT SSD)
    Exit Note: [Exit Note] (optional, only for SCT)
    ```
    - *For SCT, add "target: SCT" as the last line if not using "Entry Note:".*

    *Example (TRANSIT - Full Message):*
    ```
    create truck: KAA123A
    Entry: 12345
    Consignor: ABC Ltd
    Consignee: XYZ Ltd
    Destination: DRC
    Bol: 67890
    Order: 50059360
    Product: Diesel
    Comp 1: 10000
    Comp 2: 5000
    Comp 3: 0
    Permit: SSD-12345
    ```
    """
).strip()


def format_instructions(report_type: str | None = None) -> str:
    """Return the format guide for ``report_type``; unknown types fall back to repair."""
    kind = (report_type or "repair").lower()
    if kind == "transit":
        return TRANSIT_FORMAT
    if kind in ("overnight", "overstay"):
        return _STAY_FORMAT.format(title=kind.capitalize(), kind=kind)
    return REPAIR_FORMAT


__all__ = [
    "FORMAT_TYPES",
    "HELP_MESSAGE",
    "MAIN_MENU",
    "REPAIR_FORMAT",
    "TRANSIT_FORMAT",
    "format_instructions",
]
