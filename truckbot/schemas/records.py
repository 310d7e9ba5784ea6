"""
Pydantic models for records produced by the free-text parser.

Every parse yields exactly one variant of ``ParsedRecord``; the ``kind`` field
is the discriminator.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

RecordKind = Literal["sheet_creation", "repair", "overnight", "overstay"]
StayReportType = Literal["overnight", "overstay"]
TargetSheet = Literal["TRANSIT", "SCT"]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class _SheetEntryBase(_FrozenModel):
    """Fields shared by both backend sheets."""

    truck: str = Field(..., min_length=1, description="Truck registration number.")
    consignor: str
    consignee: str
    destination: str
    bol: str = Field(..., description="Bill of lading number.")
    loading_order: str
    product: str
    comp1: float = 0
    comp2: float = 0
    comp3: float = 0
    comp4: float = 0
    comp5: float = 0
    comp6: float = 0

    def _common_payload(self) -> Dict[str, Any]:
        return {
            "truck": self.truck,
            "consignor": self.consignor,
            "consignee": self.consignee,
            "destination": self.destination,
            "bol": self.bol,
            "loadingOrder": self.loading_order,
            "product": self.product,
            "comp1": self.comp1,
            "comp2": self.comp2,
            "comp3": self.comp3,
            "comp4": self.comp4,
            "comp5": self.comp5,
            "comp6": self.comp6,
        }


class TransitEntry(_SheetEntryBase):
    """Entry destined for the TRANSIT sheet."""

    target_sheet: Literal["TRANSIT"] = "TRANSIT"
    entry_number: str = Field(..., min_length=1)
    permit: Optional[str] = Field(None, description="SSD permit number.")

    @property
    def entry_identifier(self) -> str:
        return self.entry_number

    @property
    def script_action(self) -> str:
        return "createTransitEntry"

    def to_script_payload(self) -> Dict[str, Any]:
        """Serialize using the field names the backend script expects."""
        payload = self._common_payload()
        payload.update(targetSheet=self.target_sheet, tr812=self.entry_number)
        if self.permit:
            payload["permit"] = self.permit
        return payload


class SctEntry(_SheetEntryBase):
    """Entry destined for the SCT sheet."""

    target_sheet: Literal["SCT"] = "SCT"
    entry_note: str = Field(..., min_length=1)
    exit_note: Optional[str] = None

    @property
    def entry_identifier(self) -> str:
        return self.entry_note

    @property
    def script_action(self) -> str:
        return "createSCTEntry"

    def to_script_payload(self) -> Dict[str, Any]:
        """Serialize using the field names the backend script expects."""
        payload = self._common_payload()
        payload.update(targetSheet=self.target_sheet, entryNote=self.entry_note)
        if self.exit_note:
            payload["exitNote"] = self.exit_note
        return payload


SheetEntry = Annotated[
    Union[TransitEntry, SctEntry], Field(discriminator="target_sheet")
]


class Greeting(_FrozenModel):
    kind: Literal["greeting"] = "greeting"
    token: str


class Command(_FrozenModel):
    kind: Literal["command"] = "command"
    raw: str

    @property
    def name(self) -> str:
        """Lower-cased command word without the prefix."""
        parts = self.raw[1:].split()
        return parts[0].lower() if parts else ""

    @property
    def args(self) -> List[str]:
        return self.raw[1:].split()[1:]


class SheetCreation(_FrozenModel):
    kind: Literal["sheet_creation"] = "sheet_creation"
    entry: SheetEntry


class StayReportTruck(_FrozenModel):
    registration_number: str
    reason: Optional[str] = None


class StayReport(_FrozenModel):
    """Overnight or overstay notification for one or more trucks."""

    kind: Literal["stay_report"] = "stay_report"
    report_type: StayReportType
    omc_name: str
    email: str
    trucks: List[StayReportTruck] = Field(..., min_length=1)


class RepairReport(_FrozenModel):
    """Maintenance notification for a single truck."""

    kind: Literal["repair_report"] = "repair_report"
    reg_no: str
    driver_name: str
    driver_no: str
    location: str
    email: str
    entry_no: Optional[str] = None
    duration_hours: Literal[24, 48] = 24
    team: str = "Eldoret"


class Incomplete(_FrozenModel):
    """A recognized record with required fields still missing."""

    kind: Literal["incomplete"] = "incomplete"
    record_kind: RecordKind
    missing_fields: List[str] = Field(..., min_length=1)


class ParseError(_FrozenModel):
    kind: Literal["parse_error"] = "parse_error"
    reason: str


ParsedRecord = Annotated[
    Union[
        Greeting,
        Command,
        SheetCreation,
        StayReport,
        RepairReport,
        Incomplete,
        ParseError,
    ],
    Field(discriminator="kind"),
]


class ParseRequest(BaseModel):
    """Diagnostic request body for the parse endpoint."""

    text: str = Field(..., description="Raw message text as a user would send it.")


__all__ = [
    "Command",
    "Greeting",
    "Incomplete",
    "ParseError",
    "ParseRequest",
    "ParsedRecord",
    "RecordKind",
    "RepairReport",
    "SctEntry",
    "SheetCreation",
    "SheetEntry",
    "StayReport",
    "StayReportTruck",
    "StayReportType",
    "TargetSheet",
    "TransitEntry",
]
