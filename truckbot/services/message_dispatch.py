"""Route one inbound chat message to the wizard, a command, or a parsed record."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from truckbot.clients.apps_script import AppsScriptClient, AppsScriptError, AppsScriptResult
from truckbot.clients.mailer import MailDeliveryError, SmtpMailer
from truckbot.core.config import ReportSettings
from truckbot.schemas import (
    Command,
    Greeting,
    Incomplete,
    ParseError,
    RepairReport,
    SheetCreation,
    SheetEntry,
    StayReport,
)
from truckbot.utils.markdown import bold, escape_markdown as md
from .admin_notifier import AdminNotifier
from .entry_wizard import EntryWizard, is_cancel_token
from .help_texts import HELP_MESSAGE, MAIN_MENU, format_instructions
from .message_parser import MessageParser, sanitize_input
from .report_documents import (
    ReportDocument,
    build_repair_document,
    build_stay_document,
    resolve_recipients,
)

logger = logging.getLogger(__name__)

_STATUS_SHORTCUT_RE = re.compile(r"^status\s+([A-Za-z0-9/]+)(\s+sct)?$", re.IGNORECASE)
_ROW_SHORTCUT_RE = re.compile(r"^row\s+(\d+)(\s+sct)?$", re.IGNORECASE)
_NEWTRUCK_SHORTCUT = "newtruck"


@dataclass(frozen=True)
class OutboundDocument:
    filename: str
    content: bytes
    caption: Optional[str] = None


@dataclass
class DispatchResult:
    """Replies and documents to deliver back to the sender, in sending order."""

    outbound: List[Union[str, OutboundDocument]] = field(default_factory=list)

    @property
    def replies(self) -> List[str]:
        return [item for item in self.outbound if isinstance(item, str)]

    @property
    def documents(self) -> List[OutboundDocument]:
        return [item for item in self.outbound if isinstance(item, OutboundDocument)]

    def say(self, text: str) -> None:
        self.outbound.append(text)

    def attach(self, document: OutboundDocument) -> None:
        self.outbound.append(document)


@dataclass
class MessageStats:
    total_requests: int = 0
    successful_emails: int = 0
    failed_emails: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_message_time: Optional[datetime] = None

    def record_message(self) -> None:
        self.total_requests += 1
        self.last_message_time = datetime.now(timezone.utc)

    def uptime(self, now: Optional[datetime] = None) -> str:
        seconds = int(((now or datetime.now(timezone.utc)) - self.start_time).total_seconds())
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m {seconds % 60}s"


def _target_sheet(args: Sequence[str]) -> str:
    return "SCT" if len(args) > 1 and args[1].lower() == "sct" else "TRANSIT"


def _find_key(row: Dict[str, Any], fragment: str) -> Optional[str]:
    return next((key for key in row if fragment in key.lower()), None)


def format_lookup_reply(result: AppsScriptResult, *, action: str) -> str:
    """Summarize backend rows; ``action`` is ``status`` or ``row``."""
    reply = f"{md(result.message)}\n\n"
    for row in result.rows:
        row_number = row.get("ROW_NUMBER", "N/A")
        if action == "status":
            truck_key = _find_key(row, "truck")
            status_key = _find_key(row, "status")
            truck = row.get(truck_key) if truck_key else None
            status = row.get(status_key) if status_key else None
            reply += f"*Row {row_number}:* {md(truck or 'N/A')} - Status: {md(status or 'N/A')}\n"
        else:
            reply += f"*Details for Row {row_number}:*\n"
            for key, value in row.items():
                if key != "ROW_NUMBER" and value not in (None, ""):
                    reply += f"{bold(key + ':')} {md(value)}\n"
    return reply.strip()


class MessageDispatcher:
    """Decide how to answer each message and perform the side effects it needs."""

    def __init__(
        self,
        *,
        parser: MessageParser,
        wizard: EntryWizard,
        apps_script: AppsScriptClient,
        mailer: SmtpMailer,
        notifier: AdminNotifier,
        report_settings: ReportSettings,
        default_recipients: Sequence[str] = (),
        stats: Optional[MessageStats] = None,
    ) -> None:
        self._parser = parser
        self._wizard = wizard
        self._apps_script = apps_script
        self._mailer = mailer
        self._notifier = notifier
        self._report_settings = report_settings
        self._default_recipients = tuple(default_recipients)
        self.stats = stats or MessageStats()

    async def handle(self, user_id: str, text: str | None) -> DispatchResult:
        self.stats.record_message()
        body = sanitize_input(text)
        logger.info("Message from %s: %r", user_id, body[:50])
        result = DispatchResult()
        try:
            await self._route(user_id, body, result)
        except Exception as exc:
            logger.exception("Unhandled error while processing message from %s", user_id)
            result.say("❌ Internal error. Admin notified.")
            await self._notifier.notify(
                f"*Message Handler Error:*\nFrom: {user_id}\nError: {md(exc)}"
            )
        return result

    async def _route(self, user_id: str, body: str, result: DispatchResult) -> None:
        if is_cancel_token(body):
            result.say(self._wizard.cancel(user_id).text)
            return

        if self._wizard.has_session(user_id):
            await self._continue_wizard(user_id, body, result)
            return

        shortcut = self._shortcut_command(body)
        if shortcut is not None:
            await self._handle_command(user_id, shortcut, result)
            return

        record = self._parser.parse(body)
        if isinstance(record, Greeting):
            result.say(MAIN_MENU)
        elif isinstance(record, Command):
            await self._handle_command(user_id, record, result)
        elif isinstance(record, SheetCreation):
            await self._submit_entry(user_id, record.entry, result)
        elif isinstance(record, RepairReport):
            await self._handle_repair(user_id, record, result)
        elif isinstance(record, StayReport):
            await self._handle_stay(user_id, record, result)
        elif isinstance(record, Incomplete):
            result.say(
                f"⚠️ Missing fields: {', '.join(record.missing_fields)}. "
                "Please check the format using /format or use /newtruck for guided entry."
            )
        elif isinstance(record, ParseError):
            result.say(f"❌ Could not process your message: {record.reason}")
        else:
            result.say(
                "❓ Sorry, I couldn't understand that. Send `/help` for available "
                "commands or use `/newtruck` to log a new truck entry."
            )

    @staticmethod
    def _shortcut_command(body: str) -> Optional[Command]:
        text = body.strip()
        status_match = _STATUS_SHORTCUT_RE.match(text)
        if status_match:
            suffix = " sct" if status_match.group(2) else ""
            return Command(raw=f"/status {status_match.group(1)}{suffix}")
        row_match = _ROW_SHORTCUT_RE.match(text)
        if row_match:
            suffix = " sct" if row_match.group(2) else ""
            return Command(raw=f"/row {row_match.group(1)}{suffix}")
        if text.lower() == _NEWTRUCK_SHORTCUT:
            return Command(raw="/newtruck")
        return None

    # -- wizard ---------------------------------------------------------

    async def _continue_wizard(self, user_id: str, body: str, result: DispatchResult) -> None:
        reply = self._wizard.advance(user_id, body)
        if reply.status == "failed":
            result.say(reply.text)
            await self._notifier.notify(f"*Wizard Error:*\n{md(reply.error)}")
            return
        if reply.status == "completed" and reply.entry is not None:
            await self._submit_entry(user_id, reply.entry, result)
            return
        result.say(reply.text)

    # -- commands -------------------------------------------------------

    async def _handle_command(self, user_id: str, command: Command, result: DispatchResult) -> None:
        name, args = command.name, command.args
        logger.info("User %s sent command /%s with args %s", user_id, name, args)

        if name in ("help", "start"):
            result.say(HELP_MESSAGE)
        elif name == "format":
            result.say(format_instructions(args[0] if args else None))
        elif name in ("status", "row"):
            await self._lookup(name, args, result)
        elif name == "newtruck":
            result.say(self._wizard.start(user_id).text)
        elif name == "system":
            result.say(self._system_status())
        elif name == "testpdf":
            await self._sample_pdf(result)
        else:
            result.say(f"❓ Unknown command: /{md(name)}. Send /help for available commands.")

    async def _lookup(self, name: str, args: Sequence[str], result: DispatchResult) -> None:
        if not args:
            usage = "/status <reg_no> [sct]" if name == "status" else "/row <row_no> [sct]"
            result.say(f"Usage: `{usage}`")
            return

        query = args[0]
        sheet = _target_sheet(args)
        subject = f"truck {md(query)}" if name == "status" else f"row {md(query)}"
        result.say(f"🔍 Searching for {subject} in {sheet} sheet...")

        try:
            if name == "status":
                lookup = await self._apps_script.get_truck_status(query, sheet=sheet)
            else:
                lookup = await self._apps_script.get_row_details(query, sheet=sheet)
        except AppsScriptError as exc:
            logger.error("Apps Script lookup /%s %s failed: %s", name, query, exc)
            result.say("❌ Error connecting to Google Sheets. Admin notified.")
            await self._notifier.notify(f"*Google Script Error ({name}):*\n{md(exc)}")
            return

        if lookup.success and lookup.rows:
            result.say(format_lookup_reply(lookup, action=name))
        else:
            result.say(f"⚠️ {md(lookup.message or 'Could not retrieve information.')}")

    async def _sample_pdf(self, result: DispatchResult) -> None:
        result.say("Generating sample PDF...")
        sample = RepairReport(
            reg_no="KXX123X/ZA456",
            driver_name="Test Driver",
            driver_no="0700000000",
            location="Test Location",
            email=self._default_recipients[0] if self._default_recipients else "test@example.com",
            entry_no="T123",
            team="TestTeam",
        )
        try:
            document = await asyncio.to_thread(
                build_repair_document,
                sample,
                company_name=self._report_settings.company_name,
                timezone_name=self._report_settings.timezone,
            )
        except Exception as exc:
            logger.exception("Sample PDF generation failed")
            result.say(f"❌ Failed to generate test PDF: {md(exc)}")
            return
        result.attach(
            OutboundDocument(
                filename="Test-Repair-Report.pdf",
                content=document.content,
                caption="Here is your sample PDF.",
            )
        )

    def _system_status(self) -> str:
        last = self.stats.last_message_time
        last_text = last.strftime("%d/%m/%Y, %H:%M:%S UTC") if last else "N/A"
        return (
            "*System Status:*\n"
            "-----------------\n"
            "✅ Bot is connected.\n"
            f"🕒 Uptime: {self.stats.uptime()}\n"
            f"📊 Total Requests: {self.stats.total_requests}\n"
            f"📧 Emails Sent: {self.stats.successful_emails}\n"
            f"🚫 Emails Failed: {self.stats.failed_emails}\n"
            f"⏰ Last Message: {last_text}"
        )

    # -- sheet submission -----------------------------------------------

    async def _submit_entry(self, user_id: str, entry: SheetEntry, result: DispatchResult) -> None:
        result.say(f"📝 Submitting data for {bold(entry.truck)} to {entry.target_sheet}...")
        try:
            submission = await self._apps_script.create_entry(entry)
        except AppsScriptError as exc:
            logger.error("Submitting %s for %s failed: %s", entry.truck, user_id, exc)
            result.say("❌ Error connecting to Google Sheets to submit data. Admin notified.")
            await self._notifier.notify(
                f"*Google Script Submit Connection Error:*\nUser: {user_id}\n"
                f"Truck: {md(entry.truck)}\nError: {md(exc)}"
            )
            return

        if submission.success:
            result.say(f"✅ Success! {md(submission.message or 'Data submitted to Google Sheet.')}")
            if submission.row_link:
                result.say(f"View entry: {md(submission.row_link)}")
            return

        result.say(
            f"⚠️ Error submitting to Google Sheet: {md(submission.message or 'Unknown error.')}"
        )
        await self._notifier.notify(
            f"*Google Sheet Submit Error:*\nUser: {user_id}\n"
            f"Truck: {md(entry.truck)}\nError: {md(submission.message)}"
        )

    # -- reports --------------------------------------------------------

    async def _handle_repair(self, user_id: str, report: RepairReport, result: DispatchResult) -> None:
        result.say(f"🛠️ Processing maintenance report for {bold(report.reg_no)}...")
        try:
            document = await asyncio.to_thread(
                build_repair_document,
                report,
                company_name=self._report_settings.company_name,
                timezone_name=self._report_settings.timezone,
            )
        except Exception as exc:
            logger.exception("Repair report for %s failed", report.reg_no)
            result.say(
                f"❌ Error processing your maintenance report for {bold(report.reg_no)}. "
                f"Admin notified. {md(exc)}"
            )
            await self._notifier.notify(
                f"*Repair Request Error:*\nReg: {md(report.reg_no)}\nUser: {user_id}\nError: {md(exc)}"
            )
            return

        status = await self._deliver_report(document, report.email, result)
        await self._notifier.notify(
            f"Maintenance report processed for {md(report.reg_no)}. Status: {status}. User: {user_id}"
        )

    async def _handle_stay(self, user_id: str, report: StayReport, result: DispatchResult) -> None:
        title = report.report_type.capitalize()
        result.say(f"Processing *{title} Report* for OMC: {bold(report.omc_name)}...")
        try:
            document = await asyncio.to_thread(
                build_stay_document,
                report,
                company_name=self._report_settings.company_name,
                timezone_name=self._report_settings.timezone,
            )
        except Exception as exc:
            logger.exception("%s report for %s failed", title, report.omc_name)
            result.say(
                f"❌ Error processing your *{title} Report* for {bold(report.omc_name)}. "
                f"Admin notified. {md(exc)}"
            )
            await self._notifier.notify(
                f"*{title} Report Error:*\nOMC: {md(report.omc_name)}\nUser: {user_id}\nError: {md(exc)}"
            )
            return

        await self._deliver_report(document, report.email, result)
        await self._notifier.notify(
            f"{title} report processed for {md(report.omc_name)}. User: {user_id}"
        )

    async def _deliver_report(
        self, document: ReportDocument, email: Optional[str], result: DispatchResult
    ) -> str:
        """Attach the PDF and email it. Returns a short delivery status."""
        result.attach(
            OutboundDocument(
                filename=document.filename,
                content=document.content,
                caption=document.caption,
            )
        )

        recipients = resolve_recipients(email, self._default_recipients)
        if not recipients:
            result.say("⚠️ No valid email recipients found. PDF generated but not emailed.")
            return "no_recipients"

        try:
            await self._mailer.send(
                recipients=recipients,
                subject=document.subject,
                body=document.body,
                attachment=document.content,
                filename=document.filename,
            )
        except MailDeliveryError as exc:
            logger.warning("Email for %s failed: %s", document.filename, exc)
            self.stats.failed_emails += 1
            result.say("⚠️ Failed to send email notification, but PDF was generated.")
            return "email_failed"

        self.stats.successful_emails += 1
        result.say(f"📧 Email with PDF sent to: {md(', '.join(recipients))}")
        return "completed"


__all__ = [
    "DispatchResult",
    "MessageDispatcher",
    "MessageStats",
    "OutboundDocument",
    "format_lookup_reply",
]
