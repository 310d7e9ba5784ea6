try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import re
from types import SimpleNamespace

import httpx
import pytest

from truckbot.clients.mailer import MailDeliveryError
from truckbot.clients.telegram import TelegramApiError
from truckbot.core.config import ReportSettings
from truckbot import dependencies
from truckbot.main import app
from truckbot.services.message_dispatch import (
    DispatchResult,
    MessageDispatcher,
    OutboundDocument,
)
from truckbot.services.message_parser import MessageParser

# An underscore that is not backslash-escaped opens an italic entity.
_UNESCAPED_UNDERSCORE_RE = re.compile(r"(?<!\\)_")


class ScriptedDispatcher:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.outbound: list = []

    async def handle(self, user_id, text):
        self.calls.append((user_id, text))
        return DispatchResult(outbound=list(self.outbound))


class RecordingTelegram:
    """Accepts sends the way the Bot API does, rejecting unbalanced Markdown."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple] = []

    async def send_message(self, chat_id, text):
        if self.fail:
            raise TelegramApiError("blocked by user")
        self._check_entities(text)
        self.sent.append(("message", chat_id, text))
        return {}

    async def send_document(self, chat_id, *, filename, content, caption=None):
        if self.fail:
            raise TelegramApiError("blocked by user")
        self._check_entities(caption or "")
        self.sent.append(("document", chat_id, filename, caption))
        return {}

    @staticmethod
    def _check_entities(text):
        if len(_UNESCAPED_UNDERSCORE_RE.findall(text)) % 2:
            raise TelegramApiError("Bad Request: can't parse entities")


class RecordingNotifier:
    def __init__(self) -> None:
        self.alerts: list[str] = []

    async def notify(self, message):
        self.alerts.append(message)
        return True


class RecordingMailer:
    def __init__(self) -> None:
        self.sent = []

    async def send(self, *, recipients, subject, body, attachment=None, filename=None):
        if not recipients:
            raise MailDeliveryError("No recipient address provided.")
        self.sent.append((list(recipients), subject))


class UnusedAppsScript:
    async def get_truck_status(self, query, *, sheet="TRANSIT"):  # pragma: no cover
        raise AssertionError("unexpected lookup")

    async def get_row_details(self, row, *, sheet="TRANSIT"):  # pragma: no cover
        raise AssertionError("unexpected lookup")

    async def create_entry(self, entry):  # pragma: no cover
        raise AssertionError("unexpected submission")


REPAIR_TEXT = "KAA123A\nJOHN DOE\n0711000000\nKISUMU DEPOT\njohn@example.com"


def _update(text, chat_id=42):
    return {
        "update_id": 1,
        "message": {"message_id": 1, "date": 0, "text": text, "chat": {"id": chat_id}},
    }


@pytest.fixture()
def overrides():
    dispatcher = ScriptedDispatcher()
    telegram = RecordingTelegram()
    notifier = RecordingNotifier()
    settings = SimpleNamespace(telegram=SimpleNamespace(webhook_secret="hook-secret"))

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_message_dispatcher: lambda: dispatcher,
            dependencies.get_telegram_client: lambda: telegram,
            dependencies.get_admin_notifier: lambda: notifier,
            dependencies.get_app_settings: lambda: settings,
        }
    )

    yield dispatcher, telegram, notifier

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


@pytest.mark.asyncio
async def test_single_reply_rides_on_webhook_response(overrides, client):
    dispatcher, telegram, _ = overrides
    dispatcher.outbound = ["Welcome!"]

    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "hook-secret"},
        json=_update("hi"),
    )

    assert response.status_code == 200
    assert response.json() == {
        "method": "sendMessage",
        "chat_id": 42,
        "text": "Welcome!",
        "parse_mode": "Markdown",
    }
    assert dispatcher.calls == [("42", "hi")]
    assert telegram.sent == []


@pytest.mark.asyncio
async def test_multiple_outputs_are_sent_in_order(overrides, client):
    dispatcher, telegram, _ = overrides
    dispatcher.outbound = [
        "Processing...",
        OutboundDocument(filename="RepairReport-KAA.pdf", content=b"%PDF-1.4", caption="done"),
        "📧 Email sent",
    ]

    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "hook-secret"},
        json=_update(REPAIR_TEXT),
    )

    assert response.status_code == 200
    assert response.json() == {"status": "sent"}
    assert telegram.sent == [
        ("message", 42, "Processing..."),
        ("document", 42, "RepairReport-KAA.pdf", "done"),
        ("message", 42, "📧 Email sent"),
    ]
    assert dispatcher.calls == [("42", REPAIR_TEXT)]


UNDERSCORE_REPAIR_TEXT = "KAA123A\nJOHN DOE\n0711000000\nKISUMU DEPOT\njohn_doe@example.com"


def _real_dispatcher(wizard, mailer, notifier):
    return MessageDispatcher(
        parser=MessageParser(),
        wizard=wizard,
        apps_script=UnusedAppsScript(),
        mailer=mailer,
        notifier=notifier,
        report_settings=ReportSettings(),
    )


@pytest.mark.asyncio
async def test_delivery_failure_still_acknowledges_update(overrides, client, wizard):
    _, telegram, notifier = overrides
    telegram.fail = True
    mailer = RecordingMailer()
    app.dependency_overrides[dependencies.get_message_dispatcher] = lambda: _real_dispatcher(
        wizard, mailer, notifier
    )

    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "hook-secret"},
        json=_update(REPAIR_TEXT),
    )

    assert response.status_code == 200
    assert response.json() == {"status": "partial"}
    assert len(mailer.sent) == 1
    assert notifier.alerts[-1].startswith("*Reply Delivery Error:*")
    assert "Failed items: 3 of 3" in notifier.alerts[-1]


@pytest.mark.asyncio
async def test_user_text_with_underscores_is_delivered_once(overrides, client, wizard):
    _, telegram, notifier = overrides
    mailer = RecordingMailer()
    dispatcher = _real_dispatcher(wizard, mailer, notifier)
    app.dependency_overrides[dependencies.get_message_dispatcher] = lambda: dispatcher

    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "hook-secret"},
        json=_update(UNDERSCORE_REPAIR_TEXT),
    )

    assert response.status_code == 200
    assert response.json() == {"status": "sent"}
    assert mailer.sent == [
        (["john_doe@example.com"], "Truck Maintenance Notification: KAA123A")
    ]
    assert telegram.sent[-1] == (
        "message",
        42,
        "📧 Email with PDF sent to: john\\_doe@example.com",
    )
    assert not any("Delivery Error" in alert for alert in notifier.alerts)


@pytest.mark.asyncio
async def test_wrong_secret_is_rejected(overrides, client):
    dispatcher, _, _ = overrides
    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "nope"},
        json=_update("hi"),
    )
    assert response.status_code == 403
    assert dispatcher.calls == []


@pytest.mark.asyncio
async def test_updates_without_text_are_ignored(overrides, client):
    dispatcher, _, _ = overrides
    payload = {"update_id": 5, "edited_message": {"message_id": 1, "date": 0, "chat": {"id": 1}}}
    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "hook-secret"},
        json=payload,
    )
    assert response.json() == {"status": "ignored"}

    response = await client.post(
        "/api/integrations/telegram/webhook",
        params={"token": "hook-secret"},
        json=_update("   "),
    )
    assert response.json() == {"status": "ignored"}
    assert dispatcher.calls == []


@pytest.mark.asyncio
async def test_parse_endpoint_returns_tagged_record(client):
    response = await client.post(
        "/api/messages/parse",
        json={"text": "overstay: yes\nomc: ABC\nemail: a@b.co\ntruck: KAA1"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["kind"] == "incomplete"
    assert data["record_kind"] == "overstay"
    assert data["missing_fields"] == ["Truck 1 Reason"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.json() == {"status": "ok"}
