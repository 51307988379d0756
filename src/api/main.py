"""
FastAPI host: HTTP surface for the contact monitor and Telegram notification taps.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root (when run from repo root or from Docker)
for path in (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path.cwd() / ".env",
):
    if path.exists():
        load_dotenv(path)
        break

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from contextcrm.application import (
    CheckResult,
    ContactMonitorService,
    MonitorSettings,
    PendingContact,
    PermissionStatus,
)
from contextcrm.domain import AppState, DeviceContact
from contextcrm.infrastructure import (
    AddressBookSnapshotSource,
    AsyncioBackgroundTaskApi,
    InMemoryContactSnapshotSource,
    InMemoryNotificationDispatcher,
    JsonFileKeyValueStore,
    TelegramNotificationDispatcher,
    phone_normalizer,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

SOURCE_MEMORY = "memory"
SOURCE_ADDRESSBOOK = "addressbook"


def _state_file() -> Path:
    """Path for the persisted monitor state (CONTEXT_CRM_STATE_FILE or .context_crm/state.json at repo root)."""
    raw = os.environ.get("CONTEXT_CRM_STATE_FILE", "").strip()
    if raw:
        return Path(raw).resolve()
    root = Path(__file__).resolve().parent.parent.parent
    return root / ".context_crm" / "state.json"


def _get_source():
    kind = os.environ.get("CONTEXT_CRM_CONTACT_SOURCE", SOURCE_MEMORY).strip().lower()
    if kind == SOURCE_MEMORY:
        return InMemoryContactSnapshotSource()
    if kind == SOURCE_ADDRESSBOOK:
        return AddressBookSnapshotSource()
    raise ValueError(
        f"CONTEXT_CRM_CONTACT_SOURCE must be '{SOURCE_MEMORY}' or '{SOURCE_ADDRESSBOOK}', got {kind!r}"
    )


def _get_telegram(storage):
    """Return (bot, dispatcher) when TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are set, else (None, None)."""
    token = os.environ.get("TELEGRAM_BOT_TOKEN", "").strip()
    chat_id = os.environ.get("TELEGRAM_CHAT_ID", "").strip()
    if not token or not chat_id:
        return None, None
    from telegram import Bot

    bot = Bot(token=token)
    return bot, TelegramNotificationDispatcher(bot, chat_id, storage)


def _record_capture(app: FastAPI):
    """Navigation callback: remember the contact the capture screen should open with."""

    def navigate(contact: PendingContact) -> None:
        logger.info("Navigating to ContactCapture with contact %s", contact.id)
        app.state.current_capture = contact

    return navigate


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = MonitorSettings.from_env()
    storage = JsonFileKeyValueStore(_state_file())
    source = _get_source()
    bot, telegram = _get_telegram(storage)
    dispatcher = telegram or InMemoryNotificationDispatcher()
    background_api = AsyncioBackgroundTaskApi(
        deadline_seconds=settings.background_timeout + 5
    )
    service = ContactMonitorService(
        source,
        storage,
        dispatcher,
        background_api,
        settings=settings,
        normalize_phone=phone_normalizer(settings.phone_region),
    )
    app.state.service = service
    app.state.source = source
    app.state.bot = bot
    app.state.telegram = telegram
    app.state.current_capture = None
    service.set_navigation_callback(_record_capture(app))
    if telegram is None:
        logger.info("Telegram not configured; notifications are logged only")
    try:
        await service.resume_if_enabled()
        yield
    finally:
        service.close()
        await background_api.close()


app = FastAPI(title="Context CRM Monitor API", lifespan=lifespan)


def _service(request: Request) -> ContactMonitorService:
    return request.app.state.service


# --- response/request bodies ---


class ContactOut(BaseModel):
    id: str
    name: str
    phone: str = ""
    email: str = ""


class PermissionsOut(BaseModel):
    contacts: bool
    notifications: bool
    granted: bool


class MonitorStateOut(BaseModel):
    enabled: bool
    running: bool
    state: str
    app_state: str
    known_contacts: int
    pending: list[ContactOut]
    backlog: list[ContactOut]


class CheckResultOut(BaseModel):
    new_contact_ids: list[str]
    routed: int
    suppressed: bool
    skipped: bool
    failed: bool


class CaptureOut(BaseModel):
    contact: ContactOut | None = None


class AppStateBody(BaseModel):
    state: AppState


class NotificationResponseBody(BaseModel):
    data: dict


class DeviceContactBody(BaseModel):
    id: str
    name: str | None = None
    phones: list[str] = []
    emails: list[str] = []


def _contact_out(contact: PendingContact) -> ContactOut:
    return ContactOut(**contact.to_payload())


def _permissions_out(status: PermissionStatus) -> PermissionsOut:
    return PermissionsOut(
        contacts=status.contacts,
        notifications=status.notifications,
        granted=status.granted,
    )


def _check_out(result: CheckResult) -> CheckResultOut:
    return CheckResultOut(
        new_contact_ids=result.new_contact_ids,
        routed=result.routed,
        suppressed=result.suppressed,
        skipped=result.skipped,
        failed=result.failed,
    )


# --- REST: health ---


@app.get("/health")
def health():
    return {"status": "ok"}


# --- REST: monitor ---


@app.post("/monitor/permissions")
async def request_permissions(request: Request) -> PermissionsOut:
    return _permissions_out(await _service(request).request_permissions())


@app.post("/monitor/initialize")
async def initialize(request: Request) -> PermissionsOut:
    return _permissions_out(await _service(request).initialize())


@app.post("/monitor/start")
async def start_monitoring(request: Request) -> PermissionsOut:
    """Settings toggle on: initialize, start polling, register the background task."""
    status = await _service(request).set_monitoring_enabled(True)
    return _permissions_out(status)


@app.post("/monitor/stop")
async def stop_monitoring(request: Request):
    await _service(request).set_monitoring_enabled(False)
    return {"enabled": False}


@app.get("/monitor/state")
async def monitor_state(request: Request) -> MonitorStateOut:
    service = _service(request)
    detector = service.detector
    return MonitorStateOut(
        enabled=await service.get_monitoring_state(),
        running=service.is_monitoring,
        state=service.state.value,
        app_state=detector.app_state.value,
        known_contacts=len(detector.known_contact_ids),
        pending=[_contact_out(c) for c in detector.pending],
        backlog=[_contact_out(c) for c in detector.backlog],
    )


@app.post("/monitor/check")
async def check_for_new_contacts(request: Request) -> CheckResultOut:
    return _check_out(await _service(request).check_for_new_contacts())


@app.post("/monitor/test-notification")
async def test_notification(request: Request) -> ContactOut:
    return _contact_out(await _service(request).test_notification())


@app.get("/monitor/background")
async def background_status(request: Request):
    status = await _service(request).background.status()
    return {
        "available": status.available,
        "registered": status.registered,
        "supported": status.supported,
    }


# --- REST: app lifecycle and navigation ---


@app.post("/app-state")
async def change_app_state(body: AppStateBody, request: Request):
    await _service(request).handle_app_state_change(body.state)
    return {"state": body.state.value}


@app.post("/notifications/response")
async def notification_response(body: NotificationResponseBody, request: Request) -> CaptureOut:
    contact = _service(request).handle_notification_response(body.data)
    if contact is None:
        raise HTTPException(status_code=400, detail="Notification carries no contact")
    return CaptureOut(contact=_contact_out(contact))


@app.get("/navigation/current")
async def current_capture(request: Request) -> CaptureOut:
    contact = request.app.state.current_capture
    return CaptureOut(contact=_contact_out(contact) if contact else None)


@app.post("/navigation/dismiss")
async def dismiss_capture(request: Request) -> CaptureOut:
    """User closed the capture screen: clear it and open the next queued contact, if any."""
    request.app.state.current_capture = None
    contact = _service(request).acknowledge_navigation()
    return CaptureOut(contact=_contact_out(contact) if contact else None)


# --- REST: simulated device (in-memory source only) ---


@app.post("/device/contacts", status_code=201)
async def add_device_contact(body: DeviceContactBody, request: Request) -> DeviceContactBody:
    source = request.app.state.source
    if not isinstance(source, InMemoryContactSnapshotSource):
        raise HTTPException(status_code=404, detail="Device contacts are read-only")
    try:
        contact = DeviceContact(
            id=body.id,
            name=body.name,
            phones=tuple(body.phones),
            emails=tuple(body.emails),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    source.add(contact)
    return body


# --- Telegram webhook (notification taps) ---


@app.post("/webhook/telegram")
async def webhook_telegram(request: Request):
    """Handle taps on "Capture context" buttons. Set the Telegram webhook to https://<your-domain>/webhook/telegram"""
    from telegram import Update

    telegram = request.app.state.telegram
    if telegram is None:
        raise HTTPException(status_code=404, detail="Telegram is not configured")
    try:
        body = await request.json()
    except Exception as e:
        logger.warning("Telegram webhook body error: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON") from e
    try:
        update = Update.de_json(body, None)
    except Exception as e:
        logger.warning("Telegram webhook parse error: %s", e)
        raise HTTPException(status_code=400, detail="Invalid update") from e
    if not update or not update.callback_query:
        return {}
    cq = update.callback_query
    data = await telegram.resolve_callback(cq.data)
    bot = request.app.state.bot
    if bot is not None:
        await bot.answer_callback_query(callback_query_id=cq.id)
    if data is None:
        return {}
    contact = _service(request).handle_notification_response(data)
    return {"contact": _contact_out(contact).model_dump() if contact else None}
