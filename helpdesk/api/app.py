"""
Helpdesk API

FastAPI application with:
- Ticket CRUD with conditional (revision-checked) updates
- Engineer roster with an explicit default assignee
- Contact directory, extension lookup, bulk import
- Daily / monthly / summary reports
- WebSocket push of full collections after every write
"""

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    HTTPException,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from ..config import Settings
from ..defaults import default_contacts, default_roster
from ..logging_utils import configure_logging, get_logger
from ..models import (
    AppConfig,
    Contact,
    Engineer,
    EngineerRoster,
    Ticket,
    TicketStatus,
    Urgency,
    utcnow,
)
from ..services import (
    Broadcaster,
    ContactError,
    ContactNotFoundError,
    ContactService,
    EngineerError,
    EngineerNotFoundError,
    EngineerService,
    SyncedCollection,
    TicketConflictError,
    TicketNotFoundError,
    TicketService,
    TicketValidationError,
    daily_report,
    filter_and_sort,
    monthly_report,
    normalize_contacts,
    normalize_roster,
    normalize_tickets,
    search_history,
    summary_stats,
)
from ..services.queue import ALL
from ..services.tickets import dump_tickets
from ..storage import CollectionStore, LocalFileStore, RemoteStore

logger = get_logger(__name__)


# =============================================================================
# SERVICE WIRING
# =============================================================================

@dataclass
class Helpdesk:
    """Everything one server process owns."""
    settings: Settings
    broadcaster: Broadcaster
    remote: Optional[RemoteStore]
    tickets: TicketService
    engineers: EngineerService
    contacts: ContactService

    @property
    def kv_enabled(self) -> bool:
        return self.remote is not None

    @property
    def collections(self) -> List[SyncedCollection]:
        return [
            self.tickets.collection,
            self.engineers.collection,
            self.contacts.collection,
        ]

    async def send_snapshots(self, websocket) -> None:
        """
        Send the current wire form of every collection to one client.

        Each snapshot is read and sent under its collection lock, so a
        concurrent write's broadcast can only arrive after it.
        """
        loaders = (
            (self.tickets.collection, self._tickets_snapshot),
            (self.engineers.collection, self._roster_snapshot),
            (self.contacts.collection, self._contacts_snapshot),
        )
        for collection, load in loaders:
            async with collection.lock:
                await self.broadcaster.send(websocket, collection.event, await load())

    async def _tickets_snapshot(self) -> list:
        return dump_tickets(await self.tickets.list())

    async def _roster_snapshot(self) -> dict:
        return (await self.engineers.get_roster()).model_dump(mode="json")

    async def _contacts_snapshot(self) -> list:
        return [c.model_dump(mode="json") for c in await self.contacts.list()]

    def app_config(self) -> AppConfig:
        return AppConfig(
            app_url=self.settings.app_url,
            shared_app_url=self.settings.shared_app_url,
            version=self.settings.version,
            kv_enabled=self.kv_enabled,
            env=self.settings.env,
            timestamp=int(time.time() * 1000),
        )


def build_helpdesk(settings: Settings, remote: Optional[RemoteStore] = None) -> Helpdesk:
    if remote is None and settings.kv_url:
        remote = RemoteStore.from_url(settings.kv_url, prefix=settings.kv_prefix)

    local = LocalFileStore(settings.data_dir)
    broadcaster = Broadcaster()

    def synced(name, default, validate):
        store = CollectionStore(name, local, remote=remote, default=default, validate=validate)
        return SyncedCollection(name, store, broadcaster)

    engineers = EngineerService(
        synced("engineers", lambda: default_roster().model_dump(mode="json"), normalize_roster)
    )
    contacts = ContactService(
        synced(
            "contacts",
            lambda: [c.model_dump(mode="json") for c in default_contacts()],
            normalize_contacts,
        )
    )
    tickets = TicketService(
        synced("tickets", list, normalize_tickets),
        engineer_service=engineers,
        require_signature=settings.require_signature,
    )

    return Helpdesk(
        settings=settings,
        broadcaster=broadcaster,
        remote=remote,
        tickets=tickets,
        engineers=engineers,
        contacts=contacts,
    )


def get_helpdesk(request: Request) -> Helpdesk:
    return request.app.state.helpdesk


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateTicketRequest(BaseModel):
    name: str
    department: str
    requirement: str
    urgency: Urgency = Urgency.MEDIUM
    phone: str = ""


class UpdateTicketRequest(BaseModel):
    status: Optional[TicketStatus] = None
    process_note: Optional[str] = None
    assigned_engineer: Optional[str] = None
    signature: Optional[str] = None
    revision: Optional[int] = None  # Revision the edit was based on


class AddEngineerRequest(BaseModel):
    name: str


class SetDefaultEngineerRequest(BaseModel):
    engineer_id: Optional[str] = None


class AddContactRequest(BaseModel):
    name: str
    department: str
    extension: str


class UpdateContactRequest(BaseModel):
    name: Optional[str] = None
    department: Optional[str] = None
    extension: Optional[str] = None


class ImportContactsRequest(BaseModel):
    text: str


class ImportContactsResponse(BaseModel):
    imported: int
    skipped: int
    contacts: List[Contact]


router = APIRouter()


# =============================================================================
# HEALTH / CONFIG
# =============================================================================

@router.get("/health")
async def health_check(helpdesk: Helpdesk = Depends(get_helpdesk)):
    return {
        "status": "healthy",
        "service": "helpdesk",
        "version": helpdesk.settings.version
    }


@router.get("/status")
async def server_status(helpdesk: Helpdesk = Depends(get_helpdesk)):
    return {
        "status": "online",
        "version": helpdesk.settings.version,
        "kv_enabled": helpdesk.kv_enabled,
        "time": utcnow().isoformat()
    }


@router.get("/api/config", response_model=AppConfig)
async def app_config(helpdesk: Helpdesk = Depends(get_helpdesk)):
    """
    Client bootstrap config (version, share links).
    """
    return helpdesk.app_config()


# =============================================================================
# TICKET ENDPOINTS
# =============================================================================

@router.get("/api/tickets", response_model=List[Ticket])
async def list_tickets(helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.tickets.list()


@router.post("/api/tickets", response_model=Ticket, status_code=status.HTTP_201_CREATED)
async def create_ticket(request: CreateTicketRequest, helpdesk: Helpdesk = Depends(get_helpdesk)):
    """
    File a new support request.

    id, request_time and PENDING status are assigned server-side.
    """
    return await helpdesk.tickets.create(
        name=request.name,
        department=request.department,
        requirement=request.requirement,
        urgency=request.urgency,
        phone=request.phone,
    )


@router.put("/api/tickets", response_model=List[Ticket])
async def replace_tickets(tickets: List[Ticket], helpdesk: Helpdesk = Depends(get_helpdesk)):
    """
    Collection-replace write. Last writer wins.
    """
    return await helpdesk.tickets.replace(tickets)


@router.get("/api/tickets/queue", response_model=List[Ticket])
async def ticket_queue(
    q: str = "",
    urgency: str = ALL,
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    """
    Work queue: open first, then urgency, then oldest request.
    """
    if urgency != ALL and urgency not in {u.value for u in Urgency}:
        raise HTTPException(status_code=422, detail=f"Unknown urgency: {urgency}")
    return filter_and_sort(await helpdesk.tickets.list(), query=q, urgency=urgency)


@router.get("/api/tickets/history", response_model=List[Ticket])
async def ticket_history(
    q: str = "",
    active_only: bool = False,
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    """
    Progress lookup for requesters. Newest first.
    """
    return search_history(await helpdesk.tickets.list(), query=q, active_only=active_only)


@router.get("/api/tickets/{ticket_id}", response_model=Ticket)
async def get_ticket(ticket_id: str, helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.tickets.get(ticket_id)


@router.put("/api/tickets/{ticket_id}", response_model=Ticket)
async def update_ticket(
    ticket_id: str,
    request: UpdateTicketRequest,
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    """
    Triage or complete a ticket.

    Send the revision you edited to get 409 instead of overwriting a
    concurrent change.
    """
    return await helpdesk.tickets.update(
        ticket_id,
        status=request.status,
        process_note=request.process_note,
        assigned_engineer=request.assigned_engineer,
        signature=request.signature,
        expected_revision=request.revision,
    )


@router.delete("/api/tickets/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(ticket_id: str, helpdesk: Helpdesk = Depends(get_helpdesk)):
    await helpdesk.tickets.delete(ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ENGINEER ENDPOINTS
# =============================================================================

@router.get("/api/engineers", response_model=EngineerRoster)
async def get_engineers(helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.engineers.get_roster()


@router.post("/api/engineers", response_model=EngineerRoster)
async def replace_engineers(roster: EngineerRoster, helpdesk: Helpdesk = Depends(get_helpdesk)):
    """
    Replace the whole roster. Legacy lists with is_default flags are accepted.
    """
    return await helpdesk.engineers.replace_roster(roster)


@router.post("/api/engineers/items", response_model=Engineer, status_code=status.HTTP_201_CREATED)
async def add_engineer(request: AddEngineerRequest, helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.engineers.add(request.name)


@router.delete("/api/engineers/{engineer_id}", response_model=EngineerRoster)
async def remove_engineer(engineer_id: str, helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.engineers.remove(engineer_id)


@router.put("/api/engineers/default", response_model=EngineerRoster)
async def set_default_engineer(
    request: SetDefaultEngineerRequest,
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    return await helpdesk.engineers.set_default(request.engineer_id)


# =============================================================================
# CONTACT ENDPOINTS
# =============================================================================

@router.get("/api/contacts", response_model=List[Contact])
async def list_contacts(q: Optional[str] = None, helpdesk: Helpdesk = Depends(get_helpdesk)):
    if q:
        return await helpdesk.contacts.search(q)
    return await helpdesk.contacts.list()


@router.post("/api/contacts", response_model=List[Contact])
async def replace_contacts(contacts: List[Contact], helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.contacts.replace(contacts)


@router.post("/api/contacts/items", response_model=Contact, status_code=status.HTTP_201_CREATED)
async def add_contact(request: AddContactRequest, helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.contacts.add(request.name, request.department, request.extension)


@router.get("/api/contacts/lookup/{extension}", response_model=Contact)
async def lookup_contact(extension: str, helpdesk: Helpdesk = Depends(get_helpdesk)):
    """
    Autofill requester details from an extension.
    """
    contact = await helpdesk.contacts.lookup_extension(extension)
    if contact is None:
        raise HTTPException(status_code=404, detail=f"No contact with extension {extension}")
    return contact


@router.post("/api/contacts/import", response_model=ImportContactsResponse)
async def import_contacts(request: ImportContactsRequest, helpdesk: Helpdesk = Depends(get_helpdesk)):
    result = await helpdesk.contacts.import_text(request.text)
    return ImportContactsResponse(
        imported=len(result.contacts),
        skipped=result.skipped,
        contacts=result.contacts,
    )


@router.post("/api/contacts/reset", response_model=List[Contact])
async def reset_contacts(helpdesk: Helpdesk = Depends(get_helpdesk)):
    return await helpdesk.contacts.reset_to_defaults()


@router.put("/api/contacts/{contact_id}", response_model=Contact)
async def update_contact(
    contact_id: str,
    request: UpdateContactRequest,
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    return await helpdesk.contacts.update(
        contact_id,
        name=request.name,
        department=request.department,
        extension=request.extension,
    )


@router.delete("/api/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_contact(contact_id: str, helpdesk: Helpdesk = Depends(get_helpdesk)):
    await helpdesk.contacts.remove(contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# REPORT ENDPOINTS
# =============================================================================

@router.get("/api/reports/daily")
async def get_daily_report(
    day: Optional[date] = Query(default=None, alias="date"),
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    """
    Daily report. Defaults to yesterday in the reporting timezone.
    """
    tz = helpdesk.settings.tz
    if day is None:
        day = utcnow().astimezone(tz).date() - timedelta(days=1)
    return daily_report(await helpdesk.tickets.list(), day, tz)


@router.get("/api/reports/monthly")
async def get_monthly_report(
    month: Optional[str] = Query(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    helpdesk: Helpdesk = Depends(get_helpdesk)
):
    """
    Monthly report for YYYY-MM. Defaults to the current month.
    """
    tz = helpdesk.settings.tz
    if month is None:
        now = utcnow().astimezone(tz)
        year, month_number = now.year, now.month
    else:
        year, month_number = (int(part) for part in month.split("-"))
    return monthly_report(await helpdesk.tickets.list(), year, month_number, tz)


@router.get("/api/reports/summary")
async def get_summary(helpdesk: Helpdesk = Depends(get_helpdesk)):
    return summary_stats(await helpdesk.tickets.list(), helpdesk.settings.tz)


# =============================================================================
# REAL-TIME CHANNEL
# =============================================================================

@router.websocket("/ws")
async def sync_channel(websocket: WebSocket):
    """
    Push channel. Every collection is sent on connect, then again after
    each write. Incoming messages are ignored (keepalive only).
    """
    helpdesk: Helpdesk = websocket.app.state.helpdesk
    broadcaster = helpdesk.broadcaster

    await broadcaster.connect(websocket)
    try:
        await helpdesk.send_snapshots(websocket)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(websocket)


# =============================================================================
# APP SETUP
# =============================================================================

def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception):
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


def create_app(settings: Optional[Settings] = None, remote: Optional[RemoteStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    helpdesk = build_helpdesk(settings, remote=remote)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for collection in helpdesk.collections:
            await collection.store.seed()
        logger.info(
            "helpdesk %s ready (remote store %s, data dir %s)",
            settings.version,
            "enabled" if helpdesk.kv_enabled else "disabled",
            settings.data_dir,
        )
        yield
        if helpdesk.remote is not None:
            await helpdesk.remote.close()

    app = FastAPI(
        title="Helpdesk Sync Engine",
        description="IT support tickets with real-time collection sync",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.helpdesk = helpdesk

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def no_cache(request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
        return response

    app.add_exception_handler(TicketNotFoundError, _error_handler(404))
    app.add_exception_handler(TicketConflictError, _error_handler(409))
    app.add_exception_handler(TicketValidationError, _error_handler(422))
    app.add_exception_handler(EngineerError, _error_handler(422))
    app.add_exception_handler(EngineerNotFoundError, _error_handler(404))
    app.add_exception_handler(ContactError, _error_handler(422))
    app.add_exception_handler(ContactNotFoundError, _error_handler(404))

    app.include_router(router)
    return app


# =============================================================================
# RUN
# =============================================================================

def main():
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
