"""
Helpdesk Sync Client

REST access plus real-time sync for a helpdesk front end (kiosk, tablet,
desk app).

Sync model:
- On connect: fetch tickets, roster, contacts and config
- While connected: apply "<kind>:updated" pushes to the cache
- While disconnected: poll tickets every poll_interval seconds
- New tickets (by id) are reported through on_new_tickets
"""

import json
import threading
from typing import Any, Callable, List, Optional

import httpx
import websocket

from ..logging_utils import get_logger
from ..models.ticket import (
    AppConfig,
    Contact,
    EngineerRoster,
    Ticket,
    TicketStatus,
    Urgency,
)
from .cache import ClientCache, NewTicketNotice

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 15.0


class SyncError(Exception):
    """A client request failed; surface to the user."""
    pass


# =============================================================================
# REST CLIENT
# =============================================================================

class HelpdeskClient:
    """Blocking REST client for the helpdesk API."""

    def __init__(
        self,
        base_url: str,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0
    ):
        self.base_url = base_url.rstrip("/")
        self.http = http or httpx.Client(base_url=self.base_url, timeout=timeout)

    @property
    def ws_url(self) -> str:
        if self.base_url.startswith("https://"):
            return "wss://" + self.base_url[len("https://"):] + "/ws"
        if self.base_url.startswith("http://"):
            return "ws://" + self.base_url[len("http://"):] + "/ws"
        return self.base_url + "/ws"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SyncError(
                f"{method} {path} failed with {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SyncError(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Tickets

    def fetch_tickets(self) -> List[Ticket]:
        return [Ticket.model_validate(t) for t in self._request("GET", "/api/tickets")]

    def create_ticket(
        self,
        name: str,
        department: str,
        requirement: str,
        urgency: Urgency = Urgency.MEDIUM,
        phone: str = ""
    ) -> Ticket:
        payload = {
            "name": name,
            "department": department,
            "requirement": requirement,
            "urgency": urgency.value,
            "phone": phone,
        }
        return Ticket.model_validate(self._request("POST", "/api/tickets", json=payload))

    def update_ticket(
        self,
        ticket_id: str,
        status: Optional[TicketStatus] = None,
        process_note: Optional[str] = None,
        assigned_engineer: Optional[str] = None,
        signature: Optional[str] = None,
        revision: Optional[int] = None
    ) -> Ticket:
        payload = {
            "status": status.value if status else None,
            "process_note": process_note,
            "assigned_engineer": assigned_engineer,
            "signature": signature,
            "revision": revision,
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        return Ticket.model_validate(self._request("PUT", f"/api/tickets/{ticket_id}", json=payload))

    def delete_ticket(self, ticket_id: str) -> None:
        self._request("DELETE", f"/api/tickets/{ticket_id}")

    # Roster / directory

    def fetch_roster(self) -> EngineerRoster:
        return EngineerRoster.model_validate(self._request("GET", "/api/engineers"))

    def save_roster(self, roster: EngineerRoster) -> EngineerRoster:
        data = self._request("POST", "/api/engineers", json=roster.model_dump(mode="json"))
        return EngineerRoster.model_validate(data)

    def fetch_contacts(self) -> List[Contact]:
        return [Contact.model_validate(c) for c in self._request("GET", "/api/contacts")]

    def save_contacts(self, contacts: List[Contact]) -> List[Contact]:
        data = self._request(
            "POST", "/api/contacts", json=[c.model_dump(mode="json") for c in contacts]
        )
        return [Contact.model_validate(c) for c in data]

    def lookup_extension(self, extension: str) -> Optional[Contact]:
        try:
            return Contact.model_validate(
                self._request("GET", f"/api/contacts/lookup/{extension.strip()}")
            )
        except SyncError as exc:
            if isinstance(exc.__cause__, httpx.HTTPStatusError) and exc.__cause__.response.status_code == 404:
                return None
            raise

    def fetch_config(self) -> AppConfig:
        return AppConfig.model_validate(self._request("GET", "/api/config"))

    def close(self) -> None:
        self.http.close()


# =============================================================================
# SYNC AGENT
# =============================================================================

class SyncAgent:
    """
    Keeps a ClientCache in step with the server.

    Two daemon threads:
    - listener: WebSocket push channel (reconnects on its own)
    - poller: fetches tickets while the channel is down
    """

    def __init__(
        self,
        client: HelpdeskClient,
        cache: Optional[ClientCache] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_new_tickets: Optional[Callable[[NewTicketNotice], None]] = None,
        ws_url: Optional[str] = None,
        websocket_factory=websocket.WebSocketApp
    ):
        self.client = client
        self.cache = cache or ClientCache()
        self.poll_interval = poll_interval
        self.on_new_tickets = on_new_tickets
        self.ws_url = ws_url or client.ws_url
        self.websocket_factory = websocket_factory

        self.connected = threading.Event()
        self._stop = threading.Event()
        self._ws = None
        self._threads: List[threading.Thread] = []

    # =========================================================================
    # Sync steps
    # =========================================================================

    def refresh_all(self) -> NewTicketNotice:
        """Fetch every collection plus config (connect / manual sync)."""
        tickets = self.client.fetch_tickets()
        roster = self.client.fetch_roster()
        contacts = self.client.fetch_contacts()
        config = self.client.fetch_config()

        self.cache.replace_roster(roster)
        self.cache.replace_contacts(contacts)
        self.cache.set_config(config)
        return self._notify(self.cache.replace_tickets(tickets))

    def poll_once(self) -> NewTicketNotice:
        return self._notify(self.cache.replace_tickets(self.client.fetch_tickets()))

    def handle_message(self, raw: str) -> NewTicketNotice:
        """Apply one push message: {"event": ..., "data": ...}."""
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("ignoring malformed push message")
            return NewTicketNotice()
        if not isinstance(message, dict) or not message.get("event"):
            logger.warning("ignoring push message without an event")
            return NewTicketNotice()
        event = message["event"]
        try:
            notice = self.cache.apply(event, message.get("data"))
        except ValueError as exc:
            logger.warning("ignoring invalid %s payload: %s", event, exc)
            return NewTicketNotice()
        return self._notify(notice)

    def _notify(self, notice: NewTicketNotice) -> NewTicketNotice:
        if notice and self.on_new_tickets is not None:
            try:
                self.on_new_tickets(notice)
            except Exception:
                logger.exception("new-ticket callback failed")
        return notice

    # =========================================================================
    # WebSocket callbacks
    # =========================================================================

    def _on_open(self, ws) -> None:
        logger.info("connected to %s", self.ws_url)
        self.connected.set()
        try:
            self.refresh_all()
        except SyncError as exc:
            logger.error("initial fetch failed: %s", exc)

    def _on_message(self, ws, message: str) -> None:
        self.handle_message(message)

    def _on_error(self, ws, error) -> None:
        logger.warning("push channel error, falling back to polling: %s", error)
        self.connected.clear()

    def _on_close(self, ws, status_code=None, reason=None) -> None:
        logger.info("push channel closed")
        self.connected.clear()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _listen(self) -> None:
        self._ws = self.websocket_factory(
            self.ws_url,
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )
        if self._stop.is_set():
            return
        self._ws.run_forever(reconnect=5)

    def _poll(self) -> None:
        while not self._stop.wait(self.poll_interval):
            if self.connected.is_set():
                continue
            logger.debug("push channel down, polling tickets")
            try:
                self.poll_once()
            except SyncError as exc:
                logger.error("polling fetch failed: %s", exc)

    def start(self) -> None:
        try:
            self.refresh_all()
        except SyncError as exc:
            logger.error("initial fetch failed: %s", exc)

        for target, name in ((self._listen, "helpdesk-listener"), (self._poll, "helpdesk-poller")):
            thread = threading.Thread(target=target, name=name, daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._ws is not None:
            self._ws.close()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        self.connected.clear()
