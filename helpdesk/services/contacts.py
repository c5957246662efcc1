"""
Helpdesk Contact Service

Directory used to autofill requester details from a phone extension.

Bulk import accepts pasted spreadsheet rows:
    department, name, extension
separated by comma, tab, semicolon or runs of 2+ spaces.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import TypeAdapter

from ..defaults import default_contacts
from ..logging_utils import get_logger
from ..models.ticket import Contact
from .collections import SyncedCollection

logger = get_logger(__name__)

_contacts_adapter = TypeAdapter(List[Contact])


def normalize_contacts(data) -> list:
    return _contacts_adapter.dump_python(_contacts_adapter.validate_python(data), mode="json")


_DELIMITERS = re.compile(r"[,\t;]|\s{2,}")
_HEADER_WORDS = ("department", "dept", "name", "extension", "ext", "單位", "姓名", "分機", "部門")


class ContactError(Exception):
    """Raised when directory operations fail."""
    pass


class ContactNotFoundError(ContactError):
    pass


@dataclass
class ImportResult:
    """Outcome of parsing pasted contact rows."""
    contacts: List[Contact] = field(default_factory=list)
    skipped: int = 0


def _split_row(line: str) -> List[str]:
    parts = [p.strip() for p in _DELIMITERS.split(line) if p.strip()]
    if len(parts) < 3:
        space_parts = line.split()
        if len(space_parts) >= 3:
            parts = space_parts
    return parts


def _looks_like_header(line: str) -> bool:
    lowered = line.lower()
    return any(word in lowered for word in _HEADER_WORDS)


def parse_contact_import(text: str) -> ImportResult:
    """
    Parse pasted rows into new contacts.

    Blank lines are ignored, a header on the first line is skipped,
    rows with fewer than three columns are counted in ``skipped``.
    """
    result = ImportResult()
    lines = [line.strip() for line in text.splitlines() if line.strip()]

    for index, line in enumerate(lines):
        if index == 0 and _looks_like_header(line):
            continue

        parts = _split_row(line)
        if len(parts) < 3:
            logger.warning("import line %d skipped, not enough columns: %r", index + 1, line)
            result.skipped += 1
            continue

        result.contacts.append(Contact(
            department=parts[0],
            name=parts[1],
            extension=parts[2],
        ))

    return result


class ContactService:

    def __init__(self, collection: SyncedCollection):
        self.collection = collection

    async def list(self) -> List[Contact]:
        return _contacts_adapter.validate_python(await self.collection.load())

    async def _save(self, contacts: List[Contact]) -> None:
        await self.collection.replace(_contacts_adapter.dump_python(contacts, mode="json"))

    async def replace(self, contacts: List[Contact]) -> List[Contact]:
        async with self.collection.lock:
            await self._save(contacts)
        return contacts

    async def lookup_extension(self, extension: str) -> Optional[Contact]:
        """First contact whose extension equals the (trimmed) query."""
        extension = extension.strip()
        if not extension:
            return None
        for contact in await self.list():
            if contact.extension == extension:
                return contact
        return None

    async def search(self, query: str) -> List[Contact]:
        return [
            c for c in await self.list()
            if query in c.name or query in c.department or query in c.extension
        ]

    async def add(self, name: str, department: str, extension: str) -> Contact:
        name, department, extension = name.strip(), department.strip(), extension.strip()
        if not name or not department or not extension:
            raise ContactError("name, department and extension are required")

        contact = Contact(name=name, department=department, extension=extension)
        async with self.collection.lock:
            contacts = await self.list()
            contacts.append(contact)
            await self._save(contacts)
        return contact

    async def update(
        self,
        contact_id: str,
        name: Optional[str] = None,
        department: Optional[str] = None,
        extension: Optional[str] = None
    ) -> Contact:
        changes = {
            key: value.strip()
            for key, value in (("name", name), ("department", department), ("extension", extension))
            if value is not None
        }
        async with self.collection.lock:
            contacts = await self.list()
            for index, contact in enumerate(contacts):
                if contact.id == contact_id:
                    contacts[index] = contact.model_copy(update=changes)
                    await self._save(contacts)
                    return contacts[index]
        raise ContactNotFoundError(f"Contact {contact_id} not found")

    async def remove(self, contact_id: str) -> None:
        async with self.collection.lock:
            contacts = await self.list()
            remaining = [c for c in contacts if c.id != contact_id]
            if len(remaining) == len(contacts):
                raise ContactNotFoundError(f"Contact {contact_id} not found")
            await self._save(remaining)

    async def import_text(self, text: str) -> ImportResult:
        """Parse pasted rows and append them to the directory."""
        result = parse_contact_import(text)
        if not result.contacts:
            raise ContactError(
                "No valid contacts found (expected: department, name, extension)"
            )
        async with self.collection.lock:
            contacts = await self.list()
            contacts.extend(result.contacts)
            await self._save(contacts)
        logger.info("imported %d contacts (%d skipped)", len(result.contacts), result.skipped)
        return result

    async def reset_to_defaults(self) -> List[Contact]:
        return await self.replace(default_contacts())

    async def clear(self) -> None:
        await self.replace([])
