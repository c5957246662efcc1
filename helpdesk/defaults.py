"""Built-in seed data for the engineer roster and contact directory."""

from typing import List

from .models import Contact, Engineer, EngineerRoster


DEFAULT_ENGINEERS = [
    {"id": "eng-1", "name": "Alex Chen"},
    {"id": "eng-2", "name": "Jordan Lin"},
]

DEFAULT_ENGINEER_ID = "eng-1"

DEFAULT_CONTACTS = [
    {"id": "c-1", "name": "Morgan Wu", "department": "Administration", "extension": "200"},
    {"id": "c-2", "name": "Casey Huang", "department": "Accounting", "extension": "201"},
    {"id": "c-3", "name": "Riley Tsai", "department": "Human Resources", "extension": "202"},
    {"id": "c-4", "name": "Taylor Lee", "department": "Facilities", "extension": "203"},
]


def default_roster() -> EngineerRoster:
    return EngineerRoster(
        engineers=[Engineer(**e) for e in DEFAULT_ENGINEERS],
        default_engineer_id=DEFAULT_ENGINEER_ID,
    )


def default_contacts() -> List[Contact]:
    return [Contact(**c) for c in DEFAULT_CONTACTS]
