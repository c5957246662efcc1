"""
Helpdesk Sync Engine

IT support ticketing service with:
- Ticket intake, triage and completion sign-off
- Engineer roster with an explicit default assignee
- Contact directory for extension autofill
- Daily / monthly reporting
- Real-time collection sync with a polling fallback
- Remote key-value store mirrored to local JSON files
"""

__version__ = "2.6.0"
