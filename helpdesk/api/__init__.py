"""Helpdesk HTTP / WebSocket API."""

from .app import create_app, build_helpdesk, Helpdesk

__all__ = ["create_app", "build_helpdesk", "Helpdesk"]
