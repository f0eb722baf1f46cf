"""Backend implementations and the capability they share."""

from .base import ActionExecutor, BackendExecutor, BackendSpec, HttpBackend
from .ticketmaster import build_ticketmaster_backend

__all__ = [
    "ActionExecutor",
    "BackendExecutor",
    "BackendSpec",
    "HttpBackend",
    "build_ticketmaster_backend",
]
