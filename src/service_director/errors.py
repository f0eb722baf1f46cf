"""
service_director/errors.py

Exception taxonomy for the dispatch pipeline.

Only :class:`ClientError` and :class:`ClassificationError` abort a request.
:class:`BackendError` is always caught by the orchestrator and folded into
the failing backend's outcome.
"""

from __future__ import annotations

from enum import StrEnum


class DirectorError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(DirectorError):
    """A component was constructed without a value it cannot work without."""


class ClientError(DirectorError):
    """The inbound request is malformed (e.g. missing prompt)."""


class RemoteCallKind(StrEnum):
    """Failure classes of a text model call."""

    TRANSPORT = "transport"
    STATUS = "non-2xx"
    ENVELOPE = "malformed-envelope"


class RemoteCallError(DirectorError):
    """The text model could not be reached or answered outside its contract."""

    def __init__(self, kind: RemoteCallKind, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind


class ClassificationError(DirectorError):
    """Relevance classification failed; no backend selection is possible."""


class BackendErrorKind(StrEnum):
    """Failure classes of a single backend execution."""

    ACTION_RESOLUTION_FAILED = "action-resolution-failed"
    REMOTE_CALL_FAILED = "remote-call-failed"
    RESPONSE_DECODE_FAILED = "response-decode-failed"


class BackendError(DirectorError):
    """A backend could not produce a result for the prompt."""

    def __init__(self, kind: BackendErrorKind, backend: str, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.backend = backend


class FormattingError(DirectorError):
    """Aggregated backend data could not be turned into activities."""


class UnknownBackendError(ClientError):
    """A request named a backend that is not registered."""
