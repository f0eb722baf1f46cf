"""Classify free-text prompts and dispatch them to the relevant backend APIs."""

from .classifier import RelevanceClassifier
from .errors import (
    BackendError,
    BackendErrorKind,
    ClassificationError,
    ClientError,
    ConfigurationError,
    DirectorError,
    FormattingError,
    RemoteCallError,
    RemoteCallKind,
    UnknownBackendError,
)
from .llm_client import RemoteTextModelClient
from .models import AggregateResponse, BackendAction, BackendOutcome, RelevanceScore
from .orchestrator import DispatchOrchestrator, DispatchState, build_orchestrator
from .registry import BackendRegistry

__all__ = [
    "AggregateResponse",
    "BackendAction",
    "BackendError",
    "BackendErrorKind",
    "BackendOutcome",
    "BackendRegistry",
    "ClassificationError",
    "ClientError",
    "ConfigurationError",
    "DirectorError",
    "DispatchOrchestrator",
    "DispatchState",
    "FormattingError",
    "RelevanceClassifier",
    "RelevanceScore",
    "RemoteCallError",
    "RemoteCallKind",
    "RemoteTextModelClient",
    "UnknownBackendError",
    "build_orchestrator",
]
