"""
service_director/models.py

Value types passed between the classifier, the backends and the orchestrator.

All of them are frozen: an outcome is produced once by a single backend task
and read once by the aggregator.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any


@dataclasses.dataclass(frozen=True, slots=True)
class RelevanceScore:
    """How applicable one backend is to a prompt.

    Attributes:
        backend: Service name as emitted by the classifier.
        applicability: Integer score in ``0..100``.
    """

    backend: str
    applicability: int


@dataclasses.dataclass(frozen=True, slots=True)
class BackendAction:
    """A structured request derived from free text for one backend.

    Attributes:
        operation: Backend-specific operation name (becomes a URL path segment).
        parameters: Query parameters for the operation.
    """

    operation: str
    parameters: Mapping[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True, slots=True)
class BackendOutcome:
    """Result of one backend for one request.

    Exactly one of ``data`` and ``error`` is set.  Use :meth:`success` and
    :meth:`failure` rather than the constructor.
    """

    backend: str
    data: Mapping[str, Any] | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.error is None):
            raise ValueError(
                f"outcome for {self.backend!r} must carry exactly one of data or error"
            )

    @classmethod
    def success(cls, backend: str, data: Mapping[str, Any]) -> BackendOutcome:
        return cls(backend=backend, data=data)

    @classmethod
    def failure(cls, backend: str, error: str) -> BackendOutcome:
        return cls(backend=backend, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "backend": self.backend,
            "data": dict(self.data) if self.data is not None else None,
            "error": self.error,
        }


@dataclasses.dataclass(frozen=True, slots=True)
class AggregateResponse:
    """Ordered outcomes for one request, in classifier order."""

    outcomes: tuple[BackendOutcome, ...] = ()

    def successes(self) -> list[BackendOutcome]:
        return [o for o in self.outcomes if o.ok]

    def to_dict(self) -> dict[str, Any]:
        return {"outcomes": [o.to_dict() for o in self.outcomes]}
