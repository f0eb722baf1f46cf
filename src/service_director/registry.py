"""
service_director/registry.py

Name → backend lookup.

The registry is built once at process start and is read-only afterwards, so
worker threads may read it without locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from .backends import BackendExecutor, build_ticketmaster_backend
from .llm_client import RemoteTextModelClient
from .settings import DirectorSettings

logger = logging.getLogger("service-director.registry")


class BackendRegistry(Mapping[str, BackendExecutor]):
    """Immutable mapping from service name to backend."""

    def __init__(self, backends: Mapping[str, BackendExecutor] | None = None) -> None:
        """
        Args:
            backends: Name → backend pairs.  Copied; later changes to the
                argument are not seen.

        Raises:
            TypeError: If a value does not provide ``execute(prompt)``.
        """
        entries = dict(backends or {})
        for name, backend in entries.items():
            if not isinstance(backend, BackendExecutor):
                raise TypeError(f"backend {name!r} does not implement execute(prompt)")
        self._backends: Mapping[str, BackendExecutor] = MappingProxyType(entries)
        logger.info("Registered backends: %s", list(self._backends) or "none")

    def __getitem__(self, name: str) -> BackendExecutor:
        return self._backends[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._backends)

    def __len__(self) -> int:
        return len(self._backends)

    def names(self) -> list[str]:
        return list(self._backends)


def build_default_registry(
    settings: DirectorSettings,
    llm: RemoteTextModelClient,
) -> BackendRegistry:
    """Register every built-in backend.

    Raises:
        ConfigurationError: If a backend's credential is missing.
    """
    return BackendRegistry(
        {
            "Ticketing": build_ticketmaster_backend(settings, llm),
        }
    )
