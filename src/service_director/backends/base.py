"""
service_director/backends/base.py

The backend capability and its generic HTTP implementation.

A backend is anything with ``execute(prompt)``.  Most backends share the same
two-phase shape: ask the text model for an ``{action, params}`` pair, then
GET ``{base_url}/{action}{suffix}`` with those params. :class:`HttpBackend`
implements it once and a concrete backend is just a :class:`BackendSpec`:
base URL, credential and the instruction text describing its operations.

Adding a new backend:
    1. Write a ``BackendSpec`` (see ``ticketmaster.py``).
    2. Register ``HttpBackend(spec, llm)`` under a name in ``registry.py``.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import httpx

from ..errors import (
    BackendError,
    BackendErrorKind,
    ConfigurationError,
    RemoteCallError,
    RemoteCallKind,
)
from ..llm_client import RemoteTextModelClient, strip_code_fences
from ..models import BackendAction

logger = logging.getLogger("service-director.backend")


@runtime_checkable
class BackendExecutor(Protocol):
    """Capability every registered backend provides."""

    def execute(self, prompt: str) -> Mapping[str, Any]:
        """Produce structured data for ``prompt`` or raise :class:`BackendError`."""
        ...


@runtime_checkable
class ActionExecutor(Protocol):
    """Optional capability: run an already-resolved action."""

    def execute_action(self, action: BackendAction) -> Mapping[str, Any]:
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class BackendSpec:
    """Everything that distinguishes one HTTP backend from another.

    Attributes:
        name: Registry name, used in logs and errors.
        base_url: Fixed API root; the operation is appended as a path segment.
        credential: API key sent as the ``credential_param`` query parameter.
        instructions: System instruction telling the text model which
            operations and parameters are valid.
        operations: Accepted operation names.
        credential_param: Query parameter name carrying the credential.
        path_suffix: Appended after the operation (e.g. ``.json``).
        timeout: Seconds before the backend API call is abandoned.
        max_output_tokens: Token budget for action resolution.
        temperature: Sampling temperature for action resolution.
    """

    name: str
    base_url: str
    credential: str
    instructions: str
    operations: tuple[str, ...]
    credential_param: str = "apikey"
    path_suffix: str = ""
    timeout: float = 10.0
    max_output_tokens: int = 300
    temperature: float = 0.0


class HttpBackend:
    """Resolve a prompt into a :class:`BackendAction` and run it over HTTP."""

    def __init__(
        self,
        spec: BackendSpec,
        llm: RemoteTextModelClient,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialise the backend.

        Raises:
            ConfigurationError: If ``spec`` has no credential or declares no
                operations.
        """
        if not spec.credential:
            raise ConfigurationError(f"no credential configured for backend {spec.name!r}")
        if not spec.operations:
            raise ConfigurationError(f"backend {spec.name!r} declares no operations")
        self.spec = spec
        self.llm = llm
        self._http = http_client or httpx.Client(timeout=spec.timeout)

    @property
    def name(self) -> str:
        return self.spec.name

    def execute(self, prompt: str) -> Mapping[str, Any]:
        """Resolve ``prompt`` into an action and execute it.

        Raises:
            BackendError: ``action-resolution-failed``, ``remote-call-failed``
                or ``response-decode-failed``.
        """
        action = self.resolve_action(prompt)
        return self.execute_action(action)

    def resolve_action(self, prompt: str) -> BackendAction:
        """Ask the text model which operation and parameters serve ``prompt``.

        Raises:
            BackendError: ``remote-call-failed`` if the text model is
                unreachable, times out or answers non-2xx;
                ``action-resolution-failed`` if its envelope is malformed or
                its answer is not a valid action for this backend.
        """
        try:
            raw = self.llm.complete(
                [self.spec.instructions],
                prompt,
                self.spec.max_output_tokens,
                self.spec.temperature,
            )
        except RemoteCallError as exc:
            kind = (
                BackendErrorKind.ACTION_RESOLUTION_FAILED
                if exc.kind is RemoteCallKind.ENVELOPE
                else BackendErrorKind.REMOTE_CALL_FAILED
            )
            raise self._error(kind, f"text model call failed: {exc}") from exc

        logger.info("[%s] action raw=%r", self.name, raw[:300])
        try:
            parsed: Any = json.loads(strip_code_fences(raw))
        except json.JSONDecodeError as exc:
            raise self._error(
                BackendErrorKind.ACTION_RESOLUTION_FAILED, f"action is not JSON: {exc}"
            ) from exc
        return self._parse_action(parsed)

    def execute_action(self, action: BackendAction) -> Mapping[str, Any]:
        """GET the operation's endpoint and decode the JSON object it returns.

        Raises:
            BackendError: ``action-resolution-failed`` for an unknown
                operation, ``remote-call-failed`` on transport errors,
                timeouts or non-2xx, ``response-decode-failed`` if the body
                is not a JSON object.
        """
        if action.operation not in self.spec.operations:
            raise self._error(
                BackendErrorKind.ACTION_RESOLUTION_FAILED,
                f"unknown operation {action.operation!r}",
            )
        url = f"{self.spec.base_url.rstrip('/')}/{action.operation}{self.spec.path_suffix}"
        params = dict(action.parameters)
        params[self.spec.credential_param] = self.spec.credential

        logger.info(
            "[%s] GET %s params=%s",
            self.name,
            url,
            sorted(k for k in params if k != self.spec.credential_param),
        )
        try:
            response = self._http.get(url, params=params, timeout=self.spec.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._error(
                BackendErrorKind.REMOTE_CALL_FAILED,
                f"{self.name} API returned HTTP {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise self._error(
                BackendErrorKind.REMOTE_CALL_FAILED,
                f"{self.name} API unreachable: {type(exc).__name__}",
            ) from exc

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise self._error(
                BackendErrorKind.RESPONSE_DECODE_FAILED,
                f"{self.name} API response is not valid JSON",
            ) from exc
        if not isinstance(data, dict):
            raise self._error(
                BackendErrorKind.RESPONSE_DECODE_FAILED,
                f"{self.name} API response is a JSON {type(data).__name__}, not an object",
            )
        logger.info("[%s] response keys=%s", self.name, sorted(data)[:10])
        return data

    def _parse_action(self, parsed: Any) -> BackendAction:
        if not isinstance(parsed, dict):
            raise self._error(
                BackendErrorKind.ACTION_RESOLUTION_FAILED, "action must be a JSON object"
            )
        operation = parsed.get("action", parsed.get("operation"))
        if not isinstance(operation, str) or not operation.strip():
            raise self._error(
                BackendErrorKind.ACTION_RESOLUTION_FAILED, "action has no operation name"
            )
        operation = operation.strip()
        if operation not in self.spec.operations:
            raise self._error(
                BackendErrorKind.ACTION_RESOLUTION_FAILED,
                f"unknown operation {operation!r}",
            )

        raw_params = parsed.get("params", parsed.get("parameters")) or {}
        if not isinstance(raw_params, dict):
            raise self._error(
                BackendErrorKind.ACTION_RESOLUTION_FAILED, "action params must be an object"
            )
        params: dict[str, str] = {}
        for key, value in raw_params.items():
            if value is None or key == self.spec.credential_param:
                continue
            if isinstance(value, (dict, list)):
                raise self._error(
                    BackendErrorKind.ACTION_RESOLUTION_FAILED,
                    f"param {key!r} must be a scalar",
                )
            if isinstance(value, bool):
                params[key] = "true" if value else "false"
            else:
                params[key] = str(value)
        return BackendAction(operation=operation, parameters=params)

    def _error(self, kind: BackendErrorKind, message: str) -> BackendError:
        return BackendError(kind, self.name, message)

    def close(self) -> None:
        self._http.close()
