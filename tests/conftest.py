"""tests/conftest.py

Pytest configuration and shared fixtures for the service-director test suite.

Nothing here touches the network: text model and backend HTTP calls go
through ``httpx.MockTransport`` and backends in orchestrator tests are
in-process fakes that count their calls.
"""

from __future__ import annotations

# Standard Library
import threading
import time
from collections.abc import Callable, Mapping
from typing import Any
from unittest.mock import Mock

# Third-Party Libraries
import httpx
import pytest

# Local Modules
from service_director.errors import BackendError, BackendErrorKind
from service_director.llm_client import RemoteTextModelClient
from service_director.models import RelevanceScore
from service_director.settings import DirectorSettings


def completion_envelope(content: str) -> dict[str, Any]:
    """Wrap ``content`` in an OpenAI chat-completions response body."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


class FakeBackend:
    """In-process backend that records every call.

    Args:
        data: Payload returned on success.
        delay: Seconds to sleep before answering.
        error: Exception raised instead of returning ``data``.
    """

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.data = dict(data) if data is not None else {"ok": True}
        self.delay = delay
        self.error = error
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def execute(self, prompt: str) -> Mapping[str, Any]:
        with self._lock:
            self.prompts.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.data


@pytest.fixture
def settings() -> DirectorSettings:
    """Settings with dummy credentials and no .env lookup."""
    return DirectorSettings(
        _env_file=None,
        openai_api_key="sk-test",
        openai_base_url="https://api.openai.com/v1",
        openai_model="gpt-3.5-turbo",
        ticketmaster_api_key="tm-test",
        ticketmaster_base_url="https://app.ticketmaster.com/discovery/v2",
        applicability_threshold=90,
        advertised_backends=[],
    )


@pytest.fixture
def make_llm() -> Callable[..., RemoteTextModelClient]:
    """Factory building a text model client on top of a mock transport.

    Pass either a handler ``(request) -> httpx.Response`` or a list of
    completion strings returned in order.  Sent requests are appended to the
    ``requests`` attribute of the returned client.
    """

    def _make(
        responses: list[str] | Callable[[httpx.Request], httpx.Response],
    ) -> RemoteTextModelClient:
        sent: list[httpx.Request] = []
        queue = list(responses) if isinstance(responses, list) else None

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            if queue is None:
                return responses(request)  # type: ignore[operator]
            return httpx.Response(200, json=completion_envelope(queue.pop(0)))

        client = RemoteTextModelClient(
            "sk-test",
            base_url="https://llm.test/v1",
            model="test-model",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        client.requests = sent  # type: ignore[attr-defined]
        return client

    return _make


@pytest.fixture
def static_classifier() -> Callable[[list[tuple[str, int]]], Mock]:
    """Factory for a classifier mock returning fixed scores."""

    def _make(scores: list[tuple[str, int]]) -> Mock:
        classifier = Mock()
        classifier.classify.return_value = [
            RelevanceScore(backend=name, applicability=value) for name, value in scores
        ]
        return classifier

    return _make


@pytest.fixture
def failing_backend() -> FakeBackend:
    """Backend whose remote API call always fails."""
    return FakeBackend(
        error=BackendError(
            BackendErrorKind.REMOTE_CALL_FAILED, "Broken", "Broken API returned HTTP 503"
        )
    )


@pytest.fixture
def fake_backend() -> Callable[..., FakeBackend]:
    """Factory for :class:`FakeBackend` instances."""
    return FakeBackend


@pytest.fixture
def envelope() -> Callable[[str], dict[str, Any]]:
    """The chat-completions body builder, for handler-based fakes."""
    return completion_envelope
