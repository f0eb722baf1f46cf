"""
service_director/llm_client.py

Thin client for an OpenAI-compatible chat-completions endpoint.

The client exposes a single call type, "given instructions and a prompt,
return free-form text", used both for relevance classification and for
per-backend action resolution.  It keeps no state besides the credential and
the underlying ``httpx.Client``, so one instance is shared by every worker
thread.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

import httpx

from .errors import ConfigurationError, RemoteCallError, RemoteCallKind
from .settings import DirectorSettings

logger = logging.getLogger("service-director.llm")

_FENCE_OPEN: re.Pattern[str] = re.compile(r"^```[a-z]*\s*", re.IGNORECASE)
_FENCE_CLOSE: re.Pattern[str] = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove the Markdown code fence a model may wrap around JSON output.

    Args:
        text: Raw model output.

    Returns:
        The text between the fences, or the stripped input if none are present.
    """
    clean = _FENCE_OPEN.sub("", text.strip())
    return _FENCE_CLOSE.sub("", clean).strip()


class RemoteTextModelClient:
    """Blocking text-completion client with a bounded call duration."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-3.5-turbo",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            api_key: Bearer credential.  Must be non-empty.
            base_url: OpenAI-compatible base URL.
            model: Model name sent with every request.
            timeout: Seconds before a call is abandoned.
            http_client: Pre-built ``httpx.Client`` (tests inject one backed
                by ``httpx.MockTransport``).

        Raises:
            ConfigurationError: If ``api_key`` is empty.
        """
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        self.model = model
        self.completions_url = base_url.rstrip("/") + "/chat/completions"
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._http = http_client or httpx.Client(timeout=timeout)
        self._timeout = timeout

    def complete(
        self,
        system_instructions: Sequence[str],
        user_prompt: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        """Run one completion and return the first choice's message content.

        Args:
            system_instructions: One ``system`` message per entry, in order.
            user_prompt: The ``user`` message.
            max_output_tokens: Upper bound on generated tokens.
            temperature: Sampling temperature.

        Returns:
            The message content, possibly an empty string.

        Raises:
            RemoteCallError: On transport failure or timeout (``transport``),
                a non-2xx status (``non-2xx``), or a response without a
                ``choices[0].message.content`` string (``malformed-envelope``).
        """
        messages: list[dict[str, str]] = [
            {"role": "system", "content": text} for text in system_instructions
        ]
        messages.append({"role": "user", "content": user_prompt})
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_output_tokens,
            "temperature": temperature,
        }

        logger.debug("[llm] model=%r url=%s", self.model, self.completions_url)
        try:
            response = self._http.post(
                self.completions_url,
                json=payload,
                headers=self._headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteCallError(
                RemoteCallKind.STATUS,
                f"text model returned HTTP {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteCallError(
                RemoteCallKind.TRANSPORT, f"text model unreachable: {exc}"
            ) from exc

        try:
            body: Any = response.json()
        except ValueError as exc:
            raise RemoteCallError(
                RemoteCallKind.ENVELOPE, "text model response is not JSON"
            ) from exc
        content = _extract_content(body)
        if content is None:
            raise RemoteCallError(
                RemoteCallKind.ENVELOPE,
                "text model response has no choices[0].message.content",
            )
        logger.debug("[llm] response length=%d chars", len(content))
        return content

    def close(self) -> None:
        self._http.close()


def _extract_content(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


def build_llm_client(settings: DirectorSettings) -> RemoteTextModelClient:
    """Build the shared text model client from settings.

    Raises:
        ConfigurationError: If ``OPENAI_API_KEY`` is not set.
    """
    return RemoteTextModelClient(
        settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        timeout=settings.llm_timeout,
    )
