"""
service_director/formatter.py

Turn raw backend payloads into a flat list of activities.

Successful outcomes are serialised, trimmed to fit the model's context and
handed to the text model with a fixed field list.  The model's answer is
parsed leniently with respect to wrapping (code fences, a ``json`` tag) but
strictly with respect to structure.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any, Final

from .errors import FormattingError, RemoteCallError
from .llm_client import RemoteTextModelClient, strip_code_fences
from .models import BackendOutcome

logger = logging.getLogger("service-director.formatter")

MAX_PAYLOAD_CHARS: Final[int] = 10_000

ACTIVITY_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("image", "URL or image data for the activity."),
    ("activity_name", "Name or title of the activity."),
    ("time", "Time or duration of the activity (if available)."),
    ("date", "Date of the activity (if available)."),
    ("location", "Location of the activity."),
    ("details", "Key highlights or details about the activity."),
    ("link", "URL to more information about the activity."),
)

_SYSTEM_INSTRUCTION: Final[str] = (
    "You are a data extraction assistant that processes raw JSON data from "
    "multiple services. Extract activities in a standardized format and "
    "output a JSON array of objects and nothing else."
)


class ActivityFormatter:
    """Extract standardised activities from aggregated backend data."""

    def __init__(
        self,
        llm: RemoteTextModelClient,
        *,
        max_output_tokens: int = 1500,
        temperature: float = 0.3,
    ) -> None:
        self.llm = llm
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    def format(self, outcomes: Iterable[BackendOutcome]) -> list[dict[str, Any]]:
        """Return activities extracted from the successful outcomes.

        Args:
            outcomes: Outcomes of one request; failures are ignored.

        Returns:
            A list of activity objects, empty when no backend succeeded.

        Raises:
            FormattingError: If the model call fails or its answer is not a
                JSON array or object of activities.
        """
        combined = [
            {"service": o.backend, "data": dict(o.data)}
            for o in outcomes
            if o.data is not None
        ]
        if not combined:
            logger.info("[formatter] no data provided for combined formatting")
            return []

        try:
            raw = self.llm.complete(
                [_SYSTEM_INSTRUCTION],
                build_format_prompt(combined),
                self.max_output_tokens,
                self.temperature,
            )
        except RemoteCallError as exc:
            raise FormattingError(f"formatter call failed: {exc}") from exc

        activities = parse_activities(raw)
        logger.info("[formatter] extracted %d activities", len(activities))
        return activities


def build_format_prompt(combined: list[dict[str, Any]]) -> str:
    """Serialise the combined data and wrap it in the extraction request."""
    payload = json.dumps(combined, ensure_ascii=False, default=str)
    if len(payload) > MAX_PAYLOAD_CHARS:
        logger.info(
            "[formatter] trimming payload from %d to %d chars",
            len(payload),
            MAX_PAYLOAD_CHARS,
        )
        payload = payload[:MAX_PAYLOAD_CHARS]
    payload = payload.replace("`", "'")
    fields = "\n".join(f"- {name}: {description}" for name, description in ACTIVITY_FIELDS)
    return (
        "Format the following combined raw data into the standardized activity "
        f"format, where these fields make up a json file:\n\n{payload}\n\n"
        f"Extract activities in a standardized format:\n{fields}"
    )


def parse_activities(raw: str) -> list[dict[str, Any]]:
    """Parse the model's activity list.

    Raises:
        FormattingError: If the text is not JSON, or not an array / object of
            activity objects.
    """
    clean = strip_code_fences(raw)
    if clean.lower().startswith("json"):
        clean = clean[4:].lstrip()
    try:
        parsed: Any = json.loads(clean)
    except json.JSONDecodeError as exc:
        raise FormattingError(f"formatter output is not JSON: {exc}") from exc

    if isinstance(parsed, dict):
        values = list(parsed.values())
        if values and not any(isinstance(v, (dict, list)) for v in values):
            # One activity whose fields are all scalars.
            items = [parsed]
        elif len(values) == 1 and isinstance(values[0], list):
            items = values[0]
        else:
            # Activities keyed by name or index.
            items = values
    elif isinstance(parsed, list):
        items = parsed
    else:
        raise FormattingError(
            f"formatter output must be an array or object, got {type(parsed).__name__}"
        )
    if not all(isinstance(item, dict) for item in items):
        raise FormattingError("every activity must be a JSON object")
    return items
