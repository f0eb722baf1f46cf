"""
service_director/classifier.py

Relevance classification of a prompt against the known backend services.

The classifier only scores; the orchestrator applies the threshold.  The
model is asked for a score per service and the answer must be a well-formed
list: a single bad entry fails the whole call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Final

from .errors import ClassificationError, RemoteCallError
from .llm_client import RemoteTextModelClient, strip_code_fences
from .models import RelevanceScore

logger = logging.getLogger("service-director.classifier")

_SCHEMA_DESCRIPTION: Final[str] = (
    '[{"service": "<name>", "applicability": <integer 0-100>}]'
)


def build_classifier_instruction(backend_names: Sequence[str]) -> str:
    """Build the system instruction listing every known service.

    Args:
        backend_names: Service names the model may score.

    Returns:
        The instruction text.
    """
    services = ", ".join(json.dumps(name) for name in backend_names)
    return (
        "You are a request-routing classifier. "
        "Rate how applicable each of the following services is to the "
        "user's request.  Do NOT answer the request yourself.\n\n"
        f"Services: [{services}]\n\n"
        "Output EXACTLY one JSON array and nothing else: no prose, no "
        "markdown, no code fences. It MUST conform to this schema:\n\n"
        f"{_SCHEMA_DESCRIPTION}\n\n"
        "Rules:\n"
        "  service        — one of the service names above, spelled exactly.\n"
        "  applicability  — an integer from 0 (irrelevant) to 100 (exactly "
        "what the user asked for).\n"
        "Include every service exactly once, most applicable first."
    )


class RelevanceClassifier:
    """Score every known backend's applicability to a prompt."""

    def __init__(
        self,
        llm: RemoteTextModelClient,
        backend_names: Sequence[str],
        *,
        max_output_tokens: int = 300,
        temperature: float = 0.5,
    ) -> None:
        self.llm = llm
        self.backend_names: tuple[str, ...] = tuple(backend_names)
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self._instruction = build_classifier_instruction(self.backend_names)

    def classify(self, prompt: str) -> list[RelevanceScore]:
        """Return the model's ranking of every service, unfiltered.

        Args:
            prompt: The user's free-text request.

        Returns:
            Scores in the order the model produced them.

        Raises:
            ClassificationError: If the model call fails or its answer does
                not parse as a list of ``{service, applicability}`` entries.
        """
        try:
            raw = self.llm.complete(
                [self._instruction],
                prompt,
                self.max_output_tokens,
                self.temperature,
            )
        except RemoteCallError as exc:
            raise ClassificationError(f"classifier call failed: {exc}") from exc

        logger.info("[classifier] raw=%r", raw[:300])
        scores = parse_scores(raw)
        logger.info(
            "[classifier] %s",
            ", ".join(f"{s.backend}={s.applicability}" for s in scores) or "no services",
        )
        return scores


def parse_scores(raw: str) -> list[RelevanceScore]:
    """Parse classifier output strictly.

    Args:
        raw: Model output, optionally wrapped in a Markdown code fence.

    Returns:
        One :class:`RelevanceScore` per entry, in input order.

    Raises:
        ClassificationError: On invalid JSON, a non-list top level, or any
            entry without a service name or an integer score in ``0..100``.
    """
    try:
        parsed: Any = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as exc:
        raise ClassificationError(f"classifier output is not JSON: {exc}") from exc
    if not isinstance(parsed, list):
        raise ClassificationError(
            f"classifier output must be a JSON array, got {type(parsed).__name__}"
        )
    return [_parse_entry(index, entry) for index, entry in enumerate(parsed)]


def _parse_entry(index: int, entry: Any) -> RelevanceScore:
    if not isinstance(entry, dict):
        raise ClassificationError(f"entry {index} is not an object")
    # Older prompts asked for "name"; accept both spellings.
    name = entry.get("service", entry.get("name"))
    if not isinstance(name, str) or not name.strip():
        raise ClassificationError(f"entry {index} has no service name")
    return RelevanceScore(
        backend=name.strip(),
        applicability=_parse_applicability(index, entry.get("applicability")),
    )


def _parse_applicability(index: int, value: Any) -> int:
    # bool is an int subclass; true/false is not a score.
    if isinstance(value, bool):
        raise ClassificationError(f"entry {index} applicability is a boolean")
    if isinstance(value, int):
        score = value
    elif isinstance(value, float) and value.is_integer():
        score = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        score = int(value.strip())
    else:
        raise ClassificationError(
            f"entry {index} applicability {value!r} is not an integer"
        )
    if not 0 <= score <= 100:
        raise ClassificationError(f"entry {index} applicability {score} is out of range")
    return score
