"""
service_director/orchestrator.py

Dispatch-and-aggregate orchestrator.

Pipeline per request:
  1. RECEIVED     — prompt validated (empty prompt never enters the machine).
  2. CLASSIFYING  — one classifier call scores every known backend.
  3. DISPATCHING  — scores below the threshold and unregistered names get an
                    error outcome immediately; every other backend gets one
                    task on a thread pool.
  4. AWAITING     — full join on every launched task.  One backend failing
                    never cancels or affects its siblings.
  5. AGGREGATED   — outcomes reassembled in classifier order, independent of
                    completion order.

Only a missing prompt (:class:`ClientError`) or a classifier failure
(:class:`ClassificationError`) aborts the request.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from enum import StrEnum
from typing import Any

from .backends import ActionExecutor, BackendExecutor
from .classifier import RelevanceClassifier
from .errors import BackendError, ClientError, UnknownBackendError
from .llm_client import RemoteTextModelClient, build_llm_client
from .models import AggregateResponse, BackendAction, BackendOutcome, RelevanceScore
from .registry import BackendRegistry, build_default_registry
from .settings import DirectorSettings

logger = logging.getLogger("service-director.orchestrator")

DEFAULT_THRESHOLD: int = 90


class DispatchState(StrEnum):
    """Lifecycle of one request, in order."""

    RECEIVED = "received"
    CLASSIFYING = "classifying"
    DISPATCHING = "dispatching"
    AWAITING = "awaiting"
    AGGREGATED = "aggregated"


_STATE_ORDER: tuple[DispatchState, ...] = tuple(DispatchState)


@dataclasses.dataclass
class DispatchRun:
    """Per-request bookkeeping; moves strictly forward through the states."""

    prompt: str
    request_id: str = dataclasses.field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: DispatchState = DispatchState.RECEIVED

    def advance(self, state: DispatchState) -> None:
        current = _STATE_ORDER.index(self.state)
        if _STATE_ORDER.index(state) != current + 1:
            raise RuntimeError(
                f"request {self.request_id}: illegal transition {self.state} -> {state}"
            )
        logger.info("[%s] %s -> %s", self.request_id, self.state, state)
        self.state = state


class DispatchOrchestrator:
    """Classify a prompt, fan out to relevant backends, aggregate the results."""

    def __init__(
        self,
        classifier: RelevanceClassifier,
        registry: BackendRegistry,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        max_workers: int | None = None,
    ) -> None:
        """Initialise the orchestrator.

        Args:
            classifier: Anything with ``classify(prompt) -> list[RelevanceScore]``.
            registry: Read-only name → backend mapping.
            threshold: Minimum applicability (inclusive) for a backend to run.
            max_workers: Upper bound on concurrently running backends.  ``None``
                gives every selected backend its own thread.
        """
        if not 0 <= threshold <= 100:
            raise ValueError(f"threshold must be within 0..100, got {threshold}")
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.classifier = classifier
        self.registry = registry
        self.threshold = threshold
        self.max_workers = max_workers

    def process_prompt(self, prompt: str | None) -> AggregateResponse:
        """Run the full pipeline for one prompt.

        Args:
            prompt: The user's free-text request.

        Returns:
            One outcome per distinct service the classifier named, in
            classifier order.

        Raises:
            ClientError: If ``prompt`` is missing or blank.
            ClassificationError: If the classifier fails; no outcomes are
                produced in that case.
        """
        if prompt is None or not prompt.strip():
            raise ClientError("Prompt is required")

        run = DispatchRun(prompt=prompt)
        logger.info("[%s] prompt received: %r", run.request_id, prompt[:200])

        run.advance(DispatchState.CLASSIFYING)
        scores = _unique_by_backend(self.classifier.classify(prompt))

        run.advance(DispatchState.DISPATCHING)
        slots: list[BackendOutcome | None] = [None] * len(scores)
        selected = self._select(run, scores, slots)

        workers = max(1, len(selected))
        if self.max_workers is not None:
            workers = min(self.max_workers, workers)
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="dispatch"
        ) as pool:
            futures: dict[int, Future[BackendOutcome]] = {
                index: pool.submit(self._run_backend, run, name, backend)
                for index, name, backend in selected
            }
            run.advance(DispatchState.AWAITING)
            for index, future in futures.items():
                slots[index] = future.result()

        run.advance(DispatchState.AGGREGATED)
        outcomes = tuple(outcome for outcome in slots if outcome is not None)
        aggregate = AggregateResponse(outcomes=outcomes)
        logger.info(
            "[%s] aggregated %d outcomes (%d succeeded)",
            run.request_id,
            len(outcomes),
            len(aggregate.successes()),
        )
        return aggregate

    def run_action(self, backend_name: str, action: BackendAction) -> BackendOutcome:
        """Execute an already-resolved action on one backend, bypassing classification.

        Raises:
            UnknownBackendError: If ``backend_name`` is not registered.
            ClientError: If the backend cannot run pre-resolved actions.
        """
        backend = self.registry.get(backend_name)
        if backend is None:
            raise UnknownBackendError(f"no backend registered for {backend_name!r}")
        if not isinstance(backend, ActionExecutor):
            raise ClientError(f"backend {backend_name!r} does not accept actions")
        logger.info("[action] %s operation=%s", backend_name, action.operation)
        return _fold(backend_name, lambda: backend.execute_action(action))

    def close(self) -> None:
        """Close the HTTP clients of the registered backends and the classifier."""
        for backend in self.registry.values():
            close = getattr(backend, "close", None)
            if callable(close):
                close()
        llm = getattr(self.classifier, "llm", None)
        if llm is not None:
            llm.close()

    def _select(
        self,
        run: DispatchRun,
        scores: Sequence[RelevanceScore],
        slots: list[BackendOutcome | None],
    ) -> list[tuple[int, str, BackendExecutor]]:
        selected: list[tuple[int, str, BackendExecutor]] = []
        for index, score in enumerate(scores):
            if score.applicability < self.threshold:
                logger.info(
                    "[%s] skipping %s (applicability %d < %d)",
                    run.request_id,
                    score.backend,
                    score.applicability,
                    self.threshold,
                )
                slots[index] = BackendOutcome.failure(
                    score.backend,
                    f"applicability below threshold ({score.applicability})",
                )
                continue

            backend = self.registry.get(score.backend)
            if backend is None:
                logger.warning(
                    "[%s] no backend registered for %r", run.request_id, score.backend
                )
                slots[index] = BackendOutcome.failure(
                    score.backend, f"no backend registered for {score.backend!r}"
                )
                continue

            selected.append((index, score.backend, backend))
        return selected

    def _run_backend(
        self, run: DispatchRun, name: str, backend: BackendExecutor
    ) -> BackendOutcome:
        logger.info("[%s] %s started", run.request_id, name)
        outcome = _fold(name, lambda: backend.execute(run.prompt))
        logger.info(
            "[%s] %s finished (%s)", run.request_id, name, "ok" if outcome.ok else "error"
        )
        return outcome


def _fold(name: str, call: Callable[[], Mapping[str, Any]]) -> BackendOutcome:
    """Run ``call`` and capture its result or failure as an outcome."""
    try:
        data = call()
    except BackendError as exc:
        logger.warning("[dispatch] %s failed: %s", name, exc)
        return BackendOutcome.failure(name, str(exc))
    except Exception as exc:
        logger.error("[dispatch] %s raised unexpectedly: %s", name, exc, exc_info=True)
        return BackendOutcome.failure(name, f"unexpected error: {exc}")
    if not isinstance(data, Mapping):
        return BackendOutcome.failure(
            name, f"backend returned {type(data).__name__}, expected a mapping"
        )
    return BackendOutcome.success(name, data)


def _unique_by_backend(scores: Sequence[RelevanceScore]) -> list[RelevanceScore]:
    # First mention wins; a repeated name must not produce a second outcome.
    seen: set[str] = set()
    unique: list[RelevanceScore] = []
    for score in scores:
        if score.backend in seen:
            logger.warning("Classifier repeated service %r; ignoring", score.backend)
            continue
        seen.add(score.backend)
        unique.append(score)
    return unique


def build_orchestrator(
    settings: DirectorSettings,
    llm: RemoteTextModelClient | None = None,
) -> DispatchOrchestrator:
    """Wire the text model client, registry, classifier and orchestrator.

    Args:
        settings: Runtime configuration.
        llm: Shared text model client; built from ``settings`` when omitted.

    Raises:
        ConfigurationError: If any credential is missing.
    """
    llm = llm or build_llm_client(settings)
    registry = build_default_registry(settings, llm)
    known = list(dict.fromkeys([*registry.names(), *settings.advertised_backends]))
    classifier = RelevanceClassifier(llm, known)
    return DispatchOrchestrator(
        classifier,
        registry,
        threshold=settings.applicability_threshold,
        max_workers=settings.max_workers,
    )
