"""
service_director/api.py

FastAPI HTTP interface for the dispatch orchestrator.

Endpoints:
  GET  /health                  — liveness probe
  POST /prompt                  — classify, dispatch and aggregate a prompt
  POST /promptOpenAI            — legacy alias of /prompt
  POST /prompt/activities       — /prompt plus activity extraction
  POST /backends/{name}/actions — run a pre-resolved action on one backend
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import (
    ClassificationError,
    ClientError,
    ConfigurationError,
    FormattingError,
    UnknownBackendError,
)
from .formatter import ActivityFormatter
from .llm_client import build_llm_client
from .models import AggregateResponse, BackendAction, BackendOutcome
from .orchestrator import DispatchOrchestrator, build_orchestrator
from .settings import DirectorSettings, cfg

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logger = logging.getLogger("service-director.api")

# ---------------------------------------------------------------------------
# Thread pool for running the synchronous orchestrator
# ---------------------------------------------------------------------------
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="director")

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class PromptRequest(BaseModel):
    # Optional so a missing prompt reaches the orchestrator and maps to 400.
    prompt: str | None = Field(None, description="The user's free-text request.")


class OutcomeModel(BaseModel):
    backend: str
    data: dict[str, Any] | None = None
    error: str | None = None


class DispatchResponse(BaseModel):
    outcomes: list[OutcomeModel]


class ActivitiesResponse(DispatchResponse):
    activities: list[dict[str, Any]]
    formatting_error: str | None = None


class ActionRequest(BaseModel):
    operation: str = Field(..., min_length=1, description="Backend operation name.")
    parameters: dict[str, str] = Field(default_factory=dict)


def _outcome_model(outcome: BackendOutcome) -> OutcomeModel:
    return OutcomeModel(**outcome.to_dict())


def _dispatch_response(aggregate: AggregateResponse) -> DispatchResponse:
    return DispatchResponse(outcomes=[_outcome_model(o) for o in aggregate.outcomes])


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    orchestrator: DispatchOrchestrator | None = None,
    formatter: ActivityFormatter | None = None,
    settings: DirectorSettings | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator (tests inject one with fakes).
        formatter: Pre-built activity formatter.
        settings: Configuration used for anything not injected.

    Raises:
        ConfigurationError: If a component has to be built from settings and
            a credential is missing.
    """
    settings = settings or cfg
    # Only components built here are closed on shutdown; injected ones belong
    # to the caller.
    cleanup: list[Callable[[], None]] = []
    if orchestrator is None or formatter is None:
        llm = build_llm_client(settings)
        if orchestrator is None:
            orchestrator = build_orchestrator(settings, llm)
            cleanup.append(orchestrator.close)
        else:
            cleanup.append(llm.close)
        formatter = formatter or ActivityFormatter(llm)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        for close in cleanup:
            close()
        logger.info("Released %d HTTP client group(s)", len(cleanup))

    app = FastAPI(
        lifespan=lifespan,
        title="Service Director",
        version="0.1.0",
        description=(
            "Classify a free-text prompt, call every relevant backend API "
            "concurrently and return one outcome per backend."
        ),
    )
    app.state.orchestrator = orchestrator
    app.state.formatter = formatter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UnknownBackendError)
    async def _unknown_backend(request: Request, exc: UnknownBackendError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ClientError)
    async def _client_error(request: Request, exc: ClientError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ClassificationError)
    async def _classification_error(
        request: Request, exc: ClassificationError
    ) -> JSONResponse:
        logger.error("Error processing prompt: %s", exc)
        return JSONResponse(
            status_code=502, content={"detail": "Failed to analyze the prompt"}
        )

    @app.get("/health", tags=["meta"])
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok", "server": "service-director"}

    @app.post("/prompt", response_model=DispatchResponse, tags=["dispatch"])
    @app.post(
        "/promptOpenAI",
        response_model=DispatchResponse,
        tags=["dispatch"],
        include_in_schema=False,
    )
    async def submit_prompt(body: PromptRequest) -> DispatchResponse:
        """Classify the prompt and return one outcome per backend the classifier named.

        Per-backend failures are reported inside ``outcomes`` and do not
        change the status code.
        """
        aggregate = await _run_blocking(orchestrator.process_prompt, body.prompt)
        return _dispatch_response(aggregate)

    @app.post(
        "/prompt/activities", response_model=ActivitiesResponse, tags=["dispatch"]
    )
    async def submit_prompt_activities(body: PromptRequest) -> ActivitiesResponse:
        """Dispatch the prompt, then extract a flat activity list from the results.

        A formatting failure is reported in ``formatting_error``; the backend
        outcomes are still returned.
        """
        aggregate = await _run_blocking(orchestrator.process_prompt, body.prompt)
        activities: list[dict[str, Any]] = []
        formatting_error: str | None = None
        try:
            activities = await _run_blocking(formatter.format, aggregate.outcomes)
        except FormattingError as exc:
            logger.warning("Activity formatting failed: %s", exc)
            formatting_error = str(exc)
        return ActivitiesResponse(
            outcomes=[_outcome_model(o) for o in aggregate.outcomes],
            activities=activities,
            formatting_error=formatting_error,
        )

    @app.post(
        "/backends/{name}/actions", response_model=OutcomeModel, tags=["dispatch"]
    )
    async def run_backend_action(name: str, body: ActionRequest) -> OutcomeModel:
        """Run an already-resolved ``{operation, parameters}`` on one backend."""
        action = BackendAction(operation=body.operation, parameters=body.parameters)
        outcome = await _run_blocking(orchestrator.run_action, name, action)
        return _outcome_model(outcome)

    return app


async def _run_blocking(func: Any, *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, func, *args)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_api() -> None:
    """Start the FastAPI server via uvicorn.

    Exits with status 1 when a required credential is missing, since no
    request could ever succeed.
    """
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        app = create_app()
    except ConfigurationError as exc:
        logger.critical("Cannot start service-director: %s", exc)
        raise SystemExit(1) from exc

    logger.info("Starting service-director API on %s:%d", cfg.api_host, cfg.api_port)
    uvicorn.run(app, host=cfg.api_host, port=cfg.api_port, log_level="info")


if __name__ == "__main__":
    run_api()
