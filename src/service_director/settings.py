"""
service_director/settings.py

Runtime configuration for the service director.

Every value can be supplied as an environment variable (upper-cased field
name) or through a ``.env`` file in the working directory.  Credentials are
optional here so the settings object can always be built; the components that
need a credential refuse to start without one.

Configure via environment variables:
  OPENAI_API_KEY           — credential for the text model endpoint
  OPENAI_BASE_URL          — OpenAI-compatible base URL
  OPENAI_MODEL             — model used for classification and action resolution
  TICKETMASTER_API_KEY     — credential for the Ticketing backend
  APPLICABILITY_THRESHOLD  — minimum score (0-100) for a backend to be called
  API_PORT / EXPRESS_PORT  — HTTP listen port
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DirectorSettings(BaseSettings):
    """Runtime configuration loaded from environment variables / .env file.

    Attributes:
        openai_api_key: Bearer credential for the text model endpoint.
        openai_base_url: OpenAI-compatible base URL (``/chat/completions`` is appended).
        openai_model: Model name sent with every completion request.
        llm_timeout: Seconds before a text model call is abandoned.
        ticketmaster_api_key: Credential for the Ticketing backend.
        ticketmaster_base_url: Base URL of the Ticketmaster Discovery API.
        backend_timeout: Seconds before a backend API call is abandoned.
        applicability_threshold: Minimum relevance score for dispatch.
        max_workers: Upper bound on concurrently executing backends per request.
        advertised_backends: Extra service names offered to the classifier
            that have no registered implementation.
        api_host: Interface the HTTP server binds to.
        api_port: Port the HTTP server listens on.
        log_level: Root log level for the entry points.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_api_key: str = Field("", description="Bearer credential for the text model.")
    openai_base_url: str = Field(
        "https://api.openai.com/v1",
        description="OpenAI-compatible base URL.",
    )
    openai_model: str = Field("gpt-3.5-turbo", description="Text model name.")
    llm_timeout: float = Field(10.0, gt=0, description="Text model call timeout (s).")

    ticketmaster_api_key: str = Field("", description="Ticketmaster API key.")
    ticketmaster_base_url: str = Field(
        "https://app.ticketmaster.com/discovery/v2",
        description="Ticketmaster Discovery API base URL.",
    )
    backend_timeout: float = Field(10.0, gt=0, description="Backend call timeout (s).")

    applicability_threshold: int = Field(
        90,
        ge=0,
        le=100,
        description="Backends scoring below this are not called.",
    )
    # Unset means one thread per selected backend.  A limit makes backends
    # beyond it queue, so their timeouts add up.
    max_workers: int | None = Field(
        None, ge=1, description="Concurrent backends per request (unset: unbounded)."
    )
    advertised_backends: list[str] = Field(
        default_factory=list,
        description=(
            "Additional service names the classifier may score even though "
            "no backend is registered for them."
        ),
    )

    api_host: str = Field("0.0.0.0", description="HTTP bind address.")
    api_port: int = Field(
        8000,
        validation_alias=AliasChoices("api_port", "express_port"),
        description="HTTP listen port.",
    )
    log_level: str = Field("INFO", description="Root log level.")


cfg: DirectorSettings = DirectorSettings()
