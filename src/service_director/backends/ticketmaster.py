"""
service_director/backends/ticketmaster.py

Ticketing backend backed by the Ticketmaster Discovery API v2.

Endpoints have the shape ``{base}/{operation}.json?apikey=...&<filters>``.
"""

from __future__ import annotations

from typing import Final

from ..llm_client import RemoteTextModelClient
from ..settings import DirectorSettings
from .base import BackendSpec, HttpBackend

TICKETMASTER_OPERATIONS: Final[tuple[str, ...]] = (
    "events",
    "attractions",
    "classifications",
    "venues",
    "suggest",
)

TICKETMASTER_INSTRUCTIONS: Final[str] = (
    "You translate a user's request into a single Ticketmaster Discovery API "
    "call.  Do NOT answer the request yourself.\n\n"
    "Output EXACTLY one JSON object and nothing else: no prose, no markdown, "
    "no code fences. It MUST conform to this schema:\n\n"
    '{"action": "<operation>", "params": {"<name>": "<value>"}}\n\n'
    "Valid operations:\n"
    "  events           — search for events (concerts, sports, theatre, ...)\n"
    "  attractions      — search for performers, teams and shows\n"
    "  classifications  — list segments, genres and sub-genres\n"
    "  venues           — search for venues\n"
    "  suggest          — autocomplete across events, attractions and venues\n\n"
    "Useful params (all values are strings, omit what the user did not ask for):\n"
    "  keyword, city, stateCode, countryCode, postalCode, radius, unit, "
    "classificationName, segmentName, genreId, venueId, attractionId, "
    "startDateTime, endDateTime, size, sort, locale\n\n"
    "Formatting rules:\n"
    "  startDateTime / endDateTime — UTC in the form YYYY-MM-DDTHH:mm:ssZ, "
    "e.g. 2024-07-01T00:00:00Z.  Never send a bare date.\n"
    "  countryCode — ISO 3166-1 alpha-2 (US, GB, ...).\n"
    "  stateCode   — two-letter state or province code.\n"
    "  size        — number of results, at most 20.\n"
    "  sort        — one of date,asc | date,desc | relevance,desc | name,asc.\n"
    "Never include an apikey parameter."
)


def build_ticketmaster_backend(
    settings: DirectorSettings,
    llm: RemoteTextModelClient,
) -> HttpBackend:
    """Build the Ticketing backend from settings.

    Raises:
        ConfigurationError: If ``TICKETMASTER_API_KEY`` is not set.
    """
    spec = BackendSpec(
        name="Ticketing",
        base_url=settings.ticketmaster_base_url,
        credential=settings.ticketmaster_api_key,
        instructions=TICKETMASTER_INSTRUCTIONS,
        operations=TICKETMASTER_OPERATIONS,
        credential_param="apikey",
        path_suffix=".json",
        timeout=settings.backend_timeout,
    )
    return HttpBackend(spec, llm)
