"""tests/test_cli.py

Tests for the REPL helpers (service_director/cli.py), rendered into a
recording rich console.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from rich.console import Console

from service_director.cli import handle_prompt, render_outcomes
from service_director.errors import ClassificationError, ClientError
from service_director.models import AggregateResponse, BackendOutcome


@pytest.fixture
def console() -> Console:
    return Console(record=True, width=160, color_system=None)


def _orchestrator(result=None, error=None) -> Mock:
    orchestrator = Mock()
    orchestrator.process_prompt.return_value = result
    orchestrator.process_prompt.side_effect = error
    return orchestrator


class TestRenderOutcomes:
    def test_rows(self, console: Console) -> None:
        aggregate = AggregateResponse(
            outcomes=(
                BackendOutcome.success("Ticketing", {"events": ["Jazz Night"]}),
                BackendOutcome.failure("Weather", "applicability below threshold (10)"),
            )
        )
        console.print(render_outcomes(aggregate))
        text = console.export_text()

        assert "Jazz Night" in text
        assert "applicability below threshold (10)" in text
        assert text.index("Ticketing") < text.index("Weather")

    def test_long_data_is_truncated(self, console: Console) -> None:
        aggregate = AggregateResponse(
            outcomes=(BackendOutcome.success("Ticketing", {"blob": "z" * 1000}),)
        )
        console.print(render_outcomes(aggregate))
        assert "z" * 500 not in console.export_text()


class TestHandlePrompt:
    def test_prints_table(self, console: Console) -> None:
        aggregate = AggregateResponse(outcomes=(BackendOutcome.success("Ticketing", {"n": 1}),))
        handle_prompt(console, _orchestrator(result=aggregate), "concert")
        assert "Backend outcomes" in console.export_text()

    def test_client_error(self, console: Console) -> None:
        handle_prompt(console, _orchestrator(error=ClientError("Prompt is required")), "")
        assert "Prompt is required" in console.export_text()

    def test_classification_error(self, console: Console) -> None:
        orchestrator = _orchestrator(error=ClassificationError("not JSON"))
        handle_prompt(console, orchestrator, "concert")
        assert "Failed to analyze the prompt" in console.export_text()

    def test_no_services(self, console: Console) -> None:
        handle_prompt(console, _orchestrator(result=AggregateResponse()), "hello")
        assert "did not name any service" in console.export_text()
