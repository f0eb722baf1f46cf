"""
service_director/cli.py

Interactive REPL for the dispatch orchestrator.

Each line typed is dispatched as a prompt and the per-backend outcomes are
printed as a table.  Type ``exit`` to quit.
"""

from __future__ import annotations

import json
import logging

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from .errors import ClassificationError, ClientError, ConfigurationError
from .models import AggregateResponse
from .orchestrator import DispatchOrchestrator, build_orchestrator
from .settings import DirectorSettings

load_dotenv()

logger = logging.getLogger("service-director.cli")

_PREVIEW_CHARS = 160


def render_outcomes(aggregate: AggregateResponse) -> Table:
    """Build a table with one row per backend outcome."""
    table = Table(title="Backend outcomes", show_lines=True)
    table.add_column("Backend", style="bold cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Result")
    for outcome in aggregate.outcomes:
        if outcome.ok:
            preview = json.dumps(outcome.to_dict()["data"], ensure_ascii=False)
            if len(preview) > _PREVIEW_CHARS:
                preview = preview[:_PREVIEW_CHARS] + "…"
            table.add_row(outcome.backend, "[green]ok[/green]", preview)
        else:
            table.add_row(outcome.backend, "[red]error[/red]", outcome.error or "")
    return table


def handle_prompt(
    console: Console, orchestrator: DispatchOrchestrator, prompt: str
) -> None:
    """Dispatch one prompt and print the outcome table or the request-level error."""
    try:
        aggregate = orchestrator.process_prompt(prompt)
    except ClientError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        return
    except ClassificationError as exc:
        logger.error("Classification failed: %s", exc)
        console.print(f"[bold red]Failed to analyze the prompt:[/bold red] {exc}")
        return
    if not aggregate.outcomes:
        console.print("[dim]The classifier did not name any service.[/dim]")
        return
    console.print(render_outcomes(aggregate))


def run() -> None:
    """Interactive REPL entry point."""
    settings = DirectorSettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    console = Console()
    try:
        orchestrator = build_orchestrator(settings)
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise SystemExit(1) from exc

    console.print(
        Panel(
            "[bold cyan]Service Director[/bold cyan]\n"
            f"[dim]Backends: {', '.join(orchestrator.registry.names())}  "
            f"threshold: {orchestrator.threshold}  (type 'exit' to quit)[/dim]",
            border_style="cyan",
        )
    )

    try:
        while True:
            user_input = Prompt.ask("[bold green]Prompt[/bold green]").strip()
            if user_input.lower() in {"exit", "quit", "q"}:
                console.print("[dim]Goodbye.[/dim]")
                break
            if not user_input:
                continue
            handle_prompt(console, orchestrator, user_input)
    finally:
        orchestrator.close()


if __name__ == "__main__":
    run()
