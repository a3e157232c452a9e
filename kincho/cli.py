"""Kincho CLI — Typer + Rich terminal interface.

Commands: run, decisions (list/show), config (show/path).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from kincho import __version__
from kincho.cli_display import (
    decision_style,
    render_audit_trail,
    render_record,
    render_result,
)
from kincho.consensus.engine import ConsensusEngine
from kincho.consensus.evaluators import EvaluatorError, ScriptedEvaluators
from kincho.schemas.consensus import ConsensusConfig, ConsensusResult
from kincho.schemas.records import DecisionQuery, PersistenceConfig
from kincho.schemas.scenario import Scenario
from kincho.settings import CONFIG_DIR, load_consensus_config, load_persistence_config

console = Console()

app = typer.Typer(
    name="kincho",
    help="Multi-round consensus for charitable fund allocation requests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

decisions_app = typer.Typer(
    name="decisions",
    help="Query stored decision records.",
    no_args_is_help=True,
)
app.add_typer(decisions_app, name="decisions")

config_app = typer.Typer(
    name="config",
    help="Show configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"kincho {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log engine progress to stderr.",
    ),
) -> None:
    """Kincho — multi-round consensus for fund allocation requests."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# ── Helpers ──────────────────────────────────────────────────────


def _load_consensus_config(config_path: Path | None) -> ConsensusConfig:
    """Load consensus config, exit on error."""
    try:
        return load_consensus_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def _load_persistence_config(config_path: Path | None) -> PersistenceConfig:
    """Load persistence config, exit on error."""
    try:
        return load_persistence_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def _db_exists(path: str) -> bool:
    """True if the database is in-memory or its file already exists."""
    return path == ":memory:" or Path(path).expanduser().exists()


def _load_scenario(path: Path) -> Scenario:
    """Load and validate a scenario file, exit on error."""
    try:
        return Scenario.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        console.print(f"[red]Invalid scenario file:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


# ── kincho run ───────────────────────────────────────────────────


@app.command()
def run(
    scenario_path: Path = typer.Argument(
        ..., help="Scenario JSON with request, fund_state and evaluations",
    ),
    max_rounds: int = typer.Option(None, "--max-rounds", help="Maximum negotiation rounds"),
    threshold: float = typer.Option(None, "--threshold", help="Approval threshold (0-1)"),
    no_escalate: bool = typer.Option(
        False, "--no-escalate", help="Reject instead of escalating on deadlock",
    ),
    min_confidence: float = typer.Option(
        None, "--min-confidence", help="Minimum confidence without review (0-1)",
    ),
    config_path: Path = typer.Option(None, "--config", help="Alternate defaults.toml"),
    no_persist: bool = typer.Option(
        False, "--no-persist", help="Do not store the decision record",
    ),
    db_path: str = typer.Option(None, "--db", help="Decision database path"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    show_audit: bool = typer.Option(False, "--audit", help="Show the audit trail"),
) -> None:
    """Run the consensus process over a scenario file."""
    from kincho.persistence.channel import open_decision_channel

    base = _load_consensus_config(config_path)
    overrides = {
        key: value
        for key, value in {
            "max_rounds": max_rounds,
            "approval_threshold": threshold,
            "escalate_on_deadlock": False if no_escalate else None,
            "min_confidence": min_confidence,
        }.items()
        if value is not None
    }
    try:
        consensus_config = ConsensusConfig.model_validate(
            {**base.model_dump(), **overrides},
        )
    except ValueError as e:
        console.print(f"[red]Invalid option:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    persistence = _load_persistence_config(config_path)
    updates: dict[str, object] = {}
    if no_persist:
        updates["enabled"] = False
    if db_path:
        updates["db_path"] = db_path
    persistence = persistence.model_copy(update=updates)

    scenario = _load_scenario(scenario_path)
    evaluators = ScriptedEvaluators.from_evaluations(scenario.evaluations)

    async def _run() -> ConsensusResult:
        if not persistence.enabled:
            engine = ConsensusEngine(evaluators, config=consensus_config)
            return await engine.run(scenario.request, scenario.fund_state)
        async with open_decision_channel(persistence) as channel:
            engine = ConsensusEngine(evaluators, config=consensus_config, recorder=channel)
            return await engine.run(scenario.request, scenario.fund_state)

    try:
        result = asyncio.run(_run())
    except EvaluatorError as e:
        console.print(f"[red]Evaluator failed:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    render_result(console, result)
    if show_audit:
        console.print()
        render_audit_trail(console, result.audit_trail)


# ── kincho decisions ─────────────────────────────────────────────


@decisions_app.command("list")
def decisions_list(
    limit: int = typer.Option(20, "--limit", "-n", help="Max records to show"),
    decision: str = typer.Option(None, "--decision", help="Filter by decision"),
    user_id: str = typer.Option(None, "--user", help="Filter by user ID"),
    db_path: str = typer.Option(None, "--db", help="Decision database path"),
) -> None:
    """Show recent decision records."""
    from kincho.persistence.database import close_db, init_db
    from kincho.persistence.decisions import DecisionStore

    path = db_path or _load_persistence_config(None).db_path
    query = DecisionQuery(limit=limit, decision=decision, user_id=user_id)
    if not _db_exists(path):
        console.print("[dim]No decision records found.[/dim]")
        return

    async def _list():
        db = await init_db(path)
        try:
            return await DecisionStore(db).list_records(query)
        finally:
            await close_db(db)

    records = asyncio.run(_list())

    if not records:
        console.print("[dim]No decision records found.[/dim]")
        return

    table = Table(title=f"Decision Records ({len(records)} shown)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Request", max_width=24)
    table.add_column("User", max_width=24)
    table.add_column("Decision")
    table.add_column("Confidence", justify="right")
    table.add_column("Rounds", justify="right")
    table.add_column("Created", style="dim")

    for r in records:
        value = r.decision or "unknown"
        table.add_row(
            r.id[:8],
            r.allocation_request_id,
            r.user_id,
            Text(value.upper(), style=decision_style(value)),
            f"{r.importance:.2f}",
            str(r.metadata.get("round_count", "-")),
            r.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@decisions_app.command("show")
def decisions_show(
    record_id: str = typer.Argument(..., help="Record ID or prefix (min 4 chars)"),
    db_path: str = typer.Option(None, "--db", help="Decision database path"),
) -> None:
    """Show one decision record."""
    from kincho.persistence.database import close_db, init_db
    from kincho.persistence.decisions import DecisionStore

    path = db_path or _load_persistence_config(None).db_path
    if not _db_exists(path):
        console.print(f"[red]Decision record not found:[/red] {escape(record_id)}")
        raise typer.Exit(1)

    async def _get():
        db = await init_db(path)
        try:
            return await DecisionStore(db).get_record(record_id)
        finally:
            await close_db(db)

    record = asyncio.run(_get())

    if not record:
        console.print(f"[red]Decision record not found:[/red] {record_id}")
        raise typer.Exit(1) from None

    render_record(console, record)


# ── kincho config ────────────────────────────────────────────────


@config_app.command("show")
def config_show(
    config_path: Path = typer.Option(None, "--config", help="Alternate defaults.toml"),
) -> None:
    """Show the consensus and persistence configuration."""
    consensus = _load_consensus_config(config_path)
    persistence = _load_persistence_config(config_path)

    table = Table(title="Kincho Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Max Rounds", str(consensus.max_rounds))
    table.add_row("Approval Threshold", f"{consensus.approval_threshold:.2f}")
    table.add_row("Escalate On Deadlock", str(consensus.escalate_on_deadlock))
    table.add_row("Min Confidence", f"{consensus.min_confidence:.2f}")
    table.add_row("Vault Address", consensus.vault_address)
    table.add_row("Persist Decisions", str(persistence.enabled))
    table.add_row("Decision DB Path", persistence.db_path)
    table.add_row("Queue Size", str(persistence.queue_size))

    console.print(table)


@config_app.command("path")
def config_path_cmd() -> None:
    """Show the defaults file location."""
    path = CONFIG_DIR / "defaults.toml"
    status = "[green]found[/green]" if path.exists() else "[red]missing[/red]"
    console.print(f"Defaults: {path} {status}")
