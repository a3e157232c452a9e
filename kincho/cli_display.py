"""Rich rendering for consensus results and decision records."""

from __future__ import annotations

from datetime import UTC, datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kincho.consensus.voting import calculate_weighted_vote, overall_sentiment
from kincho.schemas.consensus import (
    AuditEntry,
    ConsensusResult,
    NegotiationRound,
    SubagentId,
)
from kincho.schemas.records import DecisionRecord

_DECISION_STYLE = {
    "approved": "bold green",
    "modified": "bold cyan",
    "rejected": "bold red",
    "escalated": "bold yellow",
}

_VOTE_STYLE = {
    "approve": "green",
    "modify": "cyan",
    "reject": "red",
}


def decision_style(decision: str) -> str:
    """Return a Rich style string for a decision value."""
    return _DECISION_STYLE.get(decision.lower(), "white")


def _vote_cell(rnd: NegotiationRound, subagent_id: SubagentId) -> Text:
    proposal = next((p for p in rnd.proposals if p.subagent_id is subagent_id), None)
    if proposal is None:
        return Text("-", style="dim")
    return Text(
        f"{proposal.vote.value} ({proposal.confidence:.2f})",
        style=_VOTE_STYLE.get(proposal.vote.value, "white"),
    )


def render_result(console: Console, result: ConsensusResult) -> None:
    """Print the decision panel, round table, and final modifications."""
    headline = Text()
    headline.append(result.decision.value.upper(), style=decision_style(result.decision.value))
    headline.append(f"   confidence {result.confidence:.0%}")
    if result.human_review_recommended:
        headline.append("   human review recommended", style="bold yellow")

    console.print(Panel(headline, title="Consensus Decision", expand=False))

    rounds = Table(title="Negotiation Rounds", show_lines=True)
    rounds.add_column("Round", justify="right", style="bold")
    rounds.add_column("Financial")
    rounds.add_column("Risk")
    rounds.add_column("Meta")
    rounds.add_column("Status")
    rounds.add_column("Merged", justify="right")
    for rnd in result.rounds:
        rounds.add_row(
            str(rnd.round_number),
            _vote_cell(rnd, SubagentId.FINANCIAL_ANALYZER),
            _vote_cell(rnd, SubagentId.RISK_ENGINE),
            _vote_cell(rnd, SubagentId.META_COGNITION),
            rnd.status.value,
            str(len(rnd.merged_modifications or [])),
        )
    console.print(rounds)

    if result.rounds:
        last = result.rounds[-1].proposals
        weights = calculate_weighted_vote(last)
        console.print(
            f"[dim]Final round sentiment:[/dim] {overall_sentiment(last).value}   "
            f"[dim]weights[/dim] approve {weights.approve_weight:.2f} / "
            f"modify {weights.modify_weight:.2f} / reject {weights.reject_weight:.2f}"
        )

    if result.final_modifications:
        mods = Table(title="Final Modifications")
        mods.add_column("Cause", style="cyan")
        mods.add_column("Type")
        mods.add_column("Original", justify="right")
        mods.add_column("Proposed", justify="right")
        mods.add_column("Detail", max_width=60)
        for mod in result.final_modifications:
            mods.add_row(
                mod.cause_id,
                mod.modification_type.value,
                "-" if mod.original_amount is None else f"{mod.original_amount:,.0f}",
                "-" if mod.proposed_amount is None else f"{mod.proposed_amount:,.0f}",
                mod.condition or mod.reasoning,
            )
        console.print(mods)

    console.print()
    console.print(result.summary)


def render_audit_trail(console: Console, entries: list[AuditEntry]) -> None:
    """Print the audit trail as a table."""
    table = Table(title=f"Audit Trail ({len(entries)} entries)")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Event", style="cyan")
    table.add_column("Description")
    for entry in entries:
        when = datetime.fromtimestamp(entry.timestamp, tz=UTC).strftime("%H:%M:%S")
        table.add_row(when, entry.event_type.value, entry.description)
    console.print(table)


def render_record(console: Console, record: DecisionRecord) -> None:
    """Print one stored decision record."""
    meta = Table(title=f"Decision Record: {record.id}", show_header=False, show_lines=True)
    meta.add_column("Field", style="bold")
    meta.add_column("Value")
    decision = record.decision or "unknown"
    meta.add_row("Decision", Text(decision.upper(), style=decision_style(decision)))
    meta.add_row("Request", record.allocation_request_id)
    meta.add_row("User", record.user_id)
    meta.add_row("Importance", f"{record.importance:.2f}")
    meta.add_row("Rounds", str(record.metadata.get("round_count", "-")))
    meta.add_row("Created", record.created_at.isoformat())
    console.print(meta)

    content = record.content_data()
    votes = content.get("votes", [])
    if votes:
        table = Table(title="Final Votes")
        table.add_column("Subagent", style="cyan")
        table.add_column("Vote")
        table.add_column("Confidence", justify="right")
        for vote in votes:
            table.add_row(
                vote["subagent"],
                Text(vote["vote"], style=_VOTE_STYLE.get(vote["vote"], "white")),
                f"{vote['confidence']:.2f}",
            )
        console.print(table)

    concerns = content.get("concerns", [])
    if concerns:
        console.print("[bold]Concerns:[/bold] " + "; ".join(concerns))
