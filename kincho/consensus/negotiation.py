"""A single negotiation round.

Applies the modifications accumulated so far, consults all three
evaluators on the resulting working request, normalizes their results
into proposals, decides the round's status, and merges any proposed
modifications. Every step is recorded as an audit entry.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from kincho.consensus.evaluators import EvaluatorSet, gather_assessments
from kincho.consensus.merging import apply_modifications, merge_round_modifications
from kincho.consensus.proposals import build_proposals
from kincho.schemas.consensus import (
    AuditEntry,
    AuditEventType,
    NegotiationContext,
    NegotiationRound,
    NegotiationStatus,
    SubagentProposal,
    SubagentVote,
)

logger = logging.getLogger(__name__)

_SUMMARY_PREFIX: dict[NegotiationStatus, str] = {
    NegotiationStatus.CONSENSUS_REACHED: "Consensus reached.",
    NegotiationStatus.DEADLOCK: "Deadlock - no consensus possible.",
    NegotiationStatus.ESCALATED: "Escalated for human review.",
    NegotiationStatus.ACTIVE: "Negotiation continues with modifications.",
}


def determine_round_status(
    proposals: Sequence[SubagentProposal],
    approval_threshold: float,
) -> NegotiationStatus:
    """Decide a round's status from its proposals.

    Checked in order: unanimous approval, approval share >= threshold,
    rejection share >= threshold, presence of a modify vote. A round
    only stays active when some subagent proposed a way forward.

    Ratios are compared with a plain ``>=``, so two approvals out of
    three (0.666...) do not meet the default 0.67 threshold.
    """
    total = len(proposals)
    approve = sum(1 for p in proposals if p.vote is SubagentVote.APPROVE)
    reject = sum(1 for p in proposals if p.vote is SubagentVote.REJECT)
    modify = sum(1 for p in proposals if p.vote is SubagentVote.MODIFY)

    if total and approve == total:
        return NegotiationStatus.CONSENSUS_REACHED
    if total and approve / total >= approval_threshold:
        return NegotiationStatus.CONSENSUS_REACHED
    if total and reject / total >= approval_threshold:
        return NegotiationStatus.DEADLOCK
    if modify > 0:
        return NegotiationStatus.ACTIVE
    return NegotiationStatus.DEADLOCK


def format_votes(proposals: Sequence[SubagentProposal]) -> str:
    """Render proposals as ``"id: vote, id: vote, ..."``."""
    return ", ".join(f"{p.subagent_id.value}: {p.vote.value}" for p in proposals)


def summarize_round(
    proposals: Sequence[SubagentProposal], status: NegotiationStatus,
) -> str:
    return f"{_SUMMARY_PREFIX[status]} Votes: {format_votes(proposals)}"


async def run_negotiation_round(
    context: NegotiationContext,
    evaluators: EvaluatorSet,
) -> tuple[NegotiationRound, list[AuditEntry]]:
    """Run one negotiation round end to end.

    Args:
        context: Original request, fund state, previous round and the
            modifications accumulated so far.
        evaluators: The three evaluators to consult.

    Returns:
        The completed round and the audit entries it produced.

    Raises:
        EvaluatorError: If any evaluator fails; the round is not scored.
    """
    audit: list[AuditEntry] = []
    previous = context.previous_round
    round_number = (previous.round_number if previous else 0) + 1
    accumulated = context.accumulated_modifications

    logger.info(
        "Starting negotiation round %d (%d accumulated modifications)",
        round_number, len(accumulated),
    )
    audit.append(AuditEntry(
        event_type=AuditEventType.ROUND_START,
        description=f"Starting negotiation round {round_number}",
        data={
            "round_number": round_number,
            "has_modifications": bool(accumulated),
            "modification_count": len(accumulated),
        },
    ))

    working_request = apply_modifications(context.request, accumulated)
    assessments = await gather_assessments(
        evaluators, working_request, context.fund_state,
    )
    # Reductions are sized from the original request, not the working one.
    proposals = build_proposals(assessments, context.request)

    for proposal in proposals:
        audit.append(AuditEntry(
            event_type=AuditEventType.PROPOSAL_RECEIVED,
            description=(
                f"{proposal.subagent_id.value} voted {proposal.vote.value} "
                f"with confidence {proposal.confidence:.2f}"
            ),
            data={
                "subagent_id": proposal.subagent_id.value,
                "vote": proposal.vote.value,
                "confidence": proposal.confidence,
                "concerns": list(proposal.concerns),
                "has_modifications": bool(proposal.proposed_modifications),
            },
        ))

    status = determine_round_status(proposals, context.config.approval_threshold)

    merged = None
    if status in (NegotiationStatus.ACTIVE, NegotiationStatus.CONSENSUS_REACHED):
        proposed = [m for p in proposals for m in p.proposed_modifications]
        if proposed:
            merged = merge_round_modifications(proposed)
            audit.append(AuditEntry(
                event_type=AuditEventType.MODIFICATION_MERGED,
                description=f"Merged {len(merged)} modifications from this round",
                data={"modifications": [m.model_dump(mode="json") for m in merged]},
            ))

    rnd = NegotiationRound(
        round_number=round_number,
        proposals=proposals,
        status=status,
        merged_modifications=merged,
        summary=summarize_round(proposals, status),
    )
    logger.info("Round %d finished: %s", round_number, rnd.summary)
    return rnd, audit
