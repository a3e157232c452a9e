"""Convergence detection, final vote resolution, and vote analytics.

Provides the mechanics the consensus engine uses once rounds have been
collected: whether successive rounds are settling on the same
modifications, what the final decision is, and aggregate views of the
proposals for summaries and display.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from enum import StrEnum
from typing import NamedTuple

from kincho.schemas.consensus import (
    AllocationModification,
    ConsensusConfig,
    ConsensusDecision,
    ModificationType,
    NegotiationRound,
    NegotiationStatus,
    SubagentProposal,
    SubagentVote,
)

logger = logging.getLogger(__name__)

# Relative amount difference under which two adjustments count as matching
_AMOUNT_TOLERANCE = 0.1
# Convergence score at which rounds count as converging
_CONVERGING_SCORE = 0.8


class ConvergenceCheck(NamedTuple):
    is_converging: bool
    convergence_score: float


class VotingOutcome(NamedTuple):
    decision: ConsensusDecision
    confidence: float
    human_review_recommended: bool


class Sentiment(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    MIXED = "mixed"


class WeightedVote(NamedTuple):
    """Confidence-weighted vote totals."""

    approve_weight: float
    reject_weight: float
    modify_weight: float


def _effective_amount(mod: AllocationModification) -> float:
    if mod.proposed_amount is not None:
        return mod.proposed_amount
    if mod.original_amount is not None:
        return mod.original_amount
    return 0.0


def _modifications_match(
    first: AllocationModification, second: AllocationModification,
) -> bool:
    if first.modification_type is not second.modification_type:
        return False
    if first.modification_type is not ModificationType.ADJUST_AMOUNT:
        return True

    amount1 = _effective_amount(first)
    amount2 = _effective_amount(second)
    avg = (amount1 + amount2) / 2
    if avg == 0:
        return True
    return abs(amount1 - amount2) / avg < _AMOUNT_TOLERANCE


def check_convergence(
    previous: NegotiationRound, current: NegotiationRound,
) -> ConvergenceCheck:
    """Compare two consecutive rounds' merged modifications.

    Both empty counts as converged (1.0); exactly one empty as not
    converged (0.5). Otherwise the score is the share of causes present
    in both rounds whose modifications agree in type and, for amount
    adjustments, lie within 10% of their average. No shared cause
    scores 0.
    """
    mods1 = previous.merged_modifications or []
    mods2 = current.merged_modifications or []

    if not mods1 and not mods2:
        return ConvergenceCheck(is_converging=True, convergence_score=1.0)
    if not mods1 or not mods2:
        return ConvergenceCheck(is_converging=False, convergence_score=0.5)

    matches = 0
    comparisons = 0
    for mod1 in mods1:
        mod2 = next((m for m in mods2 if m.cause_id == mod1.cause_id), None)
        if mod2 is None:
            continue
        comparisons += 1
        if _modifications_match(mod1, mod2):
            matches += 1

    if comparisons == 0:
        return ConvergenceCheck(is_converging=False, convergence_score=0.0)

    score = matches / comparisons
    return ConvergenceCheck(
        is_converging=score >= _CONVERGING_SCORE, convergence_score=score,
    )


def average_confidence(proposals: Sequence[SubagentProposal]) -> float:
    if not proposals:
        return 0.0
    return sum(p.confidence for p in proposals) / len(proposals)


def resolve_voting(
    rounds: Sequence[NegotiationRound], config: ConsensusConfig,
) -> VotingOutcome:
    """Derive the final decision from the terminal round.

    - No rounds: escalated, zero confidence.
    - Consensus: ``modified`` if any round merged modifications, else
      ``approved``; review recommended when the mean confidence is below
      ``min_confidence``.
    - Deadlock: ``rejected`` when rejections meet the threshold,
      otherwise ``escalated`` (or ``rejected`` with escalation disabled).
    - Still active after ``max_rounds``: ``escalated`` (or ``modified``
      with escalation disabled).

    Every outcome other than consensus forces human review.
    """
    if not rounds:
        return VotingOutcome(ConsensusDecision.ESCALATED, 0.0, True)

    last = rounds[-1]
    confidence = average_confidence(last.proposals)

    if last.status is NegotiationStatus.CONSENSUS_REACHED:
        has_modifications = any(r.merged_modifications for r in rounds)
        decision = (
            ConsensusDecision.MODIFIED if has_modifications else ConsensusDecision.APPROVED
        )
        return VotingOutcome(decision, confidence, confidence < config.min_confidence)

    if last.status is NegotiationStatus.DEADLOCK:
        rejects = sum(1 for p in last.proposals if p.vote is SubagentVote.REJECT)
        if last.proposals and rejects / len(last.proposals) >= config.approval_threshold:
            return VotingOutcome(ConsensusDecision.REJECTED, confidence, True)
        decision = (
            ConsensusDecision.ESCALATED
            if config.escalate_on_deadlock
            else ConsensusDecision.REJECTED
        )
        return VotingOutcome(decision, confidence, True)

    if last.status is NegotiationStatus.ACTIVE and len(rounds) >= config.max_rounds:
        decision = (
            ConsensusDecision.ESCALATED
            if config.escalate_on_deadlock
            else ConsensusDecision.MODIFIED
        )
        return VotingOutcome(decision, confidence, True)

    logger.warning(
        "Unresolvable terminal round %d (%s), escalating",
        last.round_number, last.status.value,
    )
    return VotingOutcome(ConsensusDecision.ESCALATED, 0.0, True)


def overall_sentiment(proposals: Sequence[SubagentProposal]) -> Sentiment:
    """Coarse direction of a set of votes."""
    approve = sum(1 for p in proposals if p.vote is SubagentVote.APPROVE)
    reject = sum(1 for p in proposals if p.vote is SubagentVote.REJECT)

    if proposals and approve == len(proposals):
        return Sentiment.POSITIVE
    if proposals and reject == len(proposals):
        return Sentiment.NEGATIVE
    if approve > reject:
        return Sentiment.POSITIVE
    if reject > approve:
        return Sentiment.NEGATIVE
    return Sentiment.MIXED


def collect_concerns(proposals: Iterable[SubagentProposal]) -> list[str]:
    """All concerns raised, deduplicated, in first-seen order."""
    return list(dict.fromkeys(c for p in proposals for c in p.concerns))


def calculate_weighted_vote(proposals: Iterable[SubagentProposal]) -> WeightedVote:
    """Sum proposal confidences per vote."""
    weights = dict.fromkeys(SubagentVote, 0.0)
    for proposal in proposals:
        weights[proposal.vote] += proposal.confidence
    return WeightedVote(
        approve_weight=weights[SubagentVote.APPROVE],
        reject_weight=weights[SubagentVote.REJECT],
        modify_weight=weights[SubagentVote.MODIFY],
    )
