"""Proposal normalization: raw evaluator results → SubagentProposal.

Each evaluator reports on its own scale. These functions map every
result variant onto the shared vote/confidence/concerns/modifications
shape using fixed, evaluator-specific thresholds. The proposal's
confidence is the evaluator's own metric, not a function of the vote.
"""

from __future__ import annotations

import math

from kincho.consensus.evaluators import RoundAssessments
from kincho.schemas.allocation import AllocationRequest
from kincho.schemas.consensus import (
    AllocationModification,
    ModificationType,
    SubagentId,
    SubagentProposal,
    SubagentVote,
)
from kincho.schemas.evaluators import FinancialResult, MetaResult, RiskResult

# Financial analyzer thresholds
_FIT_APPROVE = 0.8
_FIT_MODIFY = 0.6
_FIT_REDUCE_BELOW = 0.75

# Risk engine thresholds
_RISK_APPROVE = 0.3
_RISK_MODIFY = 0.5
_RISK_REDUCTION_WEIGHT = 0.5
_RISK_FACTOR_CONCERN = 0.5

# Meta-cognition thresholds
_META_APPROVE = 0.8
_META_MODIFY = 0.6


def round_amount(value: float) -> float:
    """Round half away from zero to a whole amount (not banker's rounding)."""
    return float(math.floor(value + 0.5))


def normalize_financial(
    result: FinancialResult, request: AllocationRequest,
) -> SubagentProposal:
    """Map a financial analysis onto a proposal.

    Modify votes with a fit score below 0.75 propose scaling every
    allocation by the fit score; modify votes in [0.75, 0.8) attach none.
    """
    fit = result.fit_score
    modifications: list[AllocationModification] = []

    if result.approved and fit >= _FIT_APPROVE:
        vote = SubagentVote.APPROVE
    elif result.approved and fit >= _FIT_MODIFY:
        vote = SubagentVote.MODIFY
        if fit < _FIT_REDUCE_BELOW:
            for allocation in request.allocations:
                modifications.append(AllocationModification(
                    cause_id=allocation.cause_id,
                    modification_type=ModificationType.ADJUST_AMOUNT,
                    original_amount=allocation.amount,
                    proposed_amount=round_amount(allocation.amount * fit),
                    reasoning=f"Reduced allocation due to moderate fit score ({fit:.2f})",
                ))
    else:
        vote = SubagentVote.REJECT

    return SubagentProposal(
        subagent_id=SubagentId.FINANCIAL_ANALYZER,
        vote=vote,
        confidence=fit,
        proposed_modifications=modifications,
        reasoning=result.reasoning or f"Fit score: {fit:.2f}",
        concerns=[] if result.approved else ["Portfolio fit concerns"],
        metrics={"fit_score": fit},
    )


def normalize_risk(result: RiskResult, request: AllocationRequest) -> SubagentProposal:
    """Map a risk assessment onto a proposal.

    Modify votes reduce each allocation by ``1 - aggregate_risk * 0.5``
    where that actually lowers the amount, and flag the risk factors
    that pushed the vote away from approval.
    """
    assessment = result.risk_assessment
    aggregate = assessment.aggregate_risk
    modifications: list[AllocationModification] = []
    concerns: list[str] = []

    if result.approved and aggregate <= _RISK_APPROVE:
        vote = SubagentVote.APPROVE
    elif aggregate <= _RISK_MODIFY:
        vote = SubagentVote.MODIFY

        if assessment.market_risk > _RISK_FACTOR_CONCERN:
            concerns.append("Elevated market risk")
        if not assessment.compliance_checks.concentration_limit:
            concerns.append("Concentration limit exceeded")
        if assessment.liquidity_risk > _RISK_FACTOR_CONCERN:
            concerns.append("Liquidity concerns")

        factor = 1 - aggregate * _RISK_REDUCTION_WEIGHT
        for allocation in request.allocations:
            adjusted = round_amount(allocation.amount * factor)
            if adjusted < allocation.amount:
                modifications.append(AllocationModification(
                    cause_id=allocation.cause_id,
                    modification_type=ModificationType.ADJUST_AMOUNT,
                    original_amount=allocation.amount,
                    proposed_amount=adjusted,
                    reasoning=f"Risk-adjusted reduction (aggregate risk: {aggregate:.2f})",
                ))
    else:
        vote = SubagentVote.REJECT
        concerns.append(f"Aggregate risk too high: {aggregate:.2f}")

    return SubagentProposal(
        subagent_id=SubagentId.RISK_ENGINE,
        vote=vote,
        confidence=1 - aggregate,
        proposed_modifications=modifications,
        reasoning=result.reasoning or f"Aggregate risk: {aggregate:.2f}",
        concerns=concerns,
        metrics={
            "aggregate_risk": aggregate,
            "market_risk": assessment.market_risk,
            "liquidity_risk": assessment.liquidity_risk,
            "operational_risk": assessment.operational_risk,
        },
    )


def normalize_meta(result: MetaResult) -> SubagentProposal:
    """Map a meta-cognition evaluation onto a proposal.

    Never proposes modifications; uncertainty sources become concerns.
    """
    confidence = result.confidence
    concerns = list(result.uncertainty_sources)

    if confidence >= _META_APPROVE and not result.human_override_recommended:
        vote = SubagentVote.APPROVE
    elif confidence >= _META_MODIFY:
        vote = SubagentVote.MODIFY
        if result.human_override_recommended:
            concerns.append("Human review recommended")
    else:
        vote = SubagentVote.REJECT
        concerns.append("Confidence too low for automated decision")

    chain = "; ".join(
        f"{step.premise} → {step.conclusion}" for step in result.reasoning_chain
    )

    return SubagentProposal(
        subagent_id=SubagentId.META_COGNITION,
        vote=vote,
        confidence=confidence,
        reasoning=chain or f"Confidence: {confidence:.2f}",
        concerns=concerns,
        metrics={"confidence": confidence},
    )


def build_proposals(
    assessments: RoundAssessments, request: AllocationRequest,
) -> list[SubagentProposal]:
    """Normalize a round's assessments, in SubagentId order."""
    return [
        normalize_financial(assessments.financial, request),
        normalize_risk(assessments.risk, request),
        normalize_meta(assessments.meta),
    ]
