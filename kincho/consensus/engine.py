"""Multi-round consensus engine for allocation requests.

Runs negotiation rounds until the subagents reach consensus, deadlock,
converge on the same modifications, or the round budget runs out. Then
resolves the final vote, folds the modifications of every round into
one set, summarizes the run, and publishes a decision record.

States: running(round 1..max_rounds) → approved | modified | rejected
| escalated. A round ending in consensus or deadlock stops the loop
immediately; ``escalate_on_deadlock`` only changes the audit note and
how the deadlock is resolved.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from kincho.consensus.evaluators import EvaluatorSet
from kincho.consensus.merging import merge_modifications
from kincho.consensus.negotiation import run_negotiation_round
from kincho.consensus.voting import (
    check_convergence,
    collect_concerns,
    resolve_voting,
)
from kincho.persistence.channel import DecisionRecordChannel
from kincho.schemas.allocation import AllocationRequest, FundState
from kincho.schemas.consensus import (
    AllocationModification,
    AuditEntry,
    AuditEventType,
    ConsensusConfig,
    ConsensusDecision,
    ConsensusResult,
    NegotiationContext,
    NegotiationRound,
    NegotiationStatus,
)
from kincho.schemas.records import DecisionRecord

logger = logging.getLogger(__name__)

# Convergence score at which negotiation stops early
_EARLY_STOP_SCORE = 0.9


def resolve_config(
    config: ConsensusConfig | Mapping[str, Any] | None,
) -> ConsensusConfig:
    """Accept a full config, a mapping of overrides, or None (defaults)."""
    if config is None:
        return ConsensusConfig()
    if isinstance(config, ConsensusConfig):
        return config
    return ConsensusConfig.model_validate(dict(config))


class ConsensusEngine:
    """Drives a full consensus run over an injected evaluator set.

    The engine keeps no state between runs; one instance can serve any
    number of requests.
    """

    def __init__(
        self,
        evaluators: EvaluatorSet,
        config: ConsensusConfig | Mapping[str, Any] | None = None,
        recorder: DecisionRecordChannel | None = None,
    ) -> None:
        self._evaluators = evaluators
        self._config = resolve_config(config)
        self._recorder = recorder

    @property
    def config(self) -> ConsensusConfig:
        return self._config

    async def run(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> ConsensusResult:
        """Run the consensus process for one request.

        Raises:
            EvaluatorError: If any evaluator fails in any round. No
                partial result is produced.
        """
        config = self._config
        rounds: list[NegotiationRound] = []
        audit_trail: list[AuditEntry] = []
        accumulated: list[AllocationModification] = []

        logger.info(
            "Starting consensus for request %s (max %d rounds)",
            request.id, config.max_rounds,
        )

        for _ in range(config.max_rounds):
            context = NegotiationContext(
                request=request,
                fund_state=fund_state,
                previous_round=rounds[-1] if rounds else None,
                accumulated_modifications=accumulated,
                config=config,
            )
            rnd, entries = await run_negotiation_round(context, self._evaluators)
            rounds.append(rnd)
            audit_trail.extend(entries)

            if rnd.merged_modifications:
                accumulated = merge_modifications(rounds)

            if rnd.status is NegotiationStatus.CONSENSUS_REACHED:
                audit_trail.append(AuditEntry(
                    event_type=AuditEventType.CONSENSUS_REACHED,
                    description=f"Consensus reached in round {rnd.round_number}",
                    data={"round_number": rnd.round_number},
                ))
                break

            if rnd.status is NegotiationStatus.DEADLOCK:
                if config.escalate_on_deadlock:
                    audit_trail.append(AuditEntry(
                        event_type=AuditEventType.ESCALATION,
                        description=(
                            f"Deadlock in round {rnd.round_number}, "
                            "escalating to human review"
                        ),
                        data={"round_number": rnd.round_number},
                    ))
                break

            if len(rounds) >= 2:
                check = check_convergence(rounds[-2], rnd)
                if check.is_converging and check.convergence_score >= _EARLY_STOP_SCORE:
                    logger.info(
                        "Modifications converged after round %d (score %.2f)",
                        rnd.round_number, check.convergence_score,
                    )
                    rounds[-1] = rnd.model_copy(
                        update={"status": NegotiationStatus.CONSENSUS_REACHED},
                    )
                    audit_trail.append(AuditEntry(
                        event_type=AuditEventType.CONSENSUS_REACHED,
                        description=(
                            "Modifications converged "
                            f"(score: {check.convergence_score:.2f})"
                        ),
                        data={"convergence_score": check.convergence_score},
                    ))
                    break

        outcome = resolve_voting(rounds, config)
        final_modifications = merge_modifications(rounds)
        summary = summarize_consensus(rounds, outcome.decision, outcome.confidence)

        result = ConsensusResult(
            achieved=outcome.decision in (
                ConsensusDecision.APPROVED, ConsensusDecision.MODIFIED,
            ),
            decision=outcome.decision,
            rounds=rounds,
            final_modifications=final_modifications or None,
            audit_trail=audit_trail,
            confidence=outcome.confidence,
            human_review_recommended=outcome.human_review_recommended,
            summary=summary,
        )
        logger.info(
            "Consensus for request %s: %s (confidence %.2f, %d round(s))",
            request.id, result.decision.value, result.confidence, len(rounds),
        )

        self._publish_record(request, result)
        return result

    def _publish_record(self, request: AllocationRequest, result: ConsensusResult) -> None:
        if self._recorder is None:
            return
        try:
            self._recorder.publish(build_decision_record(request, result))
        except Exception as exc:
            logger.warning("Failed to store consensus decision record: %s", exc)


async def run_consensus_process(
    request: AllocationRequest,
    fund_state: FundState,
    evaluators: EvaluatorSet,
    config: ConsensusConfig | Mapping[str, Any] | None = None,
    recorder: DecisionRecordChannel | None = None,
) -> ConsensusResult:
    """Run the full consensus process for one allocation request.

    Args:
        request: The allocation request to evaluate.
        fund_state: Fund snapshot, read-only for the whole run.
        evaluators: The three evaluators consulted every round.
        config: Full config, a mapping overriding any subset of the
            defaults, or None for the defaults.
        recorder: Optional channel the decision record is published to.

    Returns:
        The ConsensusResult for the run.
    """
    engine = ConsensusEngine(evaluators, config=config, recorder=recorder)
    return await engine.run(request, fund_state)


def summarize_consensus(
    rounds: list[NegotiationRound],
    decision: ConsensusDecision,
    confidence: float,
) -> str:
    """Human-readable summary: outcome, per-round votes, key concerns."""
    parts = [
        f"Consensus process completed in {len(rounds)} round(s).",
        f"Final decision: {decision.value.upper()}.",
        f"Overall confidence: {confidence * 100:.0f}%.",
    ]

    for rnd in rounds:
        votes = ", ".join(
            f"{p.subagent_id.value.replace('_', ' ', 1)}: {p.vote.value}"
            for p in rnd.proposals
        )
        parts.append(f"Round {rnd.round_number}: {votes} ({rnd.status.value}).")

    concerns = collect_concerns(p for rnd in rounds for p in rnd.proposals)
    if concerns:
        parts.append(f"Key concerns: {'; '.join(concerns)}")

    return " ".join(parts)


def build_decision_record(
    request: AllocationRequest, result: ConsensusResult,
) -> DecisionRecord:
    """Summarize a finished run as a DecisionRecord for learning."""
    last = result.rounds[-1] if result.rounds else None
    proposals = last.proposals if last else []
    content = {
        "decision": result.decision.value,
        "confidence": result.confidence,
        "round_count": len(result.rounds),
        "votes": [
            {
                "subagent": p.subagent_id.value,
                "vote": p.vote.value,
                "confidence": p.confidence,
            }
            for p in proposals
        ],
        "concerns": [c for p in proposals for c in p.concerns],
        "modifications_applied": any(r.merged_modifications for r in result.rounds),
    }
    return DecisionRecord(
        user_id=request.user_id,
        allocation_request_id=request.id,
        content=json.dumps(content),
        importance=result.confidence,
        metadata={
            "decision": result.decision.value,
            "round_count": len(result.rounds),
            "amount": request.amount,
        },
    )
