"""Tests for convergence detection, vote resolution, and vote analytics."""

from __future__ import annotations

import pytest

from kincho.consensus.voting import (
    Sentiment,
    average_confidence,
    calculate_weighted_vote,
    check_convergence,
    collect_concerns,
    overall_sentiment,
    resolve_voting,
)
from kincho.schemas import (
    AllocationModification,
    ConsensusConfig,
    ConsensusDecision,
    ModificationType,
    NegotiationRound,
    NegotiationStatus,
    SubagentId,
    SubagentProposal,
    SubagentVote,
)

# ── Factories ──────────────────────────────────────────────────────


def _adjust(cause_id: str, proposed: float) -> AllocationModification:
    return AllocationModification(
        cause_id=cause_id,
        modification_type=ModificationType.ADJUST_AMOUNT,
        original_amount=200.0,
        proposed_amount=proposed,
    )


def _make_proposals(
    votes: tuple[str, str, str] = ("approve", "approve", "approve"),
    confidences: tuple[float, float, float] = (0.8, 0.8, 0.8),
    concerns: tuple[list[str], list[str], list[str]] = ([], [], []),
) -> list[SubagentProposal]:
    return [
        SubagentProposal(
            subagent_id=sid,
            vote=SubagentVote(vote),
            confidence=conf,
            concerns=concern,
        )
        for sid, vote, conf, concern in zip(SubagentId, votes, confidences, concerns)
    ]


def _make_round(
    number: int = 1,
    status: NegotiationStatus = NegotiationStatus.CONSENSUS_REACHED,
    merged: list[AllocationModification] | None = None,
    **proposal_kwargs,
) -> NegotiationRound:
    return NegotiationRound(
        round_number=number,
        proposals=_make_proposals(**proposal_kwargs),
        status=status,
        merged_modifications=merged,
    )


# ── Convergence ───────────────────────────────────────────────────


class TestCheckConvergence:
    def test_both_empty(self):
        check = check_convergence(_make_round(1), _make_round(2))
        assert check.is_converging is True
        assert check.convergence_score == 1.0

    def test_one_empty(self):
        check = check_convergence(_make_round(1, merged=[_adjust("a", 100.0)]), _make_round(2))
        assert check.is_converging is False
        assert check.convergence_score == 0.5

    def test_amounts_within_ten_percent_match(self):
        check = check_convergence(
            _make_round(1, merged=[_adjust("a", 100.0)]),
            _make_round(2, merged=[_adjust("a", 105.0)]),
        )
        assert check.is_converging is True
        assert check.convergence_score == 1.0

    def test_amounts_far_apart_do_not_match(self):
        check = check_convergence(
            _make_round(1, merged=[_adjust("a", 100.0)]),
            _make_round(2, merged=[_adjust("a", 130.0)]),
        )
        assert check.is_converging is False
        assert check.convergence_score == 0.0

    def test_type_mismatch(self):
        reject = AllocationModification(
            cause_id="a", modification_type=ModificationType.REJECT_CAUSE,
        )
        check = check_convergence(
            _make_round(1, merged=[_adjust("a", 100.0)]),
            _make_round(2, merged=[reject]),
        )
        assert check.convergence_score == 0.0

    def test_no_shared_cause(self):
        check = check_convergence(
            _make_round(1, merged=[_adjust("a", 100.0)]),
            _make_round(2, merged=[_adjust("b", 100.0)]),
        )
        assert check.is_converging is False
        assert check.convergence_score == 0.0

    def test_partial_match_score(self):
        check = check_convergence(
            _make_round(1, merged=[_adjust("a", 100.0), _adjust("b", 100.0)]),
            _make_round(2, merged=[_adjust("a", 101.0), _adjust("b", 150.0)]),
        )
        assert check.convergence_score == 0.5
        assert check.is_converging is False

    def test_zero_amounts_match(self):
        check = check_convergence(
            _make_round(1, merged=[_adjust("a", 0.0)]),
            _make_round(2, merged=[_adjust("a", 0.0)]),
        )
        assert check.convergence_score == 1.0


# ── Vote resolution ───────────────────────────────────────────────


class TestResolveVoting:
    def test_no_rounds_escalates(self):
        outcome = resolve_voting([], ConsensusConfig())
        assert outcome.decision is ConsensusDecision.ESCALATED
        assert outcome.confidence == 0.0
        assert outcome.human_review_recommended is True

    def test_consensus_without_modifications_approves(self):
        outcome = resolve_voting(
            [_make_round(confidences=(0.9, 0.8, 0.7))], ConsensusConfig(),
        )
        assert outcome.decision is ConsensusDecision.APPROVED
        assert outcome.confidence == pytest.approx(0.8)
        assert outcome.human_review_recommended is False

    def test_consensus_with_earlier_modifications_is_modified(self):
        rounds = [
            _make_round(1, NegotiationStatus.ACTIVE, merged=[_adjust("a", 90.0)]),
            _make_round(2),
        ]
        outcome = resolve_voting(rounds, ConsensusConfig())
        assert outcome.decision is ConsensusDecision.MODIFIED

    def test_low_confidence_consensus_recommends_review(self):
        outcome = resolve_voting(
            [_make_round(confidences=(0.6, 0.6, 0.6))], ConsensusConfig(),
        )
        assert outcome.decision is ConsensusDecision.APPROVED
        assert outcome.human_review_recommended is True

    def test_rejecting_deadlock(self):
        rnd = _make_round(
            status=NegotiationStatus.DEADLOCK, votes=("reject", "reject", "reject"),
        )
        outcome = resolve_voting([rnd], ConsensusConfig())
        assert outcome.decision is ConsensusDecision.REJECTED
        assert outcome.human_review_recommended is True

    def test_split_deadlock_escalates(self):
        rnd = _make_round(
            status=NegotiationStatus.DEADLOCK, votes=("approve", "reject", "reject"),
        )
        outcome = resolve_voting([rnd], ConsensusConfig())
        assert outcome.decision is ConsensusDecision.ESCALATED
        assert outcome.human_review_recommended is True

    def test_split_deadlock_rejected_without_escalation(self):
        rnd = _make_round(
            status=NegotiationStatus.DEADLOCK, votes=("approve", "reject", "reject"),
        )
        outcome = resolve_voting([rnd], ConsensusConfig(escalate_on_deadlock=False))
        assert outcome.decision is ConsensusDecision.REJECTED

    def test_round_budget_exhausted_escalates(self):
        rounds = [
            _make_round(n, NegotiationStatus.ACTIVE, votes=("modify", "approve", "approve"))
            for n in (1, 2, 3)
        ]
        outcome = resolve_voting(rounds, ConsensusConfig(max_rounds=3))
        assert outcome.decision is ConsensusDecision.ESCALATED
        assert outcome.human_review_recommended is True

    def test_round_budget_exhausted_modified_without_escalation(self):
        rounds = [
            _make_round(n, NegotiationStatus.ACTIVE, votes=("modify", "approve", "approve"))
            for n in (1, 2)
        ]
        outcome = resolve_voting(
            rounds, ConsensusConfig(max_rounds=2, escalate_on_deadlock=False),
        )
        assert outcome.decision is ConsensusDecision.MODIFIED
        assert outcome.human_review_recommended is True

    def test_unresolvable_round_escalates_with_zero_confidence(self):
        rnd = _make_round(status=NegotiationStatus.ESCALATED)
        outcome = resolve_voting([rnd], ConsensusConfig())
        assert outcome.decision is ConsensusDecision.ESCALATED
        assert outcome.confidence == 0.0
        assert outcome.human_review_recommended is True

    def test_active_round_within_budget_is_unresolvable(self):
        rnd = _make_round(status=NegotiationStatus.ACTIVE)
        outcome = resolve_voting([rnd], ConsensusConfig(max_rounds=3))
        assert outcome.decision is ConsensusDecision.ESCALATED
        assert outcome.confidence == 0.0


# ── Analytics ─────────────────────────────────────────────────────


class TestAnalytics:
    def test_average_confidence(self):
        assert average_confidence(_make_proposals(confidences=(0.3, 0.6, 0.9))) == (
            pytest.approx(0.6)
        )
        assert average_confidence([]) == 0.0

    def test_sentiment(self):
        assert overall_sentiment(_make_proposals()) is Sentiment.POSITIVE
        assert overall_sentiment(
            _make_proposals(votes=("reject", "reject", "reject")),
        ) is Sentiment.NEGATIVE
        assert overall_sentiment(
            _make_proposals(votes=("approve", "modify", "reject")),
        ) is Sentiment.MIXED
        assert overall_sentiment(
            _make_proposals(votes=("approve", "approve", "reject")),
        ) is Sentiment.POSITIVE

    def test_collect_concerns_deduplicates(self):
        proposals = _make_proposals(concerns=(["a", "b"], ["b"], ["c", "a"]))
        assert collect_concerns(proposals) == ["a", "b", "c"]

    def test_weighted_vote(self):
        weights = calculate_weighted_vote(_make_proposals(
            votes=("approve", "modify", "approve"), confidences=(0.5, 0.4, 0.25),
        ))
        assert weights.approve_weight == pytest.approx(0.75)
        assert weights.modify_weight == pytest.approx(0.4)
        assert weights.reject_weight == 0.0
