"""Multi-round negotiation consensus for Kincho.

Provides the evaluator adapter, proposal normalization, modification
merging, round status determination, convergence detection, vote
resolution, and the top-level consensus engine.
"""

from kincho.consensus.engine import (
    ConsensusEngine,
    build_decision_record,
    resolve_config,
    run_consensus_process,
    summarize_consensus,
)
from kincho.consensus.evaluators import (
    EvaluatorError,
    EvaluatorSet,
    FunctionEvaluators,
    RoundAssessments,
    ScriptedEvaluators,
    gather_assessments,
)
from kincho.consensus.merging import (
    apply_modifications,
    merge_modifications,
    merge_round_modifications,
)
from kincho.consensus.negotiation import determine_round_status, run_negotiation_round
from kincho.consensus.proposals import (
    build_proposals,
    normalize_financial,
    normalize_meta,
    normalize_risk,
)
from kincho.consensus.voting import (
    ConvergenceCheck,
    Sentiment,
    VotingOutcome,
    WeightedVote,
    average_confidence,
    calculate_weighted_vote,
    check_convergence,
    collect_concerns,
    overall_sentiment,
    resolve_voting,
)

__all__ = [
    "ConsensusEngine",
    "ConvergenceCheck",
    "EvaluatorError",
    "EvaluatorSet",
    "FunctionEvaluators",
    "RoundAssessments",
    "ScriptedEvaluators",
    "Sentiment",
    "VotingOutcome",
    "WeightedVote",
    "apply_modifications",
    "average_confidence",
    "build_decision_record",
    "build_proposals",
    "calculate_weighted_vote",
    "check_convergence",
    "collect_concerns",
    "determine_round_status",
    "gather_assessments",
    "merge_modifications",
    "merge_round_modifications",
    "normalize_financial",
    "normalize_meta",
    "normalize_risk",
    "overall_sentiment",
    "resolve_config",
    "resolve_voting",
    "run_consensus_process",
    "run_negotiation_round",
    "summarize_consensus",
]
