"""Kincho — multi-round consensus engine for charitable fund allocation."""

__version__ = "0.1.0"

from kincho.consensus import ConsensusEngine, EvaluatorSet, run_consensus_process
from kincho.schemas import AllocationRequest, ConsensusConfig, ConsensusResult, FundState

__all__ = [
    "AllocationRequest",
    "ConsensusConfig",
    "ConsensusEngine",
    "ConsensusResult",
    "EvaluatorSet",
    "FundState",
    "run_consensus_process",
]
