"""Pydantic schemas for the Kincho consensus engine."""

from kincho.schemas.allocation import (
    AllocationRecommendation,
    AllocationRequest,
    FundState,
    RiskParameters,
    RiskTolerance,
    SuggestedAllocation,
    UserPreferences,
)
from kincho.schemas.consensus import (
    AllocationModification,
    AuditEntry,
    AuditEventType,
    ConsensusConfig,
    ConsensusDecision,
    ConsensusResult,
    ModificationType,
    NegotiationContext,
    NegotiationRound,
    NegotiationStatus,
    SubagentId,
    SubagentProposal,
    SubagentVote,
)
from kincho.schemas.evaluators import (
    ComplianceChecks,
    EvaluatorResult,
    FinancialResult,
    MetaResult,
    PortfolioImpact,
    ReasoningStep,
    RiskAssessment,
    RiskResult,
    parse_evaluator_result,
)
from kincho.schemas.records import DecisionQuery, DecisionRecord, PersistenceConfig
from kincho.schemas.scenario import Scenario, ScriptedEvaluations

__all__ = [
    "AllocationModification",
    "AllocationRecommendation",
    "AllocationRequest",
    "AuditEntry",
    "AuditEventType",
    "ComplianceChecks",
    "ConsensusConfig",
    "ConsensusDecision",
    "ConsensusResult",
    "DecisionQuery",
    "DecisionRecord",
    "EvaluatorResult",
    "FinancialResult",
    "FundState",
    "MetaResult",
    "ModificationType",
    "NegotiationContext",
    "NegotiationRound",
    "NegotiationStatus",
    "PersistenceConfig",
    "PortfolioImpact",
    "ReasoningStep",
    "RiskAssessment",
    "RiskParameters",
    "RiskResult",
    "RiskTolerance",
    "Scenario",
    "ScriptedEvaluations",
    "SubagentId",
    "SubagentProposal",
    "SubagentVote",
    "SuggestedAllocation",
    "UserPreferences",
    "parse_evaluator_result",
]
