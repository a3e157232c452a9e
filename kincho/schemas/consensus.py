"""Consensus schemas for the Kincho negotiation engine.

Defines the vocabulary of a consensus run: subagent identifiers and
votes, allocation modifications, per-round proposals, negotiation rounds,
the run configuration, the audit trail, and the final ConsensusResult.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kincho.schemas.allocation import AllocationRequest, FundState

ZERO_ADDRESS = "0x" + "0" * 40


class SubagentId(StrEnum):
    """The fixed, ordered set of evaluators consulted every round."""

    FINANCIAL_ANALYZER = "financial_analyzer"
    RISK_ENGINE = "risk_engine"
    META_COGNITION = "meta_cognition"


class SubagentVote(StrEnum):
    """A subagent's vote on the (possibly modified) request."""

    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"


class ModificationType(StrEnum):
    """Kinds of change a subagent can propose for a cause."""

    ADJUST_AMOUNT = "adjust_amount"
    REJECT_CAUSE = "reject_cause"
    ADD_CONDITION = "add_condition"


class NegotiationStatus(StrEnum):
    """Status of a negotiation round.

    ``active`` is the only state from which another round may start.
    """

    ACTIVE = "active"
    CONSENSUS_REACHED = "consensus_reached"
    DEADLOCK = "deadlock"
    ESCALATED = "escalated"

    @property
    def is_terminal(self) -> bool:
        return self is not NegotiationStatus.ACTIVE


class ConsensusDecision(StrEnum):
    """Final decision of a consensus run."""

    APPROVED = "approved"
    MODIFIED = "modified"
    REJECTED = "rejected"
    ESCALATED = "escalated"


class AuditEventType(StrEnum):
    """Types of events recorded in the audit trail."""

    ROUND_START = "round_start"
    PROPOSAL_RECEIVED = "proposal_received"
    MODIFICATION_MERGED = "modification_merged"
    CONSENSUS_REACHED = "consensus_reached"
    ESCALATION = "escalation"


class AllocationModification(BaseModel):
    """A proposed change to one cause of the allocation.

    ``adjust_amount`` needs ``proposed_amount`` and ``add_condition`` needs
    ``condition``. Modifications missing them can still be constructed;
    the mergers and the request builder skip them (see ``is_actionable``).
    """

    model_config = ConfigDict(frozen=True)

    cause_id: str = Field(description="Cause the modification applies to")
    modification_type: ModificationType = Field(description="Kind of modification")
    original_amount: float | None = Field(
        default=None, description="Amount before the modification",
    )
    proposed_amount: float | None = Field(
        default=None, description="Proposed new amount (adjust_amount only)",
    )
    condition: str | None = Field(
        default=None, description="Condition to attach (add_condition only)",
    )
    reasoning: str = Field(default="", description="Why the change was proposed")

    @property
    def is_actionable(self) -> bool:
        """Whether the modification carries the data its type requires."""
        if self.modification_type is ModificationType.ADJUST_AMOUNT:
            return self.proposed_amount is not None
        if self.modification_type is ModificationType.ADD_CONDITION:
            return self.condition is not None
        return True


class SubagentProposal(BaseModel):
    """One subagent's normalized vote for a round."""

    model_config = ConfigDict(frozen=True)

    subagent_id: SubagentId = Field(description="Which subagent made this proposal")
    vote: SubagentVote = Field(description="approve, reject, or modify")
    confidence: float = Field(
        ge=0.0, le=1.0, description="The subagent's own confidence metric",
    )
    proposed_modifications: list[AllocationModification] = Field(
        default_factory=list, description="Modifications proposed with the vote",
    )
    reasoning: str = Field(default="", description="Reasoning behind the vote")
    concerns: list[str] = Field(default_factory=list, description="Specific concerns raised")
    metrics: dict[str, float] = Field(
        default_factory=dict, description="Key metrics that influenced the vote",
    )


class NegotiationRound(BaseModel):
    """A single, completed round of negotiation."""

    model_config = ConfigDict(frozen=True)

    round_number: int = Field(ge=1, description="Round number (1-indexed)")
    proposals: list[SubagentProposal] = Field(
        description="Proposals from each subagent, in SubagentId order",
    )
    status: NegotiationStatus = Field(description="Outcome of this round")
    merged_modifications: list[AllocationModification] | None = Field(
        default=None,
        description="Conflict-resolved modifications from this round, if merged",
    )
    summary: str = Field(default="", description="Summary of the round outcome")
    timestamp: float = Field(
        default_factory=time.time, description="Unix timestamp when the round closed",
    )


class ConsensusConfig(BaseModel):
    """Configuration for a consensus run. Constant for the whole run."""

    max_rounds: int = Field(default=3, ge=1, description="Maximum negotiation rounds")
    approval_threshold: float = Field(
        default=0.67, ge=0.0, le=1.0,
        description="Vote share needed for consensus (or for a rejecting deadlock)",
    )
    escalate_on_deadlock: bool = Field(
        default=True, description="Escalate to human review on deadlock",
    )
    min_confidence: float = Field(
        default=0.7, ge=0.0, le=1.0,
        description="Minimum confidence for an automated decision without review",
    )
    vault_address: str = Field(
        default=ZERO_ADDRESS, pattern=r"^0x[0-9a-fA-F]{40}$",
        description="Vault address the allocation targets",
    )


class AuditEntry(BaseModel):
    """A single entry of the append-only audit trail."""

    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(
        default_factory=time.time, description="Unix timestamp of the event",
    )
    event_type: AuditEventType = Field(description="Type of audit event")
    description: str = Field(description="Human-readable description")
    data: dict[str, Any] | None = Field(default=None, description="Event payload")


class NegotiationContext(BaseModel):
    """Everything a negotiation round needs to run."""

    request: AllocationRequest = Field(description="The original allocation request")
    fund_state: FundState = Field(description="Current fund state")
    previous_round: NegotiationRound | None = Field(
        default=None, description="The previous round, if this is not the first",
    )
    accumulated_modifications: list[AllocationModification] = Field(
        default_factory=list, description="Modifications accumulated from prior rounds",
    )
    config: ConsensusConfig = Field(default_factory=ConsensusConfig)


class ConsensusResult(BaseModel):
    """The single output artifact of a consensus run."""

    model_config = ConfigDict(frozen=True)

    achieved: bool = Field(description="Whether consensus was achieved")
    decision: ConsensusDecision = Field(description="Final decision")
    rounds: list[NegotiationRound] = Field(
        default_factory=list, description="All negotiation rounds, in order",
    )
    final_modifications: list[AllocationModification] | None = Field(
        default=None, description="Final merged modifications, if any",
    )
    audit_trail: list[AuditEntry] = Field(
        default_factory=list, description="Audit trail of the run",
    )
    confidence: float = Field(ge=0.0, le=1.0, description="Overall confidence")
    human_review_recommended: bool = Field(
        description="Whether a person should review the decision",
    )
    summary: str = Field(default="", description="Human-readable summary of the run")
