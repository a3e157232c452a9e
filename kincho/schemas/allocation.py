"""Allocation request and fund state schemas.

Defines the inputs to a consensus run: the donor's AllocationRequest with
its suggested per-cause allocations, and the read-only FundState snapshot
the evaluators score it against.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class RiskTolerance(StrEnum):
    """Donor-declared appetite for risk."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class UserPreferences(BaseModel):
    """Donor preference data collected before the request was raised."""

    causes: list[str] = Field(
        default_factory=list, description="Cause categories the donor cares about",
    )
    risk_tolerance: RiskTolerance = Field(
        default=RiskTolerance.MODERATE, description="Declared risk tolerance",
    )
    archetype_profile: dict[str, float] | None = Field(
        default=None, description="Donor archetype scores, if profiled",
    )
    moral_vector: dict[str, float] | None = Field(
        default=None, description="Moral-foundation weights, if analyzed",
    )


class SuggestedAllocation(BaseModel):
    """A single cause allocation suggested for the deposit."""

    model_config = ConfigDict(frozen=True)

    cause_id: str = Field(description="Identifier of the receiving cause")
    cause_name: str = Field(default="", description="Human-friendly cause name")
    amount: float = Field(ge=0.0, description="Amount allocated to the cause")
    percentage: float = Field(
        default=0.0, ge=0.0, le=100.0,
        description="Share of the total deposit, in percent",
    )
    reasoning: str = Field(default="", description="Why this cause was suggested")


class AllocationRecommendation(BaseModel):
    """The upstream recommendation attached to an allocation request."""

    model_config = ConfigDict(frozen=True)

    suggested_allocations: list[SuggestedAllocation] = Field(
        default_factory=list, description="Per-cause allocation suggestions",
    )
    reasoning: str = Field(default="", description="Overall recommendation rationale")
    psych_profile: dict[str, object] | None = Field(
        default=None, description="Psychopolitical analysis of the donor, if any",
    )


class AllocationRequest(BaseModel):
    """Allocation request evaluated by the consensus engine.

    Treated as immutable input. Negotiation rounds derive a modified view
    through ``kincho.consensus.merging.apply_modifications`` instead of
    mutating it.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique request identifier")
    user_id: str = Field(description="Identifier of the donor")
    deposit_id: str | None = Field(default=None, description="Linked deposit, if any")
    conversation_id: str | None = Field(
        default=None, description="Conversation the request came from, if any",
    )
    amount: float = Field(ge=0.0, description="Total requested amount")
    user_preferences: UserPreferences = Field(
        default_factory=UserPreferences, description="Donor preference data",
    )
    recommendation: AllocationRecommendation = Field(
        default_factory=AllocationRecommendation,
        description="Suggested allocations for the deposit",
    )
    conditions: list[str] = Field(
        default_factory=list,
        description="Conditions attached during negotiation ('<cause_id>: <condition>')",
    )

    @property
    def allocations(self) -> list[SuggestedAllocation]:
        """Shortcut to the suggested allocations."""
        return self.recommendation.suggested_allocations


class RiskParameters(BaseModel):
    """Vault health-factor parameters."""

    current_hf: float = Field(default=0.0, ge=0.0, description="Current health factor")
    min_redeem_hf: float = Field(default=0.0, ge=0.0, description="Minimum HF for redemptions")
    min_reserve_hf: float = Field(default=0.0, ge=0.0, description="Minimum HF for reserves")


class FundState(BaseModel):
    """Snapshot of the fund, supplied once per consensus run."""

    model_config = ConfigDict(frozen=True)

    total_aum: float = Field(ge=0.0, description="Total assets under management")
    current_allocation: dict[str, float] = Field(
        default_factory=dict, description="Cause category → current share of AUM",
    )
    risk_parameters: RiskParameters = Field(
        default_factory=RiskParameters, description="Vault risk parameters",
    )
    liquidity_available: float = Field(
        default=0.0, ge=0.0, description="Liquidity available for new allocations",
    )
