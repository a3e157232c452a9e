"""Evaluator result schemas.

Each of the three evaluators returns its own result variant. The
``kind`` literal tags the variant, so raw payloads (e.g. JSON from an
evaluator service) are parsed into the right model by
``parse_evaluator_result`` instead of by probing optional fields.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

_Unit = Annotated[float, Field(ge=0.0, le=1.0)]


class PortfolioImpact(BaseModel):
    """Portfolio-level effect of the allocation."""

    diversification_effect: float = Field(default=0.0, description="Diversification score")
    expected_return_impact: float = Field(default=0.0, description="Expected return impact")
    concentration_change: float = Field(
        default=0.0, description="Change in HHI concentration (negative is better)",
    )


class FinancialResult(BaseModel):
    """Output of the financial analyzer."""

    kind: Literal["financial"] = "financial"
    approved: bool = Field(description="Whether the analyzer approves the request")
    fit_score: _Unit = Field(description="Portfolio fit score")
    reasoning: str = Field(default="", description="Analyzer reasoning")
    portfolio_impact: PortfolioImpact = Field(
        default_factory=PortfolioImpact, description="Portfolio impact sub-scores",
    )


class ComplianceChecks(BaseModel):
    """Compliance booleans; True means the check passed."""

    concentration_limit: bool = True
    sector_limit: bool = True
    liquidity_requirement: bool = True


class RiskAssessment(BaseModel):
    """Risk sub-scores produced by the risk engine."""

    market_risk: _Unit = 0.0
    credit_risk: _Unit = 0.0
    liquidity_risk: _Unit = 0.0
    operational_risk: _Unit = 0.0
    aggregate_risk: _Unit = 0.0
    compliance_checks: ComplianceChecks = Field(default_factory=ComplianceChecks)


class RiskResult(BaseModel):
    """Output of the risk engine."""

    kind: Literal["risk"] = "risk"
    approved: bool = Field(description="Whether the risk engine approves the request")
    risk_assessment: RiskAssessment = Field(description="Risk sub-scores")
    reasoning: str = Field(default="", description="Risk engine reasoning")


class ReasoningStep(BaseModel):
    """One premise → conclusion step of a reasoning chain."""

    step: int = Field(ge=1)
    premise: str
    conclusion: str


class MetaResult(BaseModel):
    """Output of the meta-cognition evaluator."""

    kind: Literal["meta"] = "meta"
    confidence: _Unit = Field(description="Confidence in an automated decision")
    uncertainty_sources: list[str] = Field(default_factory=list)
    reasoning_chain: list[ReasoningStep] = Field(default_factory=list)
    human_override_recommended: bool = False


EvaluatorResult = Annotated[
    FinancialResult | RiskResult | MetaResult,
    Field(discriminator="kind"),
]

_RESULT_ADAPTER = TypeAdapter(EvaluatorResult)


def parse_evaluator_result(data: Any) -> FinancialResult | RiskResult | MetaResult:
    """Validate a raw evaluator payload into the variant its ``kind`` names.

    Raises:
        pydantic.ValidationError: If ``kind`` is missing or unknown, or the
            payload does not fit the named variant.
    """
    return _RESULT_ADAPTER.validate_python(data)
