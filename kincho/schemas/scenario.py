"""Scenario file schema for replaying a consensus run.

A scenario bundles an allocation request, a fund state, and the
per-round results each evaluator should return. The CLI's ``run``
command loads one and drives the engine with ScriptedEvaluators.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from kincho.schemas.allocation import AllocationRequest, FundState
from kincho.schemas.evaluators import FinancialResult, MetaResult, RiskResult


class ScriptedEvaluations(BaseModel):
    """Per-round evaluator results; the last entry repeats once exhausted."""

    financial_analyzer: list[FinancialResult] = Field(min_length=1)
    risk_engine: list[RiskResult] = Field(min_length=1)
    meta_cognition: list[MetaResult] = Field(min_length=1)


class Scenario(BaseModel):
    """A complete, replayable consensus input."""

    request: AllocationRequest
    fund_state: FundState
    evaluations: ScriptedEvaluations
