"""Evaluator adapter: runs the three subagents for a negotiation round.

The evaluators are injected as an EvaluatorSet so alternate or mock
implementations can be substituted without patching. All three run
concurrently and the round waits for every one of them; a single
failure aborts the round.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, NamedTuple, Protocol, TypeVar

from kincho.schemas.allocation import AllocationRequest, FundState
from kincho.schemas.consensus import SubagentId
from kincho.schemas.evaluators import (
    FinancialResult,
    MetaResult,
    RiskResult,
    parse_evaluator_result,
)
from kincho.schemas.scenario import ScriptedEvaluations

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

EvaluatorFn = Callable[[AllocationRequest, FundState], Any]


class EvaluatorError(RuntimeError):
    """An evaluator failed or returned an unusable result."""

    def __init__(self, subagent_id: SubagentId, message: str) -> None:
        super().__init__(f"{subagent_id.value}: {message}")
        self.subagent_id = subagent_id


class EvaluatorSet(Protocol):
    """The three evaluators consulted every round."""

    async def analyze_financials(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> FinancialResult: ...

    async def assess_risk(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> RiskResult: ...

    async def evaluate_meta_cognition(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> MetaResult: ...


class RoundAssessments(NamedTuple):
    """Raw evaluator results for one round."""

    financial: FinancialResult
    risk: RiskResult
    meta: MetaResult


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class FunctionEvaluators:
    """Adapts three plain callables (sync or async) into an EvaluatorSet."""

    def __init__(
        self,
        financial: EvaluatorFn,
        risk: EvaluatorFn,
        meta: EvaluatorFn,
    ) -> None:
        self._financial = financial
        self._risk = risk
        self._meta = meta

    async def analyze_financials(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> FinancialResult:
        return await _maybe_await(self._financial(request, fund_state))

    async def assess_risk(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> RiskResult:
        return await _maybe_await(self._risk(request, fund_state))

    async def evaluate_meta_cognition(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> MetaResult:
        return await _maybe_await(self._meta(request, fund_state))


class ScriptedEvaluators:
    """Replays pre-recorded results, one entry per round.

    Each evaluator advances through its own list and repeats the last
    entry once the list is exhausted. The requests each evaluator saw are
    kept in ``seen_requests`` for inspection.
    """

    def __init__(
        self,
        financial: Sequence[FinancialResult],
        risk: Sequence[RiskResult],
        meta: Sequence[MetaResult],
    ) -> None:
        if not financial or not risk or not meta:
            raise ValueError("Every evaluator needs at least one scripted result")
        self._scripts: dict[SubagentId, Sequence[Any]] = {
            SubagentId.FINANCIAL_ANALYZER: financial,
            SubagentId.RISK_ENGINE: risk,
            SubagentId.META_COGNITION: meta,
        }
        self._calls: dict[SubagentId, int] = dict.fromkeys(self._scripts, 0)
        self.seen_requests: dict[SubagentId, list[AllocationRequest]] = {
            sid: [] for sid in self._scripts
        }

    @classmethod
    def from_evaluations(cls, evaluations: ScriptedEvaluations) -> ScriptedEvaluators:
        return cls(
            financial=evaluations.financial_analyzer,
            risk=evaluations.risk_engine,
            meta=evaluations.meta_cognition,
        )

    def _next(self, subagent_id: SubagentId, request: AllocationRequest) -> Any:
        script = self._scripts[subagent_id]
        index = min(self._calls[subagent_id], len(script) - 1)
        self._calls[subagent_id] += 1
        self.seen_requests[subagent_id].append(request)
        return script[index]

    async def analyze_financials(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> FinancialResult:
        return self._next(SubagentId.FINANCIAL_ANALYZER, request)

    async def assess_risk(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> RiskResult:
        return self._next(SubagentId.RISK_ENGINE, request)

    async def evaluate_meta_cognition(
        self, request: AllocationRequest, fund_state: FundState,
    ) -> MetaResult:
        return self._next(SubagentId.META_COGNITION, request)


async def _call_evaluator(
    subagent_id: SubagentId,
    method: Callable[[AllocationRequest, FundState], Any],
    request: AllocationRequest,
    fund_state: FundState,
    expected: type[_T],
) -> _T:
    """Call one evaluator and check the variant it returned.

    Raw mapping payloads are parsed by their ``kind`` tag first.
    """
    try:
        result = await _maybe_await(method(request, fund_state))
        if isinstance(result, Mapping):
            result = parse_evaluator_result(result)
    except Exception as exc:
        logger.error("Evaluator %s failed: %s", subagent_id.value, exc)
        raise EvaluatorError(subagent_id, f"evaluation failed: {exc}") from exc

    if not isinstance(result, expected):
        logger.error(
            "Evaluator %s returned %s, expected %s",
            subagent_id.value, type(result).__name__, expected.__name__,
        )
        raise EvaluatorError(
            subagent_id,
            f"returned {type(result).__name__}, expected {expected.__name__}",
        )
    return result


async def gather_assessments(
    evaluators: EvaluatorSet,
    request: AllocationRequest,
    fund_state: FundState,
) -> RoundAssessments:
    """Run all three evaluators concurrently and wait for every result.

    Each evaluator receives its own deep copy of the request and fund
    state. When one evaluator fails, the others are cancelled and
    awaited before the failure propagates.

    Raises:
        EvaluatorError: If any evaluator raises or returns the wrong
            result type. No partial result is returned.
    """
    calls = [
        (SubagentId.FINANCIAL_ANALYZER, evaluators.analyze_financials, FinancialResult),
        (SubagentId.RISK_ENGINE, evaluators.assess_risk, RiskResult),
        (SubagentId.META_COGNITION, evaluators.evaluate_meta_cognition, MetaResult),
    ]
    tasks = [
        asyncio.create_task(_call_evaluator(
            subagent_id,
            method,
            request.model_copy(deep=True),
            fund_state.model_copy(deep=True),
            expected,
        ))
        for subagent_id, method, expected in calls
    ]

    try:
        financial, risk, meta = await asyncio.gather(*tasks)
    except EvaluatorError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return RoundAssessments(financial=financial, risk=risk, meta=meta)
