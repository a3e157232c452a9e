"""Modification merging and application.

Three operations on AllocationModification lists:

- ``merge_round_modifications`` resolves conflicts between the
  modifications proposed within one round (reject wins, otherwise the
  most conservative amount).
- ``merge_modifications`` folds every round's merged set into one, with
  later rounds overriding earlier ones per cause.
- ``apply_modifications`` builds the working request a round evaluates.

Modifications missing the data their type requires are skipped by all
three.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from kincho.schemas.allocation import AllocationRequest
from kincho.schemas.consensus import (
    AllocationModification,
    ModificationType,
    NegotiationRound,
)


def _group_by_cause(
    modifications: Iterable[AllocationModification],
) -> dict[str, list[AllocationModification]]:
    groups: dict[str, list[AllocationModification]] = {}
    for mod in modifications:
        groups.setdefault(mod.cause_id, []).append(mod)
    return groups


def merge_round_modifications(
    modifications: Iterable[AllocationModification],
) -> list[AllocationModification]:
    """Merge the modifications proposed within a single round.

    Per cause, in first-seen order:

    - any ``reject_cause`` wins outright and the cause's other
      modifications are discarded;
    - otherwise ``adjust_amount`` proposals collapse into one carrying
      the minimum proposed amount and all contributing reasonings;
    - ``add_condition`` modifications pass through one per condition.
    """
    merged: list[AllocationModification] = []

    for cause_id, mods in _group_by_cause(modifications).items():
        reject = next(
            (m for m in mods if m.modification_type is ModificationType.REJECT_CAUSE),
            None,
        )
        if reject is not None:
            merged.append(reject)
            continue

        amount_mods = [
            m for m in mods
            if m.modification_type is ModificationType.ADJUST_AMOUNT and m.is_actionable
        ]
        if amount_mods:
            merged.append(AllocationModification(
                cause_id=cause_id,
                modification_type=ModificationType.ADJUST_AMOUNT,
                original_amount=amount_mods[0].original_amount,
                proposed_amount=min(m.proposed_amount for m in amount_mods),
                reasoning="Merged: " + "; ".join(m.reasoning for m in amount_mods),
            ))

        merged.extend(
            m for m in mods
            if m.modification_type is ModificationType.ADD_CONDITION and m.is_actionable
        )

    return merged


def merge_modifications(rounds: Sequence[NegotiationRound]) -> list[AllocationModification]:
    """Fold the merged modifications of all rounds into one set.

    Keeps only the latest entry per cause; later rounds fully override
    earlier ones. Merging the same rounds again yields the same set.
    """
    latest: dict[str, AllocationModification] = {}
    for rnd in rounds:
        for mod in rnd.merged_modifications or []:
            latest[mod.cause_id] = mod
    return list(latest.values())


def apply_modifications(
    request: AllocationRequest,
    modifications: Sequence[AllocationModification],
) -> AllocationRequest:
    """Build the working request for a round.

    Precedence per cause is reject > adjust > condition: a rejected
    cause is removed whatever else was proposed for it, otherwise the
    last ``adjust_amount`` sets its amount. Conditions are recorded on
    the request as ``"<cause_id>: <condition>"`` and never change the
    allocations. The input request is left untouched.
    """
    actionable = [m for m in modifications if m.is_actionable]
    if not actionable:
        return request

    rejected: set[str] = set()
    amounts: dict[str, float] = {}
    conditions = list(request.conditions)

    for mod in actionable:
        if mod.modification_type is ModificationType.REJECT_CAUSE:
            rejected.add(mod.cause_id)
        elif mod.modification_type is ModificationType.ADJUST_AMOUNT:
            amounts[mod.cause_id] = mod.proposed_amount
        else:
            conditions.append(f"{mod.cause_id}: {mod.condition}")

    allocations = [
        allocation.model_copy(update={"amount": amounts[allocation.cause_id]})
        if allocation.cause_id in amounts
        else allocation
        for allocation in request.allocations
        if allocation.cause_id not in rejected
    ]

    recommendation = request.recommendation.model_copy(
        update={"suggested_allocations": allocations},
    )
    return request.model_copy(
        update={"recommendation": recommendation, "conditions": conditions},
    )
