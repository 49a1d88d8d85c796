from __future__ import annotations

from typing import Iterable, List, Optional

from .schema import Condition, Recommendation, RuleResult

DATA_NOT_LOADED = "Data not loaded. Please try again shortly."
CONDITION_NOT_FOUND = "Condition not found. Please choose one of the listed conditions."


def _uniq(items: Iterable[str]) -> List[str]:
    out: List[str] = []
    for i in items:
        if i and i not in out:
            out.append(i)
    return out


def assemble(
    condition: Condition,
    rule_result: RuleResult,
    flags: Iterable[str],
    self_care_defaults: Optional[Iterable[str]] = None,
) -> Recommendation:
    flag_list = _uniq(flags)
    cautions = _uniq(rule_result.cautions)
    if flag_list:
        return Recommendation(
            title=condition.name,
            condition_id=condition.id,
            outcome="safety_veto",
            advice=[],
            self_care=[],
            cautions=cautions,
            flags=flag_list,
        )

    self_care = _uniq(self_care_defaults if self_care_defaults is not None else condition.default_self_care)
    advice = list(rule_result.advice)
    return Recommendation(
        title=condition.name,
        condition_id=condition.id,
        outcome="advice" if advice else "consult_pharmacist",
        advice=advice,
        self_care=self_care,
        cautions=cautions,
        flags=[],
    )


def unavailable() -> Recommendation:
    return Recommendation(outcome="dataset_unavailable", cautions=[DATA_NOT_LOADED])


def unresolved() -> Recommendation:
    return Recommendation(outcome="unresolved_condition", cautions=[CONDITION_NOT_FOUND])
