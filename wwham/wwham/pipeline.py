from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .classifier import classify, resolve_condition_ref
from .engine import evaluate_options
from .errors import DatasetUnavailable, UnresolvedCondition
from .logging_config import get_logger
from .red_flags import check_red_flags
from .resolver import assemble, unavailable, unresolved
from .rules_loader import DatasetStore
from .schema import Condition, Dataset, EvaluationPayload, Recommendation
from .slots import meds_text, normalise_free_answer, parse_duration, parse_who, profile_for

logger = get_logger(__name__)

DatasetSource = Union[Dataset, DatasetStore, None]


def resolve_dataset(source: DatasetSource) -> Dataset:
    if source is None:
        raise DatasetUnavailable("Data not loaded")
    if isinstance(source, DatasetStore):
        return source.get()
    return source


def recommend(
    dataset: Dataset,
    condition: Condition,
    slots: Mapping[str, Optional[str]],
    free_text: str,
    *,
    answers: Optional[Dict[str, Any]] = None,
    other_conditions_text: str = "",
    extra_flags: Iterable[str] = (),
    negation_window: int = 12,
) -> Recommendation:
    """Safety gate, then eligibility, then assembly, for one filled set of slots."""
    flags = check_red_flags(condition, free_text, slots, answers, negation_window=negation_window)
    flags.extend(f for f in extra_flags if f not in flags)
    rule_result = evaluate_options(
        condition,
        profile_for(slots.get("who")),
        current_meds=meds_text(slots.get("current_meds")),
        other_conditions_text=other_conditions_text,
        global_rules=dataset.global_rules,
        negation_window=negation_window,
    )
    rec = assemble(condition, rule_result, flags, condition.default_self_care)
    logger.info(
        "recommendation_assembled",
        condition=condition.id,
        outcome=rec.outcome,
        advice=len(rec.advice),
        cautions=len(rec.cautions),
        flags=len(rec.flags),
    )
    return rec


def _other_conditions_text(other_answers: Mapping[str, Any]) -> str:
    parts = []
    for key in ("conditions", "allergies"):
        value = other_answers.get(key)
        if isinstance(value, (list, tuple)):
            parts.extend(str(v) for v in value)
        elif value:
            parts.append(str(value))
    return "\n".join(parts)


def _payload_condition(
    payload: EvaluationPayload, data: Dataset, max_distance: int, min_keyword_length: int
) -> Condition:
    condition_id = resolve_condition_ref(payload.condition, data.conditions)
    if condition_id is None and payload.description:
        condition_id = classify(
            payload.description,
            data.conditions,
            max_distance=max_distance,
            min_keyword_length=min_keyword_length,
        )
    condition = data.get_condition(condition_id)
    if condition is None:
        text = f"{payload.condition or ''} {payload.description}".strip()
        raise UnresolvedCondition(len(text), data.condition_names)
    return condition


def evaluate(
    payload: Union[EvaluationPayload, Mapping[str, Any]],
    dataset: DatasetSource,
    *,
    negation_window: int = 12,
    max_distance: int = 2,
    min_keyword_length: int = 5,
) -> Recommendation:
    """Stateless evaluation of a completed form.

    Never raises: a missing dataset or an internal fault comes back as a
    ``dataset_unavailable`` recommendation.
    """
    try:
        data = resolve_dataset(dataset)
    except DatasetUnavailable:
        logger.warning("evaluate_without_dataset")
        return unavailable()

    try:
        if not isinstance(payload, EvaluationPayload):
            payload = EvaluationPayload(**payload)

        condition = _payload_condition(payload, data, max_distance, min_keyword_length)
        who = parse_who(payload.who)
        duration = parse_duration(payload.duration) or parse_duration(payload.description)
        slots = {
            "who": who.value if who else None,
            "condition": condition.id,
            "duration": duration,
            "action_taken": normalise_free_answer(payload.action_taken),
            "current_meds": normalise_free_answer(payload.current_meds),
        }
        return recommend(
            data,
            condition,
            slots,
            payload.description,
            answers=payload.other_answers,
            other_conditions_text=_other_conditions_text(payload.other_answers),
            negation_window=negation_window,
        )
    except UnresolvedCondition as e:
        logger.info("evaluate_unresolved_condition", candidates=len(e.candidates))
        return unresolved()
    except Exception:
        logger.exception("evaluate_failed")
        return unavailable()
