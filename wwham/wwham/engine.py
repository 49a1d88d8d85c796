from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from .logging_config import get_logger
from .red_flags import mentioned
from .schema import (
    Condition,
    GlobalRule,
    GlobalRuleCriteria,
    MedicationOption,
    PatientProfile,
    RuleResult,
    SuitabilityNote,
)

logger = get_logger(__name__)

DEFAULT_PREGNANCY_NOTE = "Check suitability in pregnancy."
DEFAULT_BREASTFEEDING_NOTE = "Check suitability while breastfeeding."


def _compare(op: str, left: float, right: float) -> bool:
    if op == "lt":
        return float(left) < float(right)
    if op == "le":
        return float(left) <= float(right)
    if op == "gt":
        return float(left) > float(right)
    if op == "ge":
        return float(left) >= float(right)
    raise ValueError(f"unknown op: {op}")


def _fmt_years(years: float) -> str:
    if years < 1:
        return f"{round(years * 12)} months"
    if float(years).is_integer():
        return f"{int(years)} years"
    return f"{years:g} years"


def _contains_any(needles: Iterable[str], haystack: str, negation_window: int = 12) -> Optional[str]:
    for n in needles:
        if mentioned(n, haystack, negation_window):
            return n
    return None


def check_age(option: MedicationOption, profile: PatientProfile) -> Tuple[bool, List[str]]:
    if profile.age_years is None:
        return True, []
    limits = option.age_limits
    notes: List[str] = []
    if limits.note:
        notes.append(limits.note)
    if limits.min_years is not None and _compare("lt", profile.age_years, limits.min_years):
        notes.append(f"{option.class_name}: not suitable under {_fmt_years(limits.min_years)}.")
        return False, notes
    if limits.max_years is not None and _compare("gt", profile.age_years, limits.max_years):
        notes.append(f"{option.class_name}: not suitable over {_fmt_years(limits.max_years)}.")
        return False, notes
    return True, notes


def _check_suitability(flagged: bool, info: SuitabilityNote, default_note: str) -> Tuple[bool, List[str]]:
    if not flagged or info.suitability == "allow":
        return True, []
    return info.suitability != "avoid", [info.note or default_note]


def check_pregnancy(option: MedicationOption, profile: PatientProfile) -> Tuple[bool, List[str]]:
    ok, notes = _check_suitability(profile.pregnant, option.pregnancy, DEFAULT_PREGNANCY_NOTE)
    if not ok:
        return ok, notes
    ok_bf, bf_notes = _check_suitability(profile.breastfeeding, option.breastfeeding, DEFAULT_BREASTFEEDING_NOTE)
    return ok_bf, notes + bf_notes


def check_contraindications(
    option: MedicationOption,
    current_meds: str,
    other_conditions_text: str,
    negation_window: int = 12,
) -> Tuple[bool, List[str]]:
    hit = _contains_any(option.contraindications, current_meds, negation_window) or _contains_any(
        option.contraindications, other_conditions_text, negation_window
    )
    if hit:
        return False, [f"{option.class_name}: not suitable with {hit}."]
    return True, []


def rule_applies(rule: GlobalRule, option: MedicationOption) -> bool:
    targets = {a.lower() for a in rule.applies_to}
    if option.class_id.lower() in targets:
        return True
    return any(tok in targets for tok in option.member_tokens)


def criteria_match(
    criteria: GlobalRuleCriteria,
    profile: PatientProfile,
    current_meds: str,
    other_conditions_text: str,
    negation_window: int = 12,
) -> bool:
    if criteria.age_lt_years is not None and profile.age_years is not None:
        if _compare("lt", profile.age_years, criteria.age_lt_years):
            return True
    if criteria.pregnant and profile.pregnant:
        return True
    if criteria.breastfeeding and profile.breastfeeding:
        return True
    if _contains_any(criteria.meds_any, current_meds, negation_window):
        return True
    if _contains_any(criteria.conditions_any, other_conditions_text, negation_window):
        return True
    return False


def check_global_rules(
    option: MedicationOption,
    rules: Iterable[GlobalRule],
    profile: PatientProfile,
    current_meds: str,
    other_conditions_text: str,
    negation_window: int = 12,
) -> Tuple[bool, List[str]]:
    reasons: List[str] = []
    for rule in rules:
        if rule_applies(rule, option) and criteria_match(
            rule.criteria, profile, current_meds, other_conditions_text, negation_window
        ):
            reasons.append(rule.reason)
    return not reasons, reasons


def evaluate_options(
    condition: Condition,
    profile: PatientProfile,
    current_meds: str = "",
    other_conditions_text: str = "",
    global_rules: Iterable[GlobalRule] = (),
    negation_window: int = 12,
) -> RuleResult:
    """Filter a condition's medication options for one patient.

    Options are checked in declaration order: age, then pregnancy and
    breastfeeding, then contraindications, then global rules. Negated
    mentions such as "no asthma" are not matched. The first failing check
    rejects the option; notes gathered on the way are kept as cautions
    either way.
    """
    rules = list(global_rules)
    meds = current_meds or ""
    other = other_conditions_text or ""
    advice: List[MedicationOption] = []
    seen_names: List[str] = []
    cautions: List[str] = []

    for option in condition.options:
        checks = (
            ("age", lambda o=option: check_age(o, profile)),
            ("pregnancy", lambda o=option: check_pregnancy(o, profile)),
            ("contraindication", lambda o=option: check_contraindications(o, meds, other, negation_window)),
            ("global_rule", lambda o=option: check_global_rules(o, rules, profile, meds, other, negation_window)),
        )
        accepted = True
        for name, check in checks:
            ok, notes = check()
            for n in notes:
                if n not in cautions:
                    cautions.append(n)
            if not ok:
                accepted = False
                logger.debug("option_rejected", condition=condition.id, option=option.class_id, check=name)
                break
        if accepted and option.class_name not in seen_names:
            seen_names.append(option.class_name)
            advice.append(option)

    return RuleResult(advice=advice, cautions=cautions)
