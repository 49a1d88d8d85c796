"""
Integrity checks for the OTC reference dataset: identifiers, red flag
triggers, global rule targets and classifier coverage.
"""
from __future__ import annotations

from collections import Counter
from typing import Dict, List, Set

from .classifier import classify
from .schema import SLOT_NAMES, Condition, Dataset


def _duplicates(values: List[str]) -> List[str]:
    return sorted(v for v, n in Counter(values).items() if n > 1)


def check_condition(condition: Condition, dataset: Dataset) -> Dict:
    option_ids = [o.class_id for o in condition.options]
    flag_ids = [f.id for f in condition.red_flags]

    unknown_slots: List[str] = []
    for flag in condition.red_flags:
        for slot in flag.slot_equals:
            if slot not in SLOT_NAMES:
                unknown_slots.append(f"{flag.id}:{slot}")

    classified_as = classify(condition.name, dataset.conditions)

    report = {
        'condition_id': condition.id,
        'duplicate_option_ids': _duplicates(option_ids),
        'duplicate_red_flag_ids': _duplicates(flag_ids),
        'unknown_slot_triggers': unknown_slots,
        'name_classifies_to': classified_as,
        'has_options': len(condition.options) > 0,
        'has_safety_question': bool(condition.safety_question.strip()),
    }
    report['summary_pass'] = (
        len(report['duplicate_option_ids']) == 0
        and len(report['duplicate_red_flag_ids']) == 0
        and len(unknown_slots) == 0
        and classified_as == condition.id
        and report['has_options']
        and report['has_safety_question']
    )
    return report


def check_global_rules(dataset: Dataset) -> Dict:
    known: Set[str] = set()
    for cond in dataset.conditions:
        for opt in cond.options:
            known.add(opt.class_id.lower())
            known.update(opt.member_tokens)

    unknown_targets: List[str] = []
    for idx, rule in enumerate(dataset.global_rules):
        rule_name = rule.id or f"rule[{idx}]"
        missing = [a for a in rule.applies_to if a.lower() not in known]
        # A rule may list extra member tokens, but it must hit at least one option.
        if len(missing) == len(rule.applies_to):
            unknown_targets.append(rule_name)

    empty_criteria = [
        rule.id or f"rule[{idx}]"
        for idx, rule in enumerate(dataset.global_rules)
        if rule.criteria.model_dump(exclude_defaults=True) == {}
    ]

    rule_ids = [r.id for r in dataset.global_rules if r.id]
    return {
        'rules': len(dataset.global_rules),
        'rules_matching_no_option': unknown_targets,
        'rules_without_criteria': empty_criteria,
        'duplicate_rule_ids': _duplicates(rule_ids),
        'summary_pass': not unknown_targets and not empty_criteria and not _duplicates(rule_ids),
    }


def check_dataset(dataset: Dataset) -> Dict:
    condition_ids = [c.id for c in dataset.conditions]
    report: Dict = {
        'version': dataset.version,
        'duplicate_condition_ids': _duplicates(condition_ids),
        'conditions': [check_condition(c, dataset) for c in dataset.conditions],
        'global_rules': check_global_rules(dataset),
    }
    report['summary_pass'] = (
        len(report['duplicate_condition_ids']) == 0
        and all(c['summary_pass'] for c in report['conditions'])
        and report['global_rules']['summary_pass']
    )
    return report
