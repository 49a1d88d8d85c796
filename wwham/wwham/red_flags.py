from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from .logging_config import get_logger
from .schema import Condition, RedFlag

logger = get_logger(__name__)

NEGATION_WORDS = ("no", "not", "denies", "denied", "without", "never", "none")
_NEGATION = re.compile(r"\b(" + "|".join(NEGATION_WORDS) + r")\b")
_CLAUSE_BREAK = re.compile(r"[.,;!?\n]|\bbut\b|\bhowever\b")

AFFIRMATIVE = {"yes", "y", "true", "1"}


def _is_negated(text: str, start: int, window: int) -> bool:
    lead = text[max(0, start - window):start]
    breaks = list(_CLAUSE_BREAK.finditer(lead))
    if breaks:
        lead = lead[breaks[-1].end():]
    return _NEGATION.search(lead) is not None


def pattern_fires(pattern: str, text: str, negation_window: int = 12) -> bool:
    """True when any occurrence of ``pattern`` is not preceded by a negation."""
    for m in re.finditer(pattern, text, re.IGNORECASE):
        if not _is_negated(text, m.start(), negation_window):
            return True
    return False


def mentioned(term: str, text: str, negation_window: int = 12) -> bool:
    """True when ``term`` occurs in ``text`` outside a negated phrase."""
    if not term or not text:
        return False
    return pattern_fires(re.escape(term.lower()), text.lower(), negation_window)


def _slots_match(flag: RedFlag, slots: Mapping[str, Optional[str]]) -> bool:
    if not flag.slot_equals:
        return False
    return all(slots.get(slot) in values for slot, values in flag.slot_equals.items())


def _answered_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in AFFIRMATIVE
    return False


def check_red_flags(
    condition: Condition,
    free_text: str,
    slots: Mapping[str, Optional[str]],
    answers: Optional[Dict[str, Any]] = None,
    *,
    negation_window: int = 12,
) -> List[str]:
    """Return the display text of every red flag that fires, in declaration order.

    Every flag is evaluated; a non-empty result vetoes all medication advice.
    """
    low = (free_text or "").lower()
    answers = answers or {}
    fired: List[str] = []
    fired_ids: List[str] = []
    for flag in condition.red_flags:
        hit = (
            any(pattern_fires(p, low, negation_window) for p in flag.patterns)
            or _slots_match(flag, slots)
            or _answered_yes(answers.get(flag.id))
        )
        if hit and flag.text not in fired:
            fired.append(flag.text)
            fired_ids.append(flag.id)
    if fired_ids:
        logger.warning("red_flags_fired", condition=condition.id, flags=fired_ids)
    return fired
