from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .logging_config import get_logger
from .schema import Condition

logger = get_logger(__name__)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9+]+")


def tokenize(text: str) -> List[str]:
    return [t for t in _TOKEN_SPLIT.split((text or "").lower()) if t]


def levenshtein(a: str, b: str) -> int:
    a = a.lower()
    b = b.lower()
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur[j] = prev[j - 1]
            else:
                cur[j] = 1 + min(prev[j], cur[j - 1], prev[j - 1])
        prev = cur
    return prev[len(b)]


def _direct_match(text: str, condition: Condition) -> bool:
    if any(k.lower() in text for k in condition.symptom_keywords):
        return True
    return any(re.search(p, text, re.IGNORECASE) for p in condition.symptom_patterns)


def _fuzzy_candidates(condition: Condition, min_keyword_length: int) -> List[str]:
    heads: List[str] = []
    for kw in condition.symptom_keywords:
        parts = kw.lower().split()
        if parts and len(parts[0]) >= min_keyword_length and parts[0] not in heads:
            heads.append(parts[0])
    return heads


def classify(
    text: str,
    conditions: Sequence[Condition],
    *,
    max_distance: int = 2,
    min_keyword_length: int = 5,
) -> Optional[str]:
    """Map free text to a condition id, or ``None`` when clarification is needed.

    Keyword and pattern hits are checked first, in condition declaration
    order. Otherwise each token is compared by edit distance with the first
    word of every keyword; the closest match within ``max_distance`` wins and
    ties go to the earlier condition.
    """
    low = (text or "").lower()
    if not low.strip():
        return None

    for cond in conditions:
        if _direct_match(low, cond):
            return cond.id

    toks = tokenize(low)
    best: Optional[Tuple[int, int]] = None
    best_id: Optional[str] = None
    for idx, cond in enumerate(conditions):
        for head in _fuzzy_candidates(cond, min_keyword_length):
            for tok in toks:
                d = levenshtein(head, tok)
                if d > max_distance:
                    continue
                if best is None or (d, idx) < best:
                    best = (d, idx)
                    best_id = cond.id

    if best_id is None:
        logger.info("classification_miss", text_length=len(low), tokens=len(toks))
    else:
        logger.debug("classification_fuzzy", condition=best_id, distance=best[0] if best else None)
    return best_id


def resolve_condition_ref(value: Optional[str], conditions: Iterable[Condition]) -> Optional[str]:
    """Resolve an id, alias or display name to a condition id."""
    if not value:
        return None
    key = value.strip().lower()
    squashed = key.replace(" ", "").replace("-", "")
    for cond in conditions:
        names = [cond.id, cond.name] + list(cond.aliases)
        for n in names:
            n_low = n.lower()
            if key == n_low or squashed == n_low.replace(" ", "").replace("-", ""):
                return cond.id
    return None
