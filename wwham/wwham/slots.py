from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from .schema import DURATION_BUCKETS, PatientProfile, WhoCategory


# Lookup from the closed who category to the profile the rule engine sees.
WHO_PROFILES: Dict[WhoCategory, PatientProfile] = {
    WhoCategory.ADULT: PatientProfile(age_years=30),
    WhoCategory.TEEN: PatientProfile(age_years=15),
    WhoCategory.CHILD: PatientProfile(age_years=8),
    WhoCategory.TODDLER: PatientProfile(age_years=3),
    WhoCategory.INFANT: PatientProfile(age_years=0.5),
    WhoCategory.PREGNANT: PatientProfile(age_years=30, pregnant=True),
    WhoCategory.BREASTFEEDING: PatientProfile(age_years=30, breastfeeding=True),
}

# Checked in this order; pregnancy wording beats everything else.
WHO_SYNONYMS: List[Tuple[WhoCategory, List[str]]] = [
    (WhoCategory.PREGNANT, [r"\bpregnan", r"\bexpecting\b"]),
    (WhoCategory.BREASTFEEDING, [r"\bbreast\s*-?\s*feed", r"\bnursing\b", r"\blactating\b"]),
    (WhoCategory.INFANT, [r"\binfant\b", r"\bbaby\b", r"\bnew\s*born\b"]),
    (WhoCategory.TODDLER, [r"\btoddler\b"]),
    (WhoCategory.CHILD, [r"\bchild\b", r"\bkids?\b", r"\bchildren\b"]),
    (WhoCategory.TEEN, [r"\bteen", r"\badolescent\b"]),
    (WhoCategory.ADULT, [r"\badult\b", r"\bgrown\s*-?\s*up\b", r"\bme\b", r"\bmyself\b", r"\bself\b"]),
]

NONE_ANSWERS = {
    "none", "no", "nope", "nothing", "nothing yet", "not yet", "nil", "n/a", "na",
    "no meds", "no medication", "no medicines", "none yet", "not really",
}

_WORD_NUMBERS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "couple": 2, "couple of": 2, "few": 3,
}

_AMOUNT = r"\b(\d+(?:\.\d+)?|couple of|couple|few|one|two|three|four|five|six|seven|eight|nine|ten|an|a)"
_DURATION_NUM = re.compile(
    r"(?:\b(?P<qual>over|more\s+than|longer\s+than|at\s+least|less\s+than|under|nearly|almost|about|around)\s+)?"
    r"(?:\ba\s+)?" + _AMOUNT + r"\s*(?P<unit>hours?|hrs?|days?|weeks?|wks?|months?|years?)\b"
)

# "6 months pregnant" and "8 months old" describe the patient, not the illness.
_PATIENT_AGE = re.compile(r"\b\d+(?:\.\d+)?\s*(?:-\s*)?(?:months?|weeks?|years?)(?:\s*-\s*|\s+)(?:pregnant|old|of\s+age)\b")

_RECURRENT = re.compile(
    r"\b(recurr(ent|ing)|on\s*(and|&|-)\s*off|keeps?\s+coming\s+back|comes?\s+and\s+goes|frequent(ly)?|regularly|all\s+the\s+time)\b"
)

_DURATION_PHRASES: List[Tuple[str, str]] = [
    (r"\b(today|this\s+(morning|afternoon|evening)|tonight|last\s+night|yesterday|just\s+started)\b", "< 24 hours"),
    (r"\b(couple\s+(of\s+)?days|few\s+days|day\s+or\s+two)\b", "1–3 days"),
    (r"\b(several\s+days|most\s+of\s+the\s+week)\b", "4–7 days"),
    (r"\b(weeks|fortnight|months|ages|a\s+long\s+time)\b", "> 7 days"),
]


def _canonical_key(text: str) -> str:
    return re.sub(r"\s+", "", text.lower().replace("-", "–"))


_CANONICAL_DURATIONS = {_canonical_key(b): b for b in DURATION_BUCKETS}
_CANONICAL_WHO = {_canonical_key(w.value): w for w in WhoCategory}


def _who_from_age(age_years: float) -> WhoCategory:
    if age_years < 1:
        return WhoCategory.INFANT
    if age_years < 5:
        return WhoCategory.TODDLER
    if age_years < 13:
        return WhoCategory.CHILD
    if age_years < 18:
        return WhoCategory.TEEN
    return WhoCategory.ADULT


def parse_who(text: Optional[str]) -> Optional[WhoCategory]:
    """Resolve an answer to one of the seven who categories, or ``None``."""
    if not text or not text.strip():
        return None
    low = text.strip().lower()
    canon = _CANONICAL_WHO.get(_canonical_key(low))
    if canon is not None:
        return canon

    for category, patterns in WHO_SYNONYMS[:2]:
        if any(re.search(p, low) for p in patterns):
            return category

    # An explicit age outranks words like "child" or "baby".
    m = re.search(r"(\d+(?:\.\d+)?)\s*(months?|mths?|mo|weeks?|wks?)\b", low)
    if m:
        n = float(m.group(1))
        unit = m.group(2)
        return _who_from_age(n / 52.0 if unit.startswith("w") else n / 12.0)
    m = re.search(r"(\d+(?:\.\d+)?)\s*(?:-\s*)?(?:years?|yrs?|y/?o)\b", low) or re.search(r"\baged?\s+(\d+(?:\.\d+)?)\b", low)
    if m is None and re.fullmatch(r"\d+(?:\.\d+)?", low):
        return _who_from_age(float(low))
    if m:
        return _who_from_age(float(m.group(1)))

    for category, patterns in WHO_SYNONYMS[2:]:
        if any(re.search(p, low) for p in patterns):
            return category
    return None


def profile_for(who: Optional[str]) -> PatientProfile:
    if not who:
        return PatientProfile()
    try:
        category = WhoCategory(who)
    except ValueError:
        category = parse_who(who)
    if category is None:
        return PatientProfile()
    return WHO_PROFILES[category]


def _bucket_days(days: float) -> str:
    if days < 1:
        return "< 24 hours"
    if days <= 3:
        return "1–3 days"
    if days <= 7:
        return "4–7 days"
    return "> 7 days"


def _amount(raw: str) -> float:
    raw = re.sub(r"\s+", " ", raw.strip())
    if raw in _WORD_NUMBERS:
        return float(_WORD_NUMBERS[raw])
    return float(raw)


def parse_duration(text: Optional[str]) -> Optional[str]:
    """Map an answer to one of the five duration buckets, or ``None``.

    Hours (or zero days) fall in ``< 24 hours``, 1 to 3 days in ``1–3 days``,
    4 to 7 days in ``4–7 days`` and anything longer in ``> 7 days``. A single
    week counts as ``4–7 days``.
    """
    if not text or not text.strip():
        return None
    low = text.strip().lower()

    canon = _CANONICAL_DURATIONS.get(_canonical_key(low))
    if canon is not None:
        return canon

    low = _PATIENT_AGE.sub(" ", low)

    if _RECURRENT.search(low):
        return "Recurrent / frequent"

    m = _DURATION_NUM.search(low)
    if m:
        n = _amount(m.group(2))
        unit = m.group("unit")
        qual = re.sub(r"\s+", " ", m.group("qual") or "")
        over = qual in ("over", "more than", "longer than")
        if unit.startswith(("hour", "hr")):
            if n < 24 or (n == 24 and not over):
                return "< 24 hours"
            days = n / 24.0
        elif unit.startswith("day"):
            days = n
        elif unit.startswith(("week", "wk")):
            if not qual and n <= 1:
                return "4–7 days"
            days = n * 7
        else:
            return "> 7 days"
        if over:
            days += 1
        elif qual in ("less than", "under") and days >= 1:
            days -= 1
        return _bucket_days(days)

    for pattern, bucket in _DURATION_PHRASES:
        if re.search(pattern, low):
            return bucket
    return None


def normalise_free_answer(text: Optional[str]) -> Optional[str]:
    """Action and medication answers: any non-empty text, with 'none' folded."""
    if text is None:
        return None
    cleaned = re.sub(r"\s+", " ", text).strip()
    if not cleaned:
        return None
    if cleaned.lower().rstrip(".!") in NONE_ANSWERS:
        return "none"
    return cleaned


def meds_text(value: Optional[str]) -> str:
    """Medication text as the rule engine wants it: empty for 'none'."""
    if not value or value == "none":
        return ""
    return value
