from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


Suitability = Literal["allow", "caution", "avoid"]
Outcome = Literal[
    "advice",
    "consult_pharmacist",
    "safety_veto",
    "dataset_unavailable",
    "unresolved_condition",
]
TurnKind = Literal["prompt", "clarify", "recommendation", "unavailable"]

SLOT_NAMES: List[str] = ["who", "condition", "duration", "action_taken", "current_meds"]

DURATION_BUCKETS: List[str] = [
    "< 24 hours",
    "1–3 days",
    "4–7 days",
    "> 7 days",
    "Recurrent / frequent",
]


class WhoCategory(str, Enum):
    ADULT = "adult"
    TEEN = "teen 13–17"
    CHILD = "child 5–12"
    TODDLER = "toddler 1–4"
    INFANT = "infant <1"
    PREGNANT = "pregnant"
    BREASTFEEDING = "breastfeeding"


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class AgeLimits(BaseModel):
    min_years: Optional[float] = None
    max_years: Optional[float] = None
    note: Optional[str] = None

    model_config = {"extra": "forbid", "frozen": True}


class SuitabilityNote(BaseModel):
    suitability: Suitability = "allow"
    note: Optional[str] = None

    model_config = {"extra": "forbid", "frozen": True}


class MedicationOption(BaseModel):
    class_id: str
    class_name: str
    members_examples: List[str] = Field(default_factory=list)
    example_products: List[str] = Field(default_factory=list)
    age_limits: AgeLimits = Field(default_factory=AgeLimits)
    pregnancy: SuitabilityNote = Field(default_factory=SuitabilityNote)
    breastfeeding: SuitabilityNote = Field(default_factory=SuitabilityNote)
    contraindications: List[str] = Field(default_factory=list)
    dose_adult: Optional[str] = None
    description: Optional[str] = None

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def member_tokens(self) -> List[str]:
        """First word of each member example, lower-cased."""
        return [m.split(" ")[0].lower() for m in self.members_examples if m.strip()]


class RedFlag(BaseModel):
    id: str
    text: str
    patterns: List[str] = Field(default_factory=list)
    slot_equals: Dict[str, List[str]] = Field(default_factory=dict)
    refer_to: Optional[str] = None

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        for p in v:
            try:
                re.compile(p)
            except re.error as e:
                raise ValueError(f"invalid red flag pattern {p!r}: {e}")
        return v

    @model_validator(mode="after")
    def validate_has_trigger(self) -> "RedFlag":
        if not self.patterns and not self.slot_equals:
            raise ValueError(f"red flag {self.id} has no trigger")
        return self


class Condition(BaseModel):
    id: str
    name: str
    aliases: List[str] = Field(default_factory=list)
    symptom_keywords: List[str] = Field(default_factory=list)
    symptom_patterns: List[str] = Field(default_factory=list)
    safety_question: str = "Any other worrying symptoms, such as bleeding, severe pain or feeling very unwell?"
    red_flags: List[RedFlag] = Field(default_factory=list)
    options: List[MedicationOption] = Field(default_factory=list)
    default_self_care: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("symptom_patterns")
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        for p in v:
            try:
                re.compile(p)
            except re.error as e:
                raise ValueError(f"invalid symptom pattern {p!r}: {e}")
        return v


class GlobalRuleCriteria(BaseModel):
    age_lt_years: Optional[float] = None
    pregnant: Optional[bool] = None
    breastfeeding: Optional[bool] = None
    meds_any: List[str] = Field(default_factory=list)
    conditions_any: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}


class GlobalRule(BaseModel):
    id: Optional[str] = None
    applies_to: List[str]
    criteria: GlobalRuleCriteria = Field(default_factory=GlobalRuleCriteria)
    reason: str

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="after")
    def validate_nonempty(self) -> "GlobalRule":
        if not self.applies_to:
            raise ValueError("applies_to must be non-empty")
        return self


class Dataset(BaseModel):
    version: str = "0"
    conditions: List[Condition]
    global_rules: List[GlobalRule] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}

    def get_condition(self, condition_id: Optional[str]) -> Optional[Condition]:
        for c in self.conditions:
            if c.id == condition_id:
                return c
        return None

    @property
    def condition_names(self) -> List[str]:
        return [c.name for c in self.conditions]


# ---------------------------------------------------------------------------
# Derived / per-evaluation values
# ---------------------------------------------------------------------------


class PatientProfile(BaseModel):
    age_years: Optional[float] = None
    pregnant: bool = False
    breastfeeding: bool = False

    model_config = {"extra": "forbid", "frozen": True}


class RuleResult(BaseModel):
    advice: List[MedicationOption] = Field(default_factory=list)
    cautions: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}


class Recommendation(BaseModel):
    title: str = ""
    condition_id: Optional[str] = None
    outcome: Outcome
    advice: List[MedicationOption] = Field(default_factory=list)
    self_care: List[str] = Field(default_factory=list)
    cautions: List[str] = Field(default_factory=list)
    flags: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}


class EvaluationPayload(BaseModel):
    condition: Optional[str] = None
    who: Optional[str] = None
    duration: Optional[str] = None
    action_taken: str = ""
    current_meds: str = ""
    description: str = ""
    other_answers: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


# ---------------------------------------------------------------------------
# Dialogue
# ---------------------------------------------------------------------------


class Step(str, Enum):
    GREETING = "greeting"
    COLLECTING_WHO = "collecting_who"
    COLLECTING_CONDITION = "collecting_condition"
    COLLECTING_DURATION = "collecting_duration"
    COLLECTING_ACTION = "collecting_action"
    COLLECTING_MEDS = "collecting_meds"
    SAFETY_CHECK = "safety_check"
    CLARIFY = "clarify"
    COMPLETE = "complete"


SLOT_STEPS: Dict[str, Step] = {
    "who": Step.COLLECTING_WHO,
    "condition": Step.COLLECTING_CONDITION,
    "duration": Step.COLLECTING_DURATION,
    "action_taken": Step.COLLECTING_ACTION,
    "current_meds": Step.COLLECTING_MEDS,
}


@dataclass
class ConversationState:
    """Tracks one session of the WWHAM dialogue."""
    step: Step = Step.GREETING
    slots: Dict[str, Optional[str]] = field(default_factory=lambda: {s: None for s in SLOT_NAMES})
    free_text: str = ""
    flags: List[str] = field(default_factory=list)
    cautions: List[str] = field(default_factory=list)
    attempted: List[str] = field(default_factory=list)
    history: List[Dict[str, str]] = field(default_factory=list)
    recommendation: Optional[Recommendation] = None

    @property
    def is_terminal(self) -> bool:
        return self.step == Step.COMPLETE


class TurnResult(BaseModel):
    kind: TurnKind
    step: Step
    prompt: str = ""
    options_hint: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    recommendation: Optional[Recommendation] = None

    model_config = {"extra": "forbid"}
