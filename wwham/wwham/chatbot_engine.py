"""
Chatbot Conversation Engine - WWHAM intake

Walks a session through Who / What / How long / Action taken / Medication,
then the condition's safety question, and hands the filled slots to the
safety gate and eligibility engine.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .classifier import classify, resolve_condition_ref
from .config import Settings, get_settings
from .errors import DatasetUnavailable, InvalidSlotAnswer
from .logging_config import get_logger
from .pipeline import DatasetSource, recommend, resolve_dataset
from .resolver import DATA_NOT_LOADED, unavailable
from .rules_loader import DatasetStore
from .schema import (
    DURATION_BUCKETS,
    SLOT_NAMES,
    SLOT_STEPS,
    ConversationState,
    Dataset,
    Recommendation,
    Step,
    TurnResult,
    WhoCategory,
)
from .slots import normalise_free_answer, parse_duration, parse_who

logger = get_logger(__name__)

GREETING = (
    "Hi! I can help you choose an over-the-counter medicine for a few common problems. "
    "Tell me what's wrong, or just answer a few quick questions."
)
SAFETY_YES_FLAG = (
    "You reported a warning symptom: please speak to a pharmacist, GP or NHS 111 before taking any medicine."
)
AFFIRMATIVE_REPLIES = {"yes", "y", "yeah", "yep", "yes i do", "i do", "some of those", "yes some"}
# Answers about treatments and medicines are never read as the presenting problem.
_NO_CLASSIFY_STEPS = (Step.COLLECTING_CONDITION, Step.COLLECTING_ACTION, Step.COLLECTING_MEDS)


@dataclass
class Question:
    """Represents a question to ask the user"""
    variable: str
    text: str
    question_type: str  # 'choice', 'text'
    choices: Optional[List[str]] = None


class ChatbotEngine:
    """Slot-filling conversation engine for OTC triage."""

    def __init__(
        self,
        dataset: DatasetSource,
        *,
        negation_window: int = 12,
        max_distance: int = 2,
        min_keyword_length: int = 5,
    ):
        self.source = dataset
        self.negation_window = negation_window
        self.max_distance = max_distance
        self.min_keyword_length = min_keyword_length

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, store: Optional[DatasetStore] = None) -> "ChatbotEngine":
        settings = settings or get_settings()
        if store is None:
            store = DatasetStore(settings.resolved_dataset_path)
            store.try_load()
        return cls(
            store,
            negation_window=settings.negation_window,
            max_distance=settings.fuzzy_max_distance,
            min_keyword_length=settings.fuzzy_min_keyword_length,
        )

    def start_conversation(self) -> ConversationState:
        """Start a new session; restarting means calling this again."""
        return ConversationState()

    def is_conversation_complete(self, state: ConversationState) -> bool:
        return state.is_terminal

    def get_final_recommendation(self, state: ConversationState) -> Optional[Recommendation]:
        return state.recommendation

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def get_question(self, state: ConversationState, dataset: Dataset) -> Optional[Question]:
        step = state.step
        if step == Step.COLLECTING_WHO:
            return Question("who", "Who is the medicine for?", "choice", [w.value for w in WhoCategory])
        if step == Step.COLLECTING_CONDITION:
            return Question(
                "condition",
                "What is the main problem? Describe the symptoms in your own words.",
                "text",
                dataset.condition_names,
            )
        if step == Step.COLLECTING_DURATION:
            return Question("duration", "How long have you had the symptoms?", "choice", list(DURATION_BUCKETS))
        if step == Step.COLLECTING_ACTION:
            return Question(
                "action_taken",
                "What have you tried so far, if anything?",
                "text",
                ["Nothing yet", "Rest and fluids", "Painkillers"],
            )
        if step == Step.COLLECTING_MEDS:
            return Question(
                "current_meds",
                "Are you taking any other medicines, or do you have any other health conditions or allergies?",
                "text",
                ["None"],
            )
        if step == Step.SAFETY_CHECK:
            condition = dataset.get_condition(state.slots.get("condition"))
            text = condition.safety_question if condition else "Any other worrying symptoms?"
            return Question("safety_check", text, "text", ["No", "Yes (please describe)"])
        if step == Step.CLARIFY:
            return Question(
                "condition",
                "I'm not sure which problem you mean. Please confirm the main problem:",
                "choice",
                dataset.condition_names,
            )
        return None

    def _validate_answer(self, dataset: Dataset, variable: str, answer: Any) -> Tuple[Optional[str], bool]:
        """Validate and normalise an answer for ``variable``."""
        text = str(answer or "").strip()
        if variable == "who":
            who = parse_who(text)
            return (who.value, True) if who else (None, False)
        if variable == "duration":
            duration = parse_duration(text)
            return (duration, True) if duration else (None, False)
        if variable == "condition":
            cid = self._resolve_condition(dataset, text, allow_index=False)
            return (cid, True) if cid else (None, False)
        value = normalise_free_answer(text)
        return (value, True) if value else (None, False)

    def _resolve_condition(self, dataset: Dataset, text: str, allow_index: bool) -> Optional[str]:
        if allow_index and text.isdigit():
            idx = int(text) - 1
            if 0 <= idx < len(dataset.conditions):
                return dataset.conditions[idx].id
        return resolve_condition_ref(text, dataset.conditions) or classify(
            text,
            dataset.conditions,
            max_distance=self.max_distance,
            min_keyword_length=self.min_keyword_length,
        )

    # ------------------------------------------------------------------
    # Turn handling
    # ------------------------------------------------------------------

    def classify_and_advance(self, state: ConversationState, user_text: str) -> TurnResult:
        """Process exactly one user turn. Never raises."""
        try:
            dataset = resolve_dataset(self.source)
        except DatasetUnavailable:
            logger.warning("turn_without_dataset", step=state.step.value)
            return TurnResult(kind="unavailable", step=state.step, prompt=DATA_NOT_LOADED, recommendation=unavailable())

        try:
            return self._advance(state, dataset, user_text)
        except Exception:
            logger.exception("turn_failed", step=state.step.value)
            return TurnResult(kind="unavailable", step=state.step, prompt=DATA_NOT_LOADED, recommendation=unavailable())

    def _advance(self, state: ConversationState, dataset: Dataset, user_text: str) -> TurnResult:
        if state.is_terminal:
            return self._result_turn(state)

        text = (user_text or "").strip()
        step = state.step
        if text:
            # One line per turn so a negation never reaches into the next answer.
            state.free_text = f"{state.free_text}\n{text}" if state.free_text else text
            state.history.append({"step": step.value, "answer": text})

        if step == Step.SAFETY_CHECK:
            return self._complete(state, dataset, affirmative=text.lower().rstrip(".!") in AFFIRMATIVE_REPLIES)

        if step == Step.CLARIFY:
            cid = self._resolve_condition(dataset, text, allow_index=True)
            if cid is None:
                return self._prompt(state, dataset, error="Sorry, I didn't recognise that. Please pick one of the listed problems.")
            state.slots["condition"] = cid
            logger.info("condition_clarified", condition=cid)
            return self._move_on(state, dataset)

        error = None
        slot = next((s for s, st in SLOT_STEPS.items() if st == step), None)
        if slot is not None:
            try:
                self._fill_slot(state, dataset, slot, text)
            except InvalidSlotAnswer as e:
                error = e.message

        if text:
            self._fill_opportunistically(
                state,
                dataset,
                text,
                skip_condition=step in _NO_CLASSIFY_STEPS,
                skip_duration=(step == Step.COLLECTING_WHO),
            )

        if error:
            return self._prompt(state, dataset, error=error)
        return self._move_on(state, dataset)

    def _fill_slot(self, state: ConversationState, dataset: Dataset, slot: str, text: str) -> None:
        value, ok = self._validate_answer(dataset, slot, text)
        if ok:
            state.slots[slot] = value
            return
        if slot == "condition":
            # Unresolved: asked once, deferred to clarification at the end.
            logger.info("condition_deferred", text_length=len(text))
            return
        if slot == "who":
            raise InvalidSlotAnswer(slot, "Please choose one of: " + ", ".join(w.value for w in WhoCategory) + ".")
        if slot == "duration":
            raise InvalidSlotAnswer(slot, "Please give a time, for example '2 days', or choose: " + ", ".join(DURATION_BUCKETS) + ".")
        raise InvalidSlotAnswer(slot, "Please type an answer, or 'none'.")

    def _fill_opportunistically(
        self, state: ConversationState, dataset: Dataset, text: str, skip_condition: bool, skip_duration: bool
    ) -> None:
        if not skip_condition and state.slots.get("condition") is None:
            cid = classify(
                text,
                dataset.conditions,
                max_distance=self.max_distance,
                min_keyword_length=self.min_keyword_length,
            )
            if cid:
                state.slots["condition"] = cid
        if not skip_duration and state.slots.get("duration") is None:
            duration = parse_duration(text)
            if duration:
                state.slots["duration"] = duration

    def _next_step(self, state: ConversationState) -> Step:
        for slot in SLOT_NAMES:
            if state.slots.get(slot) is not None:
                continue
            if slot == "condition" and slot in state.attempted:
                continue
            return SLOT_STEPS[slot]
        if state.slots.get("condition") is None:
            return Step.CLARIFY
        return Step.SAFETY_CHECK

    def _move_on(self, state: ConversationState, dataset: Dataset) -> TurnResult:
        nxt = self._next_step(state)
        for slot, st in SLOT_STEPS.items():
            if st == nxt and slot not in state.attempted:
                state.attempted.append(slot)
        state.step = nxt
        return self._prompt(state, dataset)

    def _prompt(self, state: ConversationState, dataset: Dataset, error: Optional[str] = None) -> TurnResult:
        question = self.get_question(state, dataset)
        return TurnResult(
            kind="clarify" if state.step == Step.CLARIFY else "prompt",
            step=state.step,
            prompt=question.text if question else "",
            options_hint=list(question.choices or []) if question else [],
            error=error,
        )

    def _complete(self, state: ConversationState, dataset: Dataset, affirmative: bool) -> TurnResult:
        condition = dataset.get_condition(state.slots.get("condition"))
        if condition is None:
            state.step = Step.CLARIFY
            return self._prompt(state, dataset)

        rec = recommend(
            dataset,
            condition,
            state.slots,
            state.free_text,
            other_conditions_text=state.free_text,
            extra_flags=[SAFETY_YES_FLAG] if affirmative else [],
            negation_window=self.negation_window,
        )
        for f in rec.flags:
            if f not in state.flags:
                state.flags.append(f)
        for c in rec.cautions:
            if c not in state.cautions:
                state.cautions.append(c)
        state.recommendation = rec
        state.step = Step.COMPLETE
        return self._result_turn(state)

    def _result_turn(self, state: ConversationState) -> TurnResult:
        rec = state.recommendation
        if rec is not None and rec.outcome == "safety_veto":
            prompt = "Please don't treat this yourself. Get medical advice:"
        elif rec is not None and rec.outcome == "consult_pharmacist":
            prompt = "None of the usual options suit you. Please speak to a pharmacist."
        else:
            prompt = f"Here are some options for {rec.title.lower()}." if rec is not None else ""
        return TurnResult(kind="recommendation", step=Step.COMPLETE, prompt=prompt, recommendation=rec)
