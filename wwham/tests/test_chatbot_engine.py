from wwham.chatbot_engine import SAFETY_YES_FLAG, ChatbotEngine
from wwham.config import Settings
from wwham.rules_loader import DatasetStore
from wwham.schema import Step


def _run(engine, state, turns):
    result = None
    for text in turns:
        result = engine.classify_and_advance(state, text)
    return result


def test_full_conversation_in_order(engine):
    state = engine.start_conversation()
    assert state.step == Step.GREETING

    r = engine.classify_and_advance(state, "")
    assert r.kind == "prompt" and r.step == Step.COLLECTING_WHO
    assert "adult" in r.options_hint

    r = engine.classify_and_advance(state, "adult")
    assert r.step == Step.COLLECTING_CONDITION
    r = engine.classify_and_advance(state, "I've got a sore throat")
    assert r.step == Step.COLLECTING_DURATION
    r = engine.classify_and_advance(state, "2 days")
    assert r.step == Step.COLLECTING_ACTION
    r = engine.classify_and_advance(state, "nothing yet")
    assert r.step == Step.COLLECTING_MEDS
    r = engine.classify_and_advance(state, "none")
    assert r.step == Step.SAFETY_CHECK
    assert r.prompt == engine.source.get().get_condition("sore-throat-acute").safety_question

    r = engine.classify_and_advance(state, "no")
    assert r.kind == "recommendation"
    assert state.is_terminal
    assert r.recommendation.outcome == "advice"
    assert state.slots == {
        "who": "adult",
        "condition": "sore-throat-acute",
        "duration": "1–3 days",
        "action_taken": "none",
        "current_meds": "none",
    }


def test_opening_message_fills_condition_and_duration(engine):
    state = engine.start_conversation()
    r = engine.classify_and_advance(state, "worst headache of my life, started today")
    assert state.slots["condition"] == "headache-simple"
    assert state.slots["duration"] == "< 24 hours"
    # who is always asked
    assert r.step == Step.COLLECTING_WHO

    r = _run(engine, state, ["adult", "nothing", "none"])
    assert r.step == Step.SAFETY_CHECK
    r = engine.classify_and_advance(state, "no")
    assert r.recommendation.outcome == "safety_veto"
    assert r.recommendation.advice == []
    assert state.flags


def test_invalid_answer_repeats_question(engine):
    state = engine.start_conversation()
    engine.classify_and_advance(state, "")
    r = engine.classify_and_advance(state, "banana")
    assert r.step == Step.COLLECTING_WHO
    assert r.error
    assert state.slots["who"] is None

    _run(engine, state, ["adult", "hay fever"])
    r = engine.classify_and_advance(state, "dunno")
    assert r.step == Step.COLLECTING_DURATION
    assert r.error


def test_who_step_does_not_set_duration(engine):
    state = engine.start_conversation()
    _run(engine, state, ["", "8 months"])
    assert state.slots["who"] == "infant <1"
    assert state.slots["duration"] is None


def test_unresolved_condition_goes_to_clarify(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["I feel weird", "adult"])
    assert r.step == Step.COLLECTING_CONDITION
    r = _run(engine, state, ["I feel weird", "3 days", "rest", "none"])
    assert r.kind == "clarify"
    assert r.step == Step.CLARIFY
    assert "Hay fever" in r.options_hint

    r = engine.classify_and_advance(state, "still weird")
    assert r.kind == "clarify"
    assert r.error

    r = engine.classify_and_advance(state, "2")
    assert state.slots["condition"] == "allergic-rhinitis"
    assert r.step == Step.SAFETY_CHECK


def test_terminal_state_is_frozen(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["sore throat", "adult", "2 days", "none", "none", "no"])
    assert state.is_terminal
    slots_before = dict(state.slots)
    again = engine.classify_and_advance(state, "actually it is a headache for 3 weeks")
    assert again.kind == "recommendation"
    assert again.recommendation == r.recommendation
    assert state.slots == slots_before


def test_yes_to_safety_question_vetoes(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["heartburn", "adult", "2 days", "none", "none", "yes"])
    assert r.recommendation.outcome == "safety_veto"
    assert SAFETY_YES_FLAG in r.recommendation.flags


def test_meds_feed_global_rules(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["headache", "adult", "1 day", "nothing", "I take warfarin", "no"])
    assert [o.class_id for o in r.recommendation.advice] == ["paracetamol"]


def test_sessions_are_independent(engine):
    a = engine.start_conversation()
    b = engine.start_conversation()
    engine.classify_and_advance(a, "sore throat")
    assert b.slots["condition"] is None
    assert b.free_text == ""


def test_unloaded_dataset_returns_unavailable(tmp_path):
    engine = ChatbotEngine(DatasetStore(tmp_path / "missing.json"))
    state = engine.start_conversation()
    r = engine.classify_and_advance(state, "sore throat")
    assert r.kind == "unavailable"
    assert r.recommendation.outcome == "dataset_unavailable"
    assert state.step == Step.GREETING


def test_from_settings(tmp_path):
    settings = Settings(dataset_path=tmp_path / "missing.json", negation_window=20)
    engine = ChatbotEngine.from_settings(settings)
    assert engine.negation_window == 20
    r = engine.classify_and_advance(engine.start_conversation(), "hi")
    assert r.kind == "unavailable"


def test_earlier_no_does_not_negate_safety_reply(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["diarrhoea", "adult", "2 days", "nothing", "No", "Blood in my poo"])
    assert r.recommendation.outcome == "safety_veto"
    assert r.recommendation.advice == []

    state = engine.start_conversation()
    r = _run(engine, state, ["headache", "adult", "1 day", "nothing", "none", "worst headache ever"])
    assert r.recommendation.outcome == "safety_veto"


def test_negation_inside_one_answer_still_applies(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["diarrhoea", "adult", "2 days", "nothing", "none", "no blood"])
    assert r.recommendation.outcome == "advice"


def test_medication_answer_does_not_guess_condition(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["", "adult", "I feel weird", "2 days", "nothing", "I have a penicillin allergy"])
    assert state.slots["condition"] is None
    assert r.kind == "clarify"


def test_negated_condition_does_not_reject_option(engine):
    state = engine.start_conversation()
    r = _run(engine, state, ["headache", "adult", "1 day", "nothing", "no asthma, no liver disease", "no"])
    assert [o.class_id for o in r.recommendation.advice] == ["paracetamol", "nsaid-ibuprofen", "aspirin"]

    state = engine.start_conversation()
    r = _run(engine, state, ["headache", "adult", "1 day", "nothing", "I have asthma", "no"])
    assert [o.class_id for o in r.recommendation.advice] == ["paracetamol"]
