from wwham.engine import check_contraindications, criteria_match, evaluate_options, rule_applies
from wwham.schema import PatientProfile, WhoCategory
from wwham.slots import WHO_PROFILES, profile_for


def _names(result):
    return [o.class_name for o in result.advice]


def test_age_limit_rejects_and_notes(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, PatientProfile(age_years=8), global_rules=tiny_dataset.global_rules)
    assert "Med One" not in _names(rr)
    assert "Teens and adults only." in rr.cautions
    assert "Med One: not suitable under 12 years." in rr.cautions


def test_age_note_added_even_when_accepted(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, PatientProfile(age_years=30), global_rules=tiny_dataset.global_rules)
    assert "Med One" in _names(rr)
    assert "Teens and adults only." in rr.cautions


def test_unknown_age_skips_age_checks(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, PatientProfile(), global_rules=tiny_dataset.global_rules)
    assert _names(rr) == ["Med One", "Med Two"]
    assert rr.cautions == []


def test_pregnancy_avoid_rejects_and_caution_uses_default_note(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, profile_for("pregnant"), global_rules=tiny_dataset.global_rules)
    assert _names(rr) == ["Med Two"]
    assert "Check suitability in pregnancy." in rr.cautions


def test_breastfeeding_note(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, profile_for("breastfeeding"), global_rules=tiny_dataset.global_rules)
    assert "Ask first when breastfeeding." in rr.cautions
    assert "Med Two" in _names(rr)


def test_contraindication_in_other_conditions(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(
        cond,
        profile_for("adult"),
        other_conditions_text="I have Kidney Disease",
        global_rules=tiny_dataset.global_rules,
    )
    assert "Med One" not in _names(rr)
    assert "Med One: not suitable with kidney disease." in rr.cautions


def test_global_rule_matches_member_token(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rule = tiny_dataset.global_rules[0]
    assert rule_applies(rule, cond.options[0])
    assert not rule_applies(rule, cond.options[1])
    rr = evaluate_options(cond, profile_for("adult"), current_meds="Warfarin 5mg", global_rules=tiny_dataset.global_rules)
    assert "Med One" not in _names(rr)
    assert "Med One interacts with warfarin." in rr.cautions


def test_global_rule_matches_class_id(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, profile_for("toddler 1–4"), global_rules=tiny_dataset.global_rules)
    assert "Med Two is not for under 5s." in rr.cautions
    assert "med-two" not in [o.class_id for o in rr.advice]


def test_criteria_ignore_unknown_age(tiny_dataset):
    rule = tiny_dataset.global_rules[1]
    assert not criteria_match(rule.criteria, PatientProfile(), "", "")


def test_survivors_deduplicated_by_name(tiny_dataset):
    cond = tiny_dataset.get_condition("cond-a")
    rr = evaluate_options(cond, profile_for("adult"), global_rules=tiny_dataset.global_rules)
    assert _names(rr) == ["Med One", "Med Two"]
    assert rr.advice[1].class_id == "med-two"


def test_avoid_in_pregnancy_never_offered(dataset):
    preg = WHO_PROFILES[WhoCategory.PREGNANT]
    for cond in dataset.conditions:
        rr = evaluate_options(cond, preg, global_rules=dataset.global_rules)
        for opt in rr.advice:
            assert opt.pregnancy.suitability != "avoid"


def test_engine_is_pure(dataset):
    cond = dataset.get_condition("headache-simple")
    profile = profile_for("teen 13–17")
    first = evaluate_options(cond, profile, "none", "", dataset.global_rules)
    second = evaluate_options(cond, profile, "none", "", dataset.global_rules)
    assert first == second
    assert "Aspirin" not in _names(first)


def test_anticoagulant_blocks_nsaids(dataset):
    cond = dataset.get_condition("headache-simple")
    rr = evaluate_options(cond, profile_for("adult"), current_meds="apixaban", global_rules=dataset.global_rules)
    assert _names(rr) == ["Paracetamol"]


def test_negated_contraindication_is_ignored(tiny_dataset):
    opt = tiny_dataset.get_condition("cond-a").options[0]
    ok, notes = check_contraindications(opt, "", "No kidney disease, but asthma")
    assert ok and notes == []
    ok, notes = check_contraindications(opt, "", "no asthma. kidney disease")
    assert not ok
    assert notes == ["Med One: not suitable with kidney disease."]
