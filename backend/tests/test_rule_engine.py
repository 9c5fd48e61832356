"""Tests for rule_engine: first-match-wins keyword rules, fallback, rule table loading."""
from unittest.mock import patch

import pytest

from vetassist import rule_engine
from vetassist.rule_engine import FALLBACK_RESULT, RuleConfigError, evaluate, explain, load_rules
from vetassist.schemas import Case, Rule


def _case(*observations, species="Cow"):
    return Case(species=species, age_years=3, observations=observations)


def _rule(rule_id, keywords, confidence=70, name=None):
    return Rule(
        id=rule_id,
        disease_name=name or rule_id.title(),
        required_keywords=keywords,
        explanation=f"{rule_id} explanation",
        treatment=f"{rule_id} treatment",
        requires_vet_consultation=False,
        confidence=confidence,
    )


def test_fmd_scenario():
    result = evaluate(_case("excessive salivation", "mouth blisters", "difficulty walking"))
    assert result.disease_name == "Foot-and-Mouth Disease (FMD)"
    assert result.confidence == 85
    assert result.requires_vet_consultation is True
    assert result.rule_id == "fmd"


def test_mild_limp_falls_back():
    result = evaluate(_case("mild limp", "", ""))
    assert result.disease_name == "General Health Assessment Required"
    assert result.confidence == 60
    assert result.requires_vet_consultation is True
    assert result == FALLBACK_RESULT


def test_matching_is_case_insensitive():
    rules = [_rule("drool", ["salivation"])]
    assert evaluate(_case("SALIVATION"), rules).rule_id == "drool"
    assert evaluate(_case("salivation"), rules).rule_id == "drool"
    assert evaluate(_case("Excessive Salivation"), rules).rule_id == "drool"


def test_keywords_may_span_observations():
    """Keywords are matched against the joined text, not per observation."""
    rules = [_rule("pair", ["cough", "discharge"])]
    assert evaluate(_case("coughing", "nasal discharge"), rules).rule_id == "pair"


def test_substring_not_token_match():
    rules = [_rule("walk", ["walking"])]
    assert evaluate(_case("difficulty walking"), rules).rule_id == "walk"
    assert evaluate(_case("sleepwalking"), rules).rule_id == "walk"
    assert evaluate(_case("walks fine"), rules) == FALLBACK_RESULT


def test_all_keywords_required():
    rules = [_rule("triple", ["a1", "b2", "c3"])]
    assert evaluate(_case("a1 b2"), rules) == FALLBACK_RESULT
    assert evaluate(_case("a1", "b2", "c3"), rules).rule_id == "triple"


def test_earlier_rule_wins_when_both_match():
    first = _rule("first", ["fever"], confidence=50)
    second = _rule("second", ["fever", "cough"], confidence=95)
    case = _case("fever and cough")
    assert evaluate(case, [first, second]).rule_id == "first"
    assert evaluate(case, [second, first]).rule_id == "second"


def test_shipped_table_fmd_precedes_choke():
    """Text satisfying both FMD and choke keywords selects FMD (declared first)."""
    case = _case("excessive salivation and difficulty swallowing", "blisters on snout", "difficulty walking")
    rule_ids = [r.id for r in load_rules()]
    assert rule_ids.index("fmd") < rule_ids.index("choke")
    assert evaluate(case).rule_id == "fmd"
    assert evaluate(_case("difficulty swallowing", "excessive salivation")).rule_id == "choke"


def test_result_copies_rule_fields():
    rule = _rule("x", ["itch"], confidence=42, name="Mange")
    result = evaluate(_case("itching"), [rule])
    assert result.disease_name == "Mange"
    assert result.explanation == "x explanation"
    assert result.treatment == "x treatment"
    assert result.requires_vet_consultation is False
    assert result.confidence == 42


def test_evaluate_is_deterministic():
    case = _case("distended abdomen", "laboured breathing")
    assert evaluate(case) == evaluate(case)
    assert evaluate(case).rule_id == "bloat"


def test_empty_rule_list_returns_fallback():
    assert evaluate(_case("excessive salivation mouth blisters difficulty walking"), []) == FALLBACK_RESULT


def test_species_and_age_do_not_affect_result():
    obs = ("swollen udder", "bloody milk")
    a = evaluate(Case(species="Goat", age_years=1, observations=obs))
    b = evaluate(Case(species="Dog", age_years=12, observations=obs, has_image=True))
    assert a == b


def test_observation_text_joins_in_order():
    assert rule_engine.observation_text(["Fever", "", "COUGH"]) == "fever  cough"


def test_explain_marks_first_match_selected():
    rules = [_rule("a", ["fever", "rash"]), _rule("b", ["fever"]), _rule("c", ["fever"])]
    trace = explain(_case("high fever"), rules)
    assert [t["rule_id"] for t in trace] == ["a", "b", "c"]
    assert trace[0]["matched"] is False
    assert trace[0]["missing_keywords"] == ["rash"]
    assert trace[1]["selected"] is True
    assert trace[2]["matched"] is True
    assert trace[2]["selected"] is False


def test_load_rules_shipped_table():
    rules = load_rules()
    assert rules[0].id == "fmd"
    assert rules[0].required_keywords == frozenset({"salivation", "blister", "walking"})
    assert len({r.id for r in rules}) == len(rules)
    assert all(0 <= r.confidence <= 100 for r in rules)


def test_load_rules_lowercases_keywords(tmp_path):
    path = tmp_path / "rules.yml"
    path.write_text(
        "rules:\n"
        "  - id: r1\n"
        "    disease_name: Test\n"
        "    required_keywords: [' Fever ', COUGH]\n"
        "    explanation: e\n"
        "    treatment: t\n"
        "    confidence: 50\n"
    )
    rules = load_rules(str(path))
    assert rules[0].required_keywords == frozenset({"fever", "cough"})
    assert rules[0].requires_vet_consultation is True


def test_load_rules_uses_env_override(tmp_path):
    path = tmp_path / "alt.yml"
    path.write_text(
        "rules:\n"
        "  - {id: only, disease_name: Only, required_keywords: [zzz], explanation: e, treatment: t, confidence: 10}\n"
    )
    with patch.dict("os.environ", {"VET_RULES_PATH": str(path)}, clear=False):
        rules = load_rules()
    assert [r.id for r in rules] == ["only"]


@pytest.mark.parametrize("body", [
    "not_rules: []\n",
    "rules:\n  - id: r1\n    disease_name: X\n    required_keywords: []\n    explanation: e\n    treatment: t\n    confidence: 50\n",
    "rules:\n  - id: r1\n    disease_name: X\n    required_keywords: [a]\n    explanation: e\n    treatment: t\n    confidence: 150\n",
    "rules:\n  - id: r1\n    required_keywords: [a]\n    explanation: e\n    treatment: t\n    confidence: 50\n",
    "rules:\n  - {id: r1, disease_name: X, required_keywords: [a], explanation: e, treatment: t, confidence: 5}\n"
    "  - {id: r1, disease_name: Y, required_keywords: [b], explanation: e, treatment: t, confidence: 5}\n",
    "rules:\n  - {id: fallback, disease_name: X, required_keywords: [a], explanation: e, treatment: t, confidence: 5}\n",
    "rules: [\n",
])
def test_load_rules_rejects_malformed_tables(tmp_path, body):
    path = tmp_path / "bad.yml"
    path.write_text(body)
    with pytest.raises(RuleConfigError):
        load_rules(str(path))


def test_load_rules_missing_file(tmp_path):
    with pytest.raises(RuleConfigError):
        load_rules(str(tmp_path / "nope.yml"))


def test_mixed_case_keywords_in_hand_built_rule():
    rules = [_rule("drool", ["Salivation", "MOUTH"])]
    case = _case("excessive salivation", "sores in mouth")
    assert evaluate(case, rules).rule_id == "drool"
    assert rule_engine.matches(rules[0], "SALIVATION and Mouth")
    trace = explain(_case("salivation"), rules)
    assert trace[0]["missing_keywords"] == ["mouth"]
