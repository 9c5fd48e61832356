import importlib.util
import warnings

import pytest
from pydantic import ValidationError

from vetassist import schemas
from vetassist.schemas import Case, DiagnosisResult, Rule, Species, SPECIES_NAMES


def test_case_schema():
    case = Case(species="Horse", age_years=8, observations=["mild limp", "", ""])
    assert case.species == Species.HORSE
    assert case.observations == ("mild limp", "", "")
    assert case.has_image is False
    with pytest.raises(ValidationError):
        Case(species="Horse", age_years=-1, observations=[])
    with pytest.raises(ValidationError):
        Case(species="Unicorn", age_years=1, observations=[])


def test_case_is_frozen():
    case = Case(species="Cow", age_years=3, observations=["cough"])
    with pytest.raises(Exception):
        case.species = Species.PIG


def test_diagnosis_result_confidence_bounds():
    base = {
        "disease_name": "Bloat",
        "explanation": "Gas in rumen",
        "treatment": "Decompression",
        "requires_vet_consultation": True,
    }
    assert DiagnosisResult(confidence=0, **base).confidence == 0
    assert DiagnosisResult(confidence=100, **base).confidence == 100
    with pytest.raises(ValidationError):
        DiagnosisResult(confidence=101, **base)
    with pytest.raises(ValidationError):
        DiagnosisResult(confidence=-5, **base)


def test_rule_to_result():
    rule = Rule(
        id="colic",
        disease_name="Colic",
        required_keywords=["rolling", "pawing"],
        explanation="Abdominal pain",
        treatment="Walk the horse",
        confidence=70,
    )
    result = rule.to_result()
    assert rule.required_keywords == frozenset({"rolling", "pawing"})
    assert rule.requires_vet_consultation is True
    assert result.rule_id == "colic"
    assert result.disease_name == "Colic"
    assert result.confidence == 70


def test_species_list():
    assert SPECIES_NAMES[0] == "Cow"
    assert SPECIES_NAMES[-1] == "Other"
    assert len(SPECIES_NAMES) == 11


def test_rule_keywords_normalized():
    rule = Rule(
        id="drool",
        disease_name="Drooling",
        required_keywords=[" Salivation ", "MOUTH", ""],
        explanation="e",
        treatment="t",
        confidence=50,
    )
    assert rule.required_keywords == frozenset({"salivation", "mouth"})
    with pytest.raises(ValidationError):
        Rule(id="x", disease_name="X", required_keywords=["  "], explanation="e", treatment="t", confidence=5)


def test_schemas_import_without_deprecation_warnings():
    spec = importlib.util.spec_from_file_location("schemas_fresh", schemas.__file__)
    module = importlib.util.module_from_spec(spec)
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        spec.loader.exec_module(module)
    assert module.Case.model_config["frozen"] is True
