"""
Rule-based diagnosis: combined symptom text -> first matching rule from rules.yml, else a fixed
general-assessment result. Matching is plain lowercase substring containment.
"""
import os
import logging
import yaml
from typing import Dict, Iterable, List, Optional

from .schemas import Case, DiagnosisResult, Rule

logger = logging.getLogger(__name__)

_DEFAULT_RULES_PATH = os.path.join(os.path.dirname(__file__), "rules.yml")

_rules_cache: Dict[str, List[Rule]] = {}

FALLBACK_RULE_ID = "fallback"

FALLBACK_RESULT = DiagnosisResult(
    disease_name="General Health Assessment Required",
    explanation=(
        "Based on the symptoms provided, a comprehensive examination is needed to determine "
        "the exact condition. Multiple conditions could present with these symptoms."
    ),
    treatment=(
        "Monitor the animal closely. Ensure adequate nutrition and hydration. Keep the animal "
        "comfortable and reduce stress factors."
    ),
    requires_vet_consultation=True,
    confidence=60,
    rule_id=FALLBACK_RULE_ID,
)


class RuleConfigError(ValueError):
    """Rule table could not be loaded."""


def _rules_path(path: Optional[str] = None) -> str:
    return path or os.getenv("VET_RULES_PATH") or _DEFAULT_RULES_PATH


def _parse_rule(idx: int, raw) -> Rule:
    if not isinstance(raw, dict):
        raise RuleConfigError(f"Rule #{idx} is not a mapping.")
    keywords = raw.get("required_keywords")
    if not isinstance(keywords, list) or not keywords:
        raise RuleConfigError(f"Rule #{idx} ({raw.get('id', '?')}) needs a non-empty required_keywords list.")
    try:
        return Rule(**raw)
    except (TypeError, ValueError) as e:
        raise RuleConfigError(f"Rule #{idx} ({raw.get('id', '?')}) is invalid: {e}") from e


def load_rules(path: Optional[str] = None) -> List[Rule]:
    """Load and cache the ordered rule table. Raises RuleConfigError on a malformed file."""
    path = _rules_path(path)
    if path in _rules_cache:
        return _rules_cache[path]
    if not os.path.isfile(path):
        raise RuleConfigError(f"Rule table not found: {path}")
    with open(path) as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuleConfigError(f"Rule table is not valid YAML: {path}") from e
    raw_rules = config.get("rules") if isinstance(config, dict) else None
    if not isinstance(raw_rules, list):
        raise RuleConfigError(f"Rule table has no 'rules' list: {path}")

    rules = []
    seen_ids = set()
    for idx, raw in enumerate(raw_rules):
        rule = _parse_rule(idx, raw)
        if rule.id in seen_ids or rule.id == FALLBACK_RULE_ID:
            raise RuleConfigError(f"Duplicate or reserved rule id: {rule.id}")
        seen_ids.add(rule.id)
        rules.append(rule)
    logger.info("Loaded %d diagnosis rules from %s", len(rules), path)
    _rules_cache[path] = rules
    return rules


def clear_cache() -> None:
    _rules_cache.clear()


def observation_text(observations: Iterable[str]) -> str:
    """Join observations in order into one lowercase blob."""
    return " ".join(str(o) for o in observations).lower()


def matches(rule: Rule, text: str) -> bool:
    lower = text.lower()
    return all(k in lower for k in rule.required_keywords)


def evaluate(case: Case, rules: Optional[List[Rule]] = None) -> DiagnosisResult:
    """
    Return the result of the first rule (in table order) whose keywords all occur in the
    case's observations, or FALLBACK_RESULT. Pure function of the observation text.
    """
    if rules is None:
        rules = load_rules()
    text = observation_text(case.observations)
    for rule in rules:
        if matches(rule, text):
            logger.debug("Rule %s matched", rule.id)
            return rule.to_result()
    logger.debug("No rule matched; using fallback")
    return FALLBACK_RESULT


def explain(case: Case, rules: Optional[List[Rule]] = None) -> List[dict]:
    """Per-rule trace in priority order; 'selected' marks the rule evaluate() would pick."""
    if rules is None:
        rules = load_rules()
    text = observation_text(case.observations)
    trace = []
    selected = False
    for rule in rules:
        missing = sorted(k for k in rule.required_keywords if k not in text)
        matched = not missing
        trace.append({
            "rule_id": rule.id,
            "disease_name": rule.disease_name,
            "matched": matched,
            "selected": matched and not selected,
            "missing_keywords": missing,
        })
        if matched:
            selected = True
    return trace
