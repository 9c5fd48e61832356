"""
Check the rule table against the demo cases: every case's submission is validated and
evaluated, and the selected rule is compared with meta.expected_rule.
"""
import argparse
import csv
import json
import os
import sys
import time
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import load_cases
from vetassist import rule_engine
from vetassist.schemas import CaseSubmission
from vetassist.validation import CaseValidationError, build_case


ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_OUTPUT_DIR = os.path.join(ROOT_DIR, "evals", "results")


def _evaluate_case(case: dict, rules) -> dict:
    meta = case.get("meta") or {}
    expected = meta.get("expected_rule") or ""
    record = {
        "case_id": case["case_id"],
        "scenario": meta.get("scenario", ""),
        "expected_rule": expected,
        "selected_rule": "",
        "disease_name": "",
        "confidence": None,
        "hit": False,
        "error": "",
        "latency_ms": 0.0,
    }
    t0 = time.perf_counter()
    try:
        parsed = build_case(CaseSubmission(**case["submission"]))
    except CaseValidationError as e:
        record["error"] = e.message
        return record
    result = rule_engine.evaluate(parsed, rules)
    record["latency_ms"] = round((time.perf_counter() - t0) * 1000, 3)
    record["selected_rule"] = result.rule_id
    record["disease_name"] = result.disease_name
    record["confidence"] = result.confidence
    record["hit"] = result.rule_id == expected
    return record


def _aggregate(records):
    total = len(records)
    hits = sum(1 for r in records if r["hit"])
    fallbacks = sum(1 for r in records if r["selected_rule"] == rule_engine.FALLBACK_RULE_ID)
    errors = sum(1 for r in records if r["error"])
    return {
        "cases_total": total,
        "hits": hits,
        "hit_rate": round(hits / total, 4) if total else None,
        "fallback_count": fallbacks,
        "validation_errors": errors,
        "misses": [r["case_id"] for r in records if not r["hit"]],
    }


def _fmt_pct(value):
    if value is None:
        return "n/a"
    return f"{value * 100:.1f}%"


def _write_artifacts(records, summary, output_dir):
    os.makedirs(output_dir, exist_ok=True)
    ts = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    base = os.path.join(output_dir, f"rule_eval_{ts}")
    with open(f"{base}.json", "w", encoding="utf-8") as f:
        json.dump({"summary": summary, "cases": records}, f, indent=2)

    csv_fields = list(records[0].keys()) if records else []
    with open(f"{base}.csv", "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=csv_fields)
        writer.writeheader()
        for r in records:
            writer.writerow(r)
    return {"json": f"{base}.json", "csv": f"{base}.csv"}


def main():
    parser = argparse.ArgumentParser(description="Check diagnosis rules against demo cases.")
    parser.add_argument("--rules", default=None, help="Alternate rules.yml (defaults to VET_RULES_PATH or the bundled table).")
    parser.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--no-artifacts", action="store_true", help="Only print the summary.")
    args = parser.parse_args()

    rules = rule_engine.load_rules(args.rules)
    cases = load_cases()
    records = [_evaluate_case(cases[cid], rules) for cid in sorted(cases)]
    summary = _aggregate(records)

    print("Evaluation complete:")
    print(f"  rules: {len(rules)}")
    print(f"  cases: {summary['cases_total']}")
    print(f"  hit_rate: {_fmt_pct(summary['hit_rate'])}")
    print(f"  fallback_count: {summary['fallback_count']}")
    print(f"  validation_errors: {summary['validation_errors']}")
    if summary["misses"]:
        print(f"  misses: {', '.join(summary['misses'])}")
    if not args.no_artifacts:
        artifacts = _write_artifacts(records, summary, args.output_dir)
        print(f"  artifacts: {artifacts['json']}, {artifacts['csv']}")
    return 0 if not summary["misses"] else 1


if __name__ == "__main__":
    sys.exit(main())
