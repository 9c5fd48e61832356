"""Write the demo form submissions in SCENARIOS to cases/<case_id>.json."""
import json
import os

CASES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'cases')

# expected_rule is the rule id the shipped rules.yml should select ("fallback" for none)
SCENARIOS = [
    {
        "id": "fmd_cow",
        "expected_rule": "fmd",
        "submission": {"species": "Cow", "age": "3",
                       "symptoms": ["excessive salivation", "mouth blisters", "difficulty walking"]},
    },
    {
        "id": "mild_limp_horse",
        "expected_rule": "fallback",
        "submission": {"species": "Horse", "age": "8", "symptoms": ["mild limp", "", ""]},
    },
    {
        "id": "bloat_sheep",
        "expected_rule": "bloat",
        "submission": {"species": "Sheep", "age": "2",
                       "symptoms": ["Distended left abdomen", "Laboured BREATHING", ""]},
    },
    {
        "id": "mastitis_goat",
        "expected_rule": "mastitis",
        "submission": {"species": "Goat", "age": "4",
                       "symptoms": ["swollen hot udder", "clotted milk", "fever"]},
    },
    {
        "id": "choke_horse",
        "expected_rule": "choke",
        "submission": {"species": "Horse", "age": "12",
                       "symptoms": ["difficulty swallowing", "excessive salivation", "feed coming from nose"]},
    },
    {
        "id": "fmd_over_choke_pig",
        "expected_rule": "fmd",
        "submission": {"species": "Pig", "age": "1",
                       "symptoms": ["excessive salivation and difficulty swallowing", "blisters on snout",
                                    "difficulty walking"]},
    },
    {
        "id": "pneumonia_calf",
        "expected_rule": "pneumonia",
        "submission": {"species": "Cow", "age": "0.5",
                       "symptoms": ["coughing", "thick nasal discharge", "fever"]},
    },
    {
        "id": "healthy_dog",
        "expected_rule": "fallback",
        "submission": {"species": "Dog", "age": "5", "symptoms": ["slightly tired after a walk", "", ""],
                       "image_name": "rex.jpg"},
    },
]


def build_case(index, scenario):
    return {
        "case_id": f"case_{index:02d}_{scenario['id']}",
        "meta": {"scenario": scenario["id"], "expected_rule": scenario["expected_rule"]},
        "submission": scenario["submission"],
    }


def main():
    os.makedirs(CASES_DIR, exist_ok=True)
    for i, scenario in enumerate(SCENARIOS, start=1):
        case = build_case(i, scenario)
        path = os.path.join(CASES_DIR, f"{case['case_id']}.json")
        with open(path, 'w') as f:
            json.dump(case, f, indent=2)
        print(f"Generated {path}")


if __name__ == "__main__":
    main()
