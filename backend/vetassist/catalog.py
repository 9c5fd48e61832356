import os
import yaml
from typing import List, Optional

from .schemas import Disease, EmergencyCondition, Resource

_DATA_DIR = os.path.join(os.path.dirname(__file__), "data")

ALL = "All"


def _load_yaml(data_dir, filename):
    with open(os.path.join(data_dir, filename)) as f:
        return yaml.safe_load(f) or {}


class Catalog:
    """Read-only disease database, emergency guide and resource library."""

    def __init__(self, data_dir=_DATA_DIR):
        self.data_dir = data_dir
        diseases = _load_yaml(data_dir, "diseases.yml")
        emergencies = _load_yaml(data_dir, "emergencies.yml")
        resources = _load_yaml(data_dir, "resources.yml")
        self.diseases = [Disease(**d) for d in diseases.get("diseases", [])]
        self.emergencies = [EmergencyCondition(**e) for e in emergencies.get("emergencies", [])]
        self.emergency_guidelines = emergencies.get("guidelines", {})
        self.resources = [Resource(**r) for r in resources.get("resources", [])]

    def disease_animals(self) -> List[str]:
        """Animal filter options, 'All' first, in first-seen order."""
        seen = []
        for d in self.diseases:
            for animal in d.animals:
                if animal not in seen:
                    seen.append(animal)
        return [ALL] + seen

    def search_diseases(self, search: str = "", animal: Optional[str] = None) -> List[Disease]:
        """Name or any symptom contains the search term (case-insensitive); animal must match unless All."""
        term = (search or "").strip().lower()
        results = []
        for d in self.diseases:
            matches_search = term in d.name.lower() or any(term in s.lower() for s in d.symptoms)
            matches_animal = not animal or animal == ALL or animal in d.animals
            if matches_search and matches_animal:
                results.append(d)
        return results

    def get_disease(self, disease_id: str) -> Optional[Disease]:
        for d in self.diseases:
            if d.id == disease_id:
                return d
        return None

    def resource_categories(self) -> List[str]:
        seen = []
        for r in self.resources:
            if r.category not in seen:
                seen.append(r.category)
        return [ALL] + seen

    def filter_resources(self, category: Optional[str] = None) -> List[Resource]:
        if not category or category == ALL:
            return list(self.resources)
        return [r for r in self.resources if r.category == category]


catalog = Catalog()
