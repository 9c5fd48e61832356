"""
Form submission -> Case. All required-field checks happen here, before the engine is called.
"""
import math
from typing import List, Optional

from .schemas import Case, CaseSubmission, SPECIES_NAMES, Species

MISSING_FIELDS_MESSAGE = "Please fill in all required fields before proceeding with diagnosis."


class CaseValidationError(ValueError):
    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.missing_fields = missing_fields or []

    def to_dict(self) -> dict:
        return {"message": self.message, "missing_fields": self.missing_fields}


def _parse_age(raw: str) -> Optional[float]:
    try:
        return float(str(raw).strip())
    except ValueError:
        return None


def _match_species(raw: str) -> Optional[Species]:
    lower = raw.strip().lower()
    for name in SPECIES_NAMES:
        if name.lower() == lower:
            return Species(name)
    return None


def missing_fields(submission: CaseSubmission) -> List[str]:
    missing = []
    if not (submission.species or "").strip():
        missing.append("species")
    if not (submission.age or "").strip():
        missing.append("age")
    if not any((s or "").strip() for s in submission.symptoms):
        missing.append("symptoms")
    return missing


def build_case(submission: CaseSubmission) -> Case:
    """
    Validate raw form fields and build an immutable Case.
    Symptom slots are kept as entered, blanks included, so slot order is preserved.
    Raises CaseValidationError.
    """
    missing = missing_fields(submission)
    if missing:
        raise CaseValidationError(MISSING_FIELDS_MESSAGE, missing)

    species = _match_species(submission.species)
    if species is None:
        raise CaseValidationError(
            f"Unknown animal type '{submission.species}'. Choose one of: {', '.join(SPECIES_NAMES)}."
        )
    age = _parse_age(submission.age)
    if age is None or not math.isfinite(age) or age < 0:
        raise CaseValidationError("Age must be a non-negative number of years.")

    observations = tuple(s or "" for s in submission.symptoms)
    return Case(
        species=species,
        age_years=age,
        observations=observations,
        has_image=bool(submission.image_name),
    )
