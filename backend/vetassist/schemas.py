from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class Species(str, Enum):
    COW = "Cow"
    DOG = "Dog"
    CAT = "Cat"
    HORSE = "Horse"
    PIG = "Pig"
    GOAT = "Goat"
    SHEEP = "Sheep"
    CHICKEN = "Chicken"
    DUCK = "Duck"
    RABBIT = "Rabbit"
    OTHER = "Other"


SPECIES_NAMES = [s.value for s in Species]


class Case(BaseModel):
    species: Species
    age_years: float = Field(ge=0)
    observations: Tuple[str, ...]
    has_image: bool = False

    model_config = ConfigDict(frozen=True)


class DiagnosisResult(BaseModel):
    disease_name: str
    explanation: str
    treatment: str
    requires_vet_consultation: bool
    confidence: int = Field(ge=0, le=100)
    rule_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Rule(BaseModel):
    id: str
    disease_name: str
    required_keywords: FrozenSet[str] = Field(min_length=1)
    explanation: str
    treatment: str
    requires_vet_consultation: bool = True
    confidence: int = Field(ge=0, le=100)

    model_config = ConfigDict(frozen=True)

    @field_validator("required_keywords", mode="before")
    @classmethod
    def normalize_keywords(cls, v):
        """Keywords are matched against lowercased text, so store them lowercased and stripped."""
        if isinstance(v, str):
            v = [v]
        return frozenset(str(k).strip().lower() for k in v if str(k).strip())

    def to_result(self) -> DiagnosisResult:
        return DiagnosisResult(
            disease_name=self.disease_name,
            explanation=self.explanation,
            treatment=self.treatment,
            requires_vet_consultation=self.requires_vet_consultation,
            confidence=self.confidence,
            rule_id=self.id,
        )


class CaseSubmission(BaseModel):
    """Raw form fields as the UI sends them; validated into a Case."""
    species: str = ""
    age: str = ""
    symptoms: List[str] = []
    image_name: Optional[str] = None


class Disease(BaseModel):
    id: str
    name: str
    animals: List[str]
    symptoms: List[str]
    severity: str
    description: str
    treatment: str
    prevention: str


class EmergencyCondition(BaseModel):
    id: str
    name: str
    symptoms: List[str]
    immediate_actions: List[str]
    timeframe: str
    severity: str


class Resource(BaseModel):
    id: str
    title: str
    description: str
    category: str
    type: str
    difficulty: str
    estimated_time: str
