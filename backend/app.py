from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import json
import logging
import os
from typing import Optional
from vetassist import rule_engine
from vetassist.catalog import catalog
from vetassist.schemas import CaseSubmission, SPECIES_NAMES
from vetassist.session import session_manager
from vetassist.validation import CaseValidationError, build_case

DISCLAIMER = (
    "This tool provides preliminary assessments only. Always consult with a qualified "
    "veterinarian for accurate diagnosis and treatment. This system is designed to assist, "
    "not replace, professional veterinary care."
)

VET_CONSULTATION_NOTICE = (
    "This condition requires professional veterinary assessment. Please contact a qualified "
    "veterinarian immediately for proper diagnosis and treatment."
)


class SessionRequest(BaseModel):
    symptom_slots: Optional[int] = None


class ImageRequest(BaseModel):
    image_name: str


# Load cases
def load_cases():
    cases_dir = os.path.join(os.path.dirname(__file__), 'data_synth', 'cases')
    cases = {}
    for f in os.listdir(cases_dir):
        if f.endswith('.json'):
            with open(os.path.join(cases_dir, f)) as file:
                case = json.load(file)
                cases[case['case_id']] = case
    return cases

cases = load_cases()

# Fail at startup on a broken rule table rather than on the first request
rules = rule_engine.load_rules()

app = FastAPI(title="VetAssist API")
logger = logging.getLogger("uvicorn.error")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("REQUEST %s %s", request.method, request.url.path)
    response = await call_next(request)
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _dump(model) -> dict:
    return model.model_dump(mode="json") if hasattr(model, "model_dump") else json.loads(model.json())


def _diagnosis_payload(result) -> dict:
    """Result plus the display text the UI always shows with it."""
    return {
        "diagnosis": _dump(result),
        "vet_consultation_notice": VET_CONSULTATION_NOTICE if result.requires_vet_consultation else None,
        "disclaimer": DISCLAIMER,
    }


def _build_case_or_400(submission: CaseSubmission):
    try:
        return build_case(submission)
    except CaseValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())


def _get_session(session_id: str):
    try:
        return session_manager.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")


@app.get("/")
def root():
    return {
        "message": "VetAssist Diagnosis API",
        "endpoints": ["/health", "/species", "/rules", "/diagnose", "/sessions",
                      "/diseases", "/emergencies", "/resources", "/cases"],
    }

@app.get("/health")
def health():
    return {"status": "ok", "rules_loaded": len(rules), "active_sessions": len(session_manager)}

@app.get("/species")
def get_species():
    return SPECIES_NAMES

@app.get("/rules")
def get_rules():
    out = []
    for rule in rules:
        item = _dump(rule)
        item["required_keywords"] = sorted(rule.required_keywords)
        out.append(item)
    return out


@app.post("/diagnose")
def diagnose(submission: CaseSubmission):
    """Validate and evaluate immediately (no analyzing delay)."""
    case = _build_case_or_400(submission)
    result = rule_engine.evaluate(case, rules)
    logger.info("DIAGNOSE species=%s rule=%s", case.species.value, result.rule_id)
    return _diagnosis_payload(result)

@app.post("/diagnose/explain")
def diagnose_explain(submission: CaseSubmission):
    case = _build_case_or_400(submission)
    return {"trace": rule_engine.explain(case, rules)}


@app.post("/sessions", status_code=201)
def create_session(body: Optional[SessionRequest] = None):
    slots = body.symptom_slots if body else None
    if slots is not None and slots < 1:
        raise HTTPException(status_code=400, detail="symptom_slots must be at least 1")
    session = session_manager.create(symptom_slots=slots, rules=rules)
    return session.snapshot()

@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    session = _get_session(session_id)
    snapshot = session.snapshot()
    if snapshot["diagnosis"]:
        snapshot["disclaimer"] = DISCLAIMER
    return snapshot

@app.post("/sessions/{session_id}/image")
def attach_image(session_id: str, body: ImageRequest):
    session = _get_session(session_id)
    session.attach_image(body.image_name)
    return session.snapshot()

@app.post("/sessions/{session_id}/submit", status_code=202)
def submit_session(session_id: str, submission: Optional[CaseSubmission] = None):
    """Validate the form and start the timed analysis; poll GET /sessions/{id} for the result."""
    session = _get_session(session_id)
    try:
        session.submit_case(submission)
    except CaseValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    return session.snapshot()

@app.post("/sessions/{session_id}/reset")
def reset_session(session_id: str):
    session = _get_session(session_id)
    session.reset()
    return session.snapshot()

@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    try:
        session_manager.delete(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}


@app.get("/diseases")
def get_diseases(search: str = "", animal: Optional[str] = None):
    return {
        "animals": catalog.disease_animals(),
        "diseases": [_dump(d) for d in catalog.search_diseases(search, animal)],
    }

@app.get("/diseases/{disease_id}")
def get_disease(disease_id: str):
    disease = catalog.get_disease(disease_id)
    if disease is None:
        raise HTTPException(status_code=404, detail="Disease not found")
    return _dump(disease)

@app.get("/emergencies")
def get_emergencies():
    return {
        "guidelines": catalog.emergency_guidelines,
        "emergencies": [_dump(e) for e in catalog.emergencies],
    }

@app.get("/resources")
def get_resources(category: Optional[str] = None):
    return {
        "categories": catalog.resource_categories(),
        "resources": [_dump(r) for r in catalog.filter_resources(category)],
    }


@app.get("/cases")
def get_cases():
    return [{"id": cid, "summary": (cases[cid].get("meta") or {}).get("scenario", cid)} for cid in sorted(cases)]

@app.get("/cases/{case_id}")
def get_case(case_id: str):
    case = cases.get(case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    return case

@app.post("/cases/{case_id}/run")
def run_case(case_id: str):
    case = cases.get(case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    parsed = _build_case_or_400(CaseSubmission(**case["submission"]))
    result = rule_engine.evaluate(parsed, rules)
    payload = _diagnosis_payload(result)
    payload["case_id"] = case_id
    return payload


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
