"""
Diagnosis form session: holds the form fields, runs the engine behind a fixed "analyzing"
delay and drops any pending result when the form is reset or resubmitted.

The delay is a threading.Timer tagged with a generation number. reset() and submit_case()
bump the generation, so a timer that fires late sees a stale number and does nothing.
"""
import os
import time
import uuid
import logging
import threading
from collections import OrderedDict, deque
from typing import Callable, Deque, List, Optional

from . import events
from . import rule_engine
from .schemas import Case, CaseSubmission, DiagnosisResult, Rule
from .validation import CaseValidationError, build_case, missing_fields

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 2.0
DEFAULT_SYMPTOM_SLOTS = 3
DEFAULT_MAX_SESSIONS = 1000
DEFAULT_SESSION_TTL_SECONDS = 3600.0
# oldest events drop off once a session has logged this many
EVENT_HISTORY_LIMIT = 50


def analysis_delay_seconds() -> float:
    raw = os.getenv("ANALYSIS_DELAY_SECONDS", "").strip()
    if not raw:
        return DEFAULT_DELAY_SECONDS
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_DELAY_SECONDS
    return value if value >= 0 else DEFAULT_DELAY_SECONDS


def default_symptom_slots() -> int:
    raw = os.getenv("SYMPTOM_SLOTS", "").strip()
    try:
        value = int(raw) if raw else DEFAULT_SYMPTOM_SLOTS
    except ValueError:
        return DEFAULT_SYMPTOM_SLOTS
    return value if value > 0 else DEFAULT_SYMPTOM_SLOTS


def max_sessions_limit() -> int:
    raw = os.getenv("MAX_SESSIONS", "").strip()
    try:
        value = int(raw) if raw else DEFAULT_MAX_SESSIONS
    except ValueError:
        return DEFAULT_MAX_SESSIONS
    return value if value > 0 else DEFAULT_MAX_SESSIONS


def session_ttl_seconds() -> float:
    """Idle time after which a session is dropped; 0 keeps sessions until evicted by the cap."""
    raw = os.getenv("SESSION_TTL_SECONDS", "").strip()
    try:
        value = float(raw) if raw else DEFAULT_SESSION_TTL_SECONDS
    except ValueError:
        return DEFAULT_SESSION_TTL_SECONDS
    return value if value >= 0 else DEFAULT_SESSION_TTL_SECONDS


class DiagnosisSession:
    def __init__(
        self,
        session_id: Optional[str] = None,
        symptom_slots: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        rules: Optional[List[Rule]] = None,
        evaluator: Callable[..., DiagnosisResult] = rule_engine.evaluate,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.symptom_slots = symptom_slots or default_symptom_slots()
        self.delay_seconds = analysis_delay_seconds() if delay_seconds is None else delay_seconds
        self.rules = rules
        self.evaluator = evaluator
        self.events: Deque[events.Event] = deque(maxlen=EVENT_HISTORY_LIMIT)

        self._lock = threading.RLock()
        self._idle = threading.Event()
        self._idle.set()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._clear_form()

    def _clear_form(self):
        self.species = ""
        self.age = ""
        self.symptoms = [""] * self.symptom_slots
        self.image_name: Optional[str] = None
        self.case: Optional[Case] = None
        self.diagnosis: Optional[DiagnosisResult] = None

    @property
    def analyzing(self) -> bool:
        return not self._idle.is_set()

    # Form editing

    def set_field(self, species: Optional[str] = None, age: Optional[str] = None):
        with self._lock:
            if species is not None:
                self.species = species
            if age is not None:
                self.age = age

    def set_symptom(self, index: int, value: str):
        with self._lock:
            if not 0 <= index < self.symptom_slots:
                raise IndexError(f"Symptom slot {index} out of range (0-{self.symptom_slots - 1})")
            self.symptoms[index] = value

    def attach_image(self, image_name: str):
        """Remember an image reference; the engine does not use it."""
        with self._lock:
            self.image_name = image_name
            events.image_uploaded(self.events, image_name)

    def _load_submission(self, submission: CaseSubmission):
        self.species = submission.species
        self.age = submission.age
        symptoms = list(submission.symptoms)[:self.symptom_slots]
        self.symptoms = symptoms + [""] * (self.symptom_slots - len(symptoms))
        if submission.image_name:
            self.image_name = submission.image_name

    def _current_submission(self) -> CaseSubmission:
        return CaseSubmission(
            species=self.species,
            age=self.age,
            symptoms=list(self.symptoms),
            image_name=self.image_name,
        )

    # Operations

    def submit_case(self, submission: Optional[CaseSubmission] = None) -> Case:
        """
        Validate the form and schedule analysis. Any earlier pending analysis or shown
        result is discarded, even when validation fails. Raises CaseValidationError
        without scheduling anything.
        """
        with self._lock:
            if submission is not None:
                self._load_submission(submission)
            current = self._current_submission()
            try:
                case = build_case(current)
            except CaseValidationError as e:
                # the form no longer matches any pending or shown result
                self._cancel_pending("superseded")
                self._generation += 1
                self.case = None
                self.diagnosis = None
                events.missing_information(self.events, e.missing_fields or missing_fields(current), e.message)
                raise

            self._cancel_pending("superseded")
            self._generation += 1
            generation = self._generation
            self.case = case
            self.diagnosis = None
            self._idle.clear()
            self._timer = threading.Timer(self.delay_seconds, self._complete, args=(generation, case))
            self._timer.daemon = True
            events.analysis_started(self.events, self.delay_seconds)
            logger.info("Session %s: analysis scheduled (generation %d, %.1fs)",
                        self.session_id, generation, self.delay_seconds)
            self._timer.start()
            return case

    def _complete(self, generation: int, case: Case):
        with self._lock:
            if generation != self._generation:
                logger.info("Session %s: dropping stale analysis (generation %d)", self.session_id, generation)
                return
        try:
            if self.rules is None:
                result = self.evaluator(case)
            else:
                result = self.evaluator(case, self.rules)
        except Exception as e:
            logger.exception("Session %s: analysis failed", self.session_id)
            with self._lock:
                if generation == self._generation:
                    self._timer = None
                    events.analysis_failed(self.events, e)
                    self._idle.set()
            return

        with self._lock:
            if generation != self._generation:
                logger.info("Session %s: dropping stale analysis (generation %d)", self.session_id, generation)
                return
            self.diagnosis = result
            self._timer = None
            events.diagnosis_complete(self.events, result)
            self._idle.set()
            logger.info("Session %s: diagnosis ready (%s)", self.session_id, result.rule_id)

    def _cancel_pending(self, reason: str):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.analyzing:
            self._generation += 1
            events.analysis_cancelled(self.events, reason)
            logger.info("Session %s: pending analysis cancelled (%s)", self.session_id, reason)
            self._idle.set()

    def reset(self):
        """Clear the form, the case and the diagnosis; a pending analysis is never applied."""
        with self._lock:
            self._cancel_pending("reset")
            self._generation += 1
            self._clear_form()
            events.form_reset(self.events)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no analysis is pending. Returns False on timeout."""
        return self._idle.wait(timeout=timeout)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "session_id": self.session_id,
                "species": self.species,
                "age": self.age,
                "symptoms": list(self.symptoms),
                "image_name": self.image_name,
                "analyzing": self.analyzing,
                "case": _dump(self.case),
                "diagnosis": _dump(self.diagnosis),
                "events": [_dump(e) for e in self.events],
            }


def _dump(model) -> Optional[dict]:
    if model is None:
        return None
    return model.model_dump(mode="json") if hasattr(model, "model_dump") else model.dict()


class SessionManager:
    """
    In-memory registry of form sessions. Sessions idle longer than ttl_seconds are dropped
    on the next create/get, and creating past max_sessions evicts the least recently used.
    Evicted sessions are reset so their timers never fire.
    """

    def __init__(
        self,
        max_sessions: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_sessions = max_sessions or max_sessions_limit()
        self.ttl_seconds = session_ttl_seconds() if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._sessions: "OrderedDict[str, DiagnosisSession]" = OrderedDict()
        self._last_used = {}
        self._lock = threading.Lock()

    def _expired(self, session_id: str, now: float) -> bool:
        return self.ttl_seconds > 0 and now - self._last_used[session_id] > self.ttl_seconds

    def _pop(self, session_id: str) -> DiagnosisSession:
        self._last_used.pop(session_id, None)
        return self._sessions.pop(session_id)

    def _evict_expired(self, now: float) -> List[DiagnosisSession]:
        stale = [sid for sid in self._sessions if self._expired(sid, now)]
        return [self._pop(sid) for sid in stale]

    def _close(self, evicted: List[DiagnosisSession], reason: str):
        for session in evicted:
            logger.info("Session %s evicted (%s)", session.session_id, reason)
            session.reset()

    def create(self, **kwargs) -> DiagnosisSession:
        session = DiagnosisSession(**kwargs)
        with self._lock:
            now = self._clock()
            expired = self._evict_expired(now)
            overflow = []
            while len(self._sessions) >= self.max_sessions:
                oldest = next(iter(self._sessions))
                overflow.append(self._pop(oldest))
            self._sessions[session.session_id] = session
            self._last_used[session.session_id] = now
        self._close(expired, "idle")
        self._close(overflow, "capacity")
        return session

    def get(self, session_id: str) -> DiagnosisSession:
        with self._lock:
            now = self._clock()
            session = self._sessions[session_id]
            if self._expired(session_id, now):
                self._pop(session_id)
                expired = session
            else:
                expired = None
                self._sessions.move_to_end(session_id)
                self._last_used[session_id] = now
        if expired is not None:
            self._close([expired], "idle")
            raise KeyError(session_id)
        return session

    def delete(self, session_id: str):
        with self._lock:
            session = self._pop(session_id)
        session.reset()

    def __len__(self):
        return len(self._sessions)


session_manager = SessionManager()
