from pydantic import BaseModel
from enum import Enum
import time

from .validation import MISSING_FIELDS_MESSAGE


class EventType(str, Enum):
    IMAGE_UPLOADED = "IMAGE_UPLOADED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    ANALYSIS_STARTED = "ANALYSIS_STARTED"
    DIAGNOSIS_READY = "DIAGNOSIS_READY"
    ANALYSIS_CANCELLED = "ANALYSIS_CANCELLED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    FORM_RESET = "FORM_RESET"


class Variant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Event(BaseModel):
    ts: float
    type: EventType
    title: str = ""
    description: str = ""
    variant: Variant = Variant.DEFAULT
    payload: dict = {}


def emit_event(events, event_type, title="", description="", variant=Variant.DEFAULT, payload=None):
    event = Event(
        ts=time.time(),
        type=event_type,
        title=title,
        description=description,
        variant=variant,
        payload=payload or {}
    )
    events.append(event)
    return event


def image_uploaded(events, image_name):
    return emit_event(events, EventType.IMAGE_UPLOADED, "Image uploaded",
                      "Animal image has been uploaded successfully.", payload={"image_name": image_name})

def missing_information(events, missing_fields, message=MISSING_FIELDS_MESSAGE):
    return emit_event(events, EventType.VALIDATION_FAILED, "Missing Information", message,
                      Variant.DESTRUCTIVE, {"missing_fields": list(missing_fields)})

def analysis_started(events, delay_seconds):
    return emit_event(events, EventType.ANALYSIS_STARTED, payload={"delay_seconds": delay_seconds})

def diagnosis_complete(events, result):
    """Emit when a diagnosis is applied to the session."""
    return emit_event(events, EventType.DIAGNOSIS_READY, "Diagnosis Complete",
                      "Analysis has been completed. Please review the results below.",
                      payload={"disease_name": result.disease_name, "confidence": result.confidence})

def analysis_cancelled(events, reason):
    return emit_event(events, EventType.ANALYSIS_CANCELLED, payload={"reason": reason})

def analysis_failed(events, error):
    return emit_event(events, EventType.ANALYSIS_FAILED, "Analysis Failed",
                      "The symptoms could not be analyzed. Please try again.",
                      Variant.DESTRUCTIVE, {"error": str(error)})

def form_reset(events):
    return emit_event(events, EventType.FORM_RESET)
