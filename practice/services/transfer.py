"""Flat JSON export and import of the patient list."""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, List, Optional, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from practice.domain.exceptions import ValidationError
from practice.domain.models import AppState, Patient, validate_patients

LOGGER = logging.getLogger(__name__)

_PATIENT_LIST = TypeAdapter(List[Patient])


def export_filename(today: Optional[date] = None) -> str:
    return f"export-{(today or date.today()).isoformat()}.json"


def dump_patients(state: AppState) -> List[dict]:
    """Return the patients as a JSON-ready flat array."""

    return [patient.model_dump(mode="json", by_alias=True) for patient in state.patients]


def export_patients(state: AppState, directory: Path, *, today: Optional[date] = None) -> Path:
    """Write the patient array to ``directory`` and return the file path."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(today)
    path.write_text(json.dumps(dump_patients(state), indent=2), encoding="utf-8")
    LOGGER.info("Exported %d patients to %s", len(state.patients), path)
    return path


def parse_patients(payload: Any) -> Tuple[Patient, ...]:
    """Validate a decoded JSON array of patients."""

    if not isinstance(payload, list):
        raise ValidationError("patients", "expected a JSON array of patients")
    try:
        patients = tuple(_PATIENT_LIST.validate_python(payload))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(location or "patients", first["msg"]) from exc
    validate_patients(patients)
    return patients


def load_patients(path: Path) -> Tuple[Patient, ...]:
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError("file", f"not valid JSON: {exc.msg}") from exc
    return parse_patients(payload)
