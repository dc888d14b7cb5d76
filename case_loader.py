"""
Case & Submission Loader
==========================
Reads case files, student submissions and roster CSVs, and rejects malformed input
before it reaches the scoring code (which assumes well-typed data).

Case JSON:        {case_id, title, chief_complaint, differential_answer_key: [...],
                   correct_diagnosis?, full_case_data?}
Submission JSON:  {student_id?, diagnoses: [DiagnosisEntry], feedback_mode?}
OSCE session:     {door_prep: {diagnoses}, soap_note: {diagnoses, ...}}
Roster CSV:       student_id, diagnoses ("; "-separated, ranked), confidences?, feedback_mode?
"""

import json

import pandas as pd

from config import (
    CONFIDENCE_MAX,
    CONFIDENCE_MIN,
    DIFFERENTIAL_TIERS,
    ROSTER_COLUMNS,
    ROSTER_OPTIONAL_COLUMNS,
)
from scoring.differential_list import diagnoses_from_texts, migrate_categories


def _load_json(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_answer_key(answer_key) -> list:
    """Raise ValueError naming the first malformed AnswerKeyEntry."""
    if not isinstance(answer_key, list):
        raise ValueError("differential_answer_key must be a list")
    seen = set()
    for i, entry in enumerate(answer_key):
        if not isinstance(entry, dict):
            raise ValueError(f"Answer key entry {i} is not an object")
        name = entry.get("diagnosis")
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Answer key entry {i} has no diagnosis")
        if entry.get("tier") not in DIFFERENTIAL_TIERS:
            raise ValueError(f"Answer key entry '{name}' has unknown tier {entry.get('tier')!r}")
        if not isinstance(entry.get("aliases", []), list):
            raise ValueError(f"Answer key entry '{name}' aliases must be a list")
        if name in seen:
            raise ValueError(f"Answer key diagnosis '{name}' appears twice")
        seen.add(name)
    return answer_key


def validate_diagnoses(diagnoses) -> list:
    """Raise ValueError for a malformed DiagnosisEntry list; returns migrated entries."""
    if not isinstance(diagnoses, list):
        raise ValueError("diagnoses must be a list")
    migrated = []
    for i, d in enumerate(diagnoses):
        if not isinstance(d, dict) or not isinstance(d.get("diagnosis"), str):
            raise ValueError(f"Diagnosis entry {i} has no diagnosis text")
        confidence = d.get("confidence")
        if confidence is not None and not (
            _is_int(confidence) and CONFIDENCE_MIN <= confidence <= CONFIDENCE_MAX
        ):
            raise ValueError(f"Diagnosis '{d['diagnosis']}' confidence {confidence!r} outside 1-5")
        order = d.get("sort_order")
        if order is not None and not _is_int(order):
            raise ValueError(f"Diagnosis '{d['diagnosis']}' sort_order {order!r} is not an integer")
        entry = migrate_categories(d)
        entry["sort_order"] = i if order is None else order
        migrated.append(entry)

    orders = sorted(e["sort_order"] for e in migrated)
    if orders != list(range(len(migrated))):
        raise ValueError(f"sort_order must be unique and contiguous from 0, got {orders}")
    return migrated


def load_case(path: str) -> dict:
    """Load and validate a case file."""
    case = _load_json(path)
    case["differential_answer_key"] = validate_answer_key(case.get("differential_answer_key", []))
    case.setdefault("chief_complaint", "")
    case.setdefault("full_case_data", {})
    return case


def load_submission(path: str) -> dict:
    """Load and validate a differential submission."""
    submission = _load_json(path)
    submission["diagnoses"] = validate_diagnoses(submission.get("diagnoses", []))
    return submission


def load_osce_session(path: str) -> dict:
    """Load an OSCE session; both phases must be present."""
    session = _load_json(path)
    if not session.get("door_prep") or not session.get("soap_note"):
        raise ValueError("Session must have both door prep and SOAP note completed")
    return session


def load_roster(filepath: str) -> pd.DataFrame:
    """Load a roster CSV of ranked differentials (one student per row)."""
    df = pd.read_csv(filepath, dtype={"student_id": str})
    missing = [c for c in ROSTER_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Roster {filepath} missing columns: {missing}")
    for col in ROSTER_OPTIONAL_COLUMNS:
        if col not in df.columns:
            df[col] = None
    print(f"Loaded {len(df)} submissions from {filepath}")
    return df


def _split_cell(value) -> list:
    if pd.isna(value) or not str(value).strip():
        return []
    return [part.strip() for part in str(value).split(";")]


def get_roster_diagnoses(row: pd.Series) -> list:
    """Ranked DiagnosisEntry list from one roster row."""
    texts = _split_cell(row.get("diagnoses"))
    confidences = [_parse_confidence(c) for c in _split_cell(row.get("confidences"))]
    return validate_diagnoses(diagnoses_from_texts(texts, confidences))


def _parse_confidence(cell: str):
    """Whole-number confidence cell: 4 or 4.0 -> 4, blank -> None, 4.5 or text -> ValueError."""
    if not cell:
        return None
    value = float(cell)
    if not value.is_integer():
        raise ValueError(f"Confidence {cell!r} is not a whole number")
    return int(value)
