"""
DDx Coach | Clinical-Text Bulletizer (Deterministic Code)
============================================================
Turns structured OSCE case data into Subjective / Objective bullet text.

Input:  full_case_data dict with any of
          Patient_Actor                   → Subjective (history fields)
          Physical_Examination_Findings   → Objective
          Test_Results                    → Objective
Output: {"subjective": "• ...\\n• ...", "objective": "• ..."} or None when the case
        has no structured history/exam (caller falls back to generation)

Flattening Rules (recursive):
  - scalar  → str()
  - list    → flattened elements, empties dropped, ", "-joined
  - dict    → "key with spaces: flattened value", " | "-joined
Bullets never contain JSON syntax: { } [ ] and double quotes are scrubbed.
"""

import re

from config import BULLET, NO_OBJECTIVE_PLACEHOLDER, NO_SUBJECTIVE_PLACEHOLDER

# (source key, bullet label); PMH and ROS each have two spellings in case files
SUBJECTIVE_FIELDS = [
    ("History", "HPI"),
    ("Symptoms", "Symptoms"),
    ("PMH", "PMH"),
    ("Past_Medical_History", "PMH"),
    ("Medications", "Medications"),
    ("Allergies", "Allergies"),
    ("Social_History", "Social Hx"),
    ("Family_History", "Family Hx"),
    ("ROS", "ROS"),
    ("Review_of_Systems", "ROS"),
]

PATIENT_KEY = "Patient_Actor"
EXAM_KEY = "Physical_Examination_Findings"
TESTS_KEY = "Test_Results"

_JSON_SYNTAX_RE = re.compile(r'[{}\[\]"]')
_SEGMENT_SPLIT_RE = re.compile(r"[;\n]+")


def _label(key: str) -> str:
    return str(key).replace("_", " ")


def _bullet(text: str) -> str:
    return BULLET + _JSON_SYNTAX_RE.sub("", text).strip()


def flatten_value(value) -> str:
    """Flatten a possibly-nested value to one human-readable line."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        parts = [flatten_value(v) for v in value]
        return ", ".join(p for p in parts if p)
    if isinstance(value, dict):
        parts = []
        for k, v in value.items():
            flat = flatten_value(v)
            if flat:
                parts.append(f"{_label(k)}: {flat}")
        return " | ".join(parts)
    return str(value).strip()


def to_bullets(label: str, value) -> list:
    """
    Bulletize one labeled field.
      - string with ; or newlines → one bullet per segment (segments of <= 2 chars dropped)
      - plain string / number     → "label: value"
      - dict                      → one bullet per key
      - list                      → one bullet per flattened element
    """
    if not value:
        return []

    if isinstance(value, str):
        if not value.strip():
            return []
        parts = [s.strip() for s in _SEGMENT_SPLIT_RE.split(value)]
        parts = [p for p in parts if len(p) > 2]
        if len(parts) > 1:
            return [_bullet(p) for p in parts]
        return [_bullet(f"{label}: {value.strip()}")]

    if isinstance(value, dict):
        bullets = []
        for k, v in value.items():
            flat = flatten_value(v)
            if flat:
                bullets.append(_bullet(f"{_label(k)}: {flat}"))
        return bullets

    if isinstance(value, (list, tuple)):
        flats = [flatten_value(v) for v in value]
        return [_bullet(f) for f in flats if f]

    return [_bullet(f"{label}: {flatten_value(value)}")]


def _section_bullets(section: dict) -> list:
    """One "label: flattened" bullet per key of an exam / test-results dict."""
    bullets = []
    if not isinstance(section, dict):
        return bullets
    for k, v in section.items():
        if not v:
            continue
        flat = flatten_value(v)
        if flat:
            bullets.append(_bullet(f"{_label(k)}: {flat}"))
    return bullets


def extract_soap_context(full_case_data: dict) -> dict | None:
    """
    Deterministic Subjective/Objective extraction from OSCE-format case data.

    Returns:
        {"subjective", "objective"} bullet strings, or None if the case has neither a
        Patient_Actor nor Physical_Examination_Findings block (or both yield nothing).
    """
    full_case_data = full_case_data or {}
    patient = full_case_data.get(PATIENT_KEY)
    exam = full_case_data.get(EXAM_KEY)

    if not patient and not exam:
        return None

    subjective = []
    if isinstance(patient, dict):
        for key, label in SUBJECTIVE_FIELDS:
            value = patient.get(key)
            if not value:
                continue
            subjective.extend(to_bullets(label, value))

    objective = _section_bullets(exam) + _section_bullets(full_case_data.get(TESTS_KEY))

    if not subjective and not objective:
        return None

    return {
        "subjective": "\n".join(subjective) or BULLET + NO_SUBJECTIVE_PLACEHOLDER,
        "objective": "\n".join(objective) or BULLET + NO_OBJECTIVE_PLACEHOLDER,
    }


def bullets_from_list(items, placeholder: str) -> str:
    """Normalize a generated list of findings (or a pre-joined string) to bullet text."""
    if isinstance(items, str) and items.strip():
        lines = [line.strip() for line in items.splitlines() if line.strip()]
        items = lines
    if not isinstance(items, list):
        return BULLET + placeholder
    bullets = []
    for item in items:
        text = re.sub(r"^\s*[•\-]\s*", "", flatten_value(item))
        if text:
            bullets.append(_bullet(text))
    return "\n".join(bullets) or BULLET + placeholder
