"""
DDx Coach | Finding Extractor (Deterministic Code)
=====================================================
Splits bulletized Subjective/Objective text into atomic, clickable findings for
evidence mapping in the SOAP note.

Rules:
  - One candidate per line; bullet markers and JSON punctuation stripped
  - Lines shorter than 5 chars dropped
  - Pure section headers ("History", "Physical Examination", ...) and the
    "no data" placeholders dropped
  - " | " lines (vital signs, nested exam dicts) split into one finding per segment
  - Findings longer than 200 chars are dropped, never truncated

Identity is the literal text: "HR 92" and "hr 92" are different findings, and a
regenerated S/O with new phrasing orphans earlier selections. finding_id() gives a
content-addressed key for callers that need selections to survive regeneration.
"""

import hashlib
import re

from config import (
    FINDING_MAX_LENGTH,
    FINDING_MIN_LENGTH,
    FINDING_SEGMENT_MIN_LENGTH,
    NO_OBJECTIVE_PLACEHOLDER,
    NO_SUBJECTIVE_PLACEHOLDER,
)

HEADER_PATTERN = re.compile(
    r"^(History|Symptoms|Physical Examination|Test Results|Review of Systems|"
    r"Past Medical|Social|Family|Medications|Allergies|Objective|Subjective|"
    r"No subjective|No objective|Vital Signs|Neurological|Blood Tests|Imaging|"
    r"Electromyography|Patient)\s*$",
    re.IGNORECASE,
)

_BULLET_RE = re.compile(r"^\s*[•\-]\s*")
_JSON_SYNTAX_RE = re.compile(r'[{}\[\]"]')
_PIPE_SPLIT_RE = re.compile(r"\s*\|\s*")
_PLACEHOLDERS = {NO_SUBJECTIVE_PLACEHOLDER, NO_OBJECTIVE_PLACEHOLDER}


def clean_line(line: str) -> str:
    """Strip bullet prefix and residual JSON syntax characters."""
    return _JSON_SYNTAX_RE.sub("", _BULLET_RE.sub("", line)).strip()


def _label_of(text: str) -> str:
    """Text before the first colon ("Vital Signs: HR 92" → "Vital Signs")."""
    return re.sub(r":.*$", "", text).strip()


def _segment_findings(line: str) -> list:
    findings = []
    for seg in _PIPE_SPLIT_RE.split(line):
        trimmed = seg.strip()
        if HEADER_PATTERN.match(_label_of(trimmed)) and ":" not in trimmed:
            continue
        if FINDING_SEGMENT_MIN_LENGTH <= len(trimmed) <= FINDING_MAX_LENGTH:
            findings.append(trimmed)
    return findings


def extract_findings(subjective: str, objective: str) -> list:
    """
    Extract discrete findings from S/O bullet text, in reading order.
    Duplicates are kept; selection state downstream is by exact string equality.
    """
    combined = f"{subjective or ''}\n{objective or ''}"
    findings = []

    for line in combined.split("\n"):
        stripped = clean_line(line)
        if len(stripped) < FINDING_MIN_LENGTH or stripped in _PLACEHOLDERS:
            continue

        if " | " in stripped:
            findings.extend(_segment_findings(stripped))
            continue

        if HEADER_PATTERN.match(_label_of(stripped)) and stripped.endswith(":"):
            continue
        if HEADER_PATTERN.match(stripped):
            continue
        if len(stripped) <= FINDING_MAX_LENGTH:
            findings.append(stripped)

    return findings


def finding_id(text: str) -> str:
    """Stable id from lower-cased, whitespace-collapsed text."""
    canonical = " ".join((text or "").lower().split())
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:12]


def extract_finding_records(subjective: str, objective: str) -> list:
    """[{"id", "text"}] with content-addressed ids; first spelling of an id wins."""
    records = []
    seen = set()
    for text in extract_findings(subjective, objective):
        fid = finding_id(text)
        if fid in seen:
            continue
        seen.add(fid)
        records.append({"id": fid, "text": text})
    return records


def unmapped_evidence(soap_note: dict, findings: list) -> list:
    """
    SOAP evidence strings not present (exact match) in the current finding list.
    Non-empty after an S/O regeneration means selections were orphaned.
    """
    available = set(findings)
    missing = []
    for d in (soap_note or {}).get("diagnoses") or []:
        for evidence in d.get("evidence") or []:
            if evidence not in available and evidence not in missing:
                missing.append(evidence)
    return missing
