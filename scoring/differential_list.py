"""
DDx Coach | Differential List Operations
===========================================
Pure edits on a student's ranked DiagnosisEntry list. Every operation returns a new
list of new dicts; sort_order is always rewritten to 0..n-1 in list order.
"""

from config import CONFIDENCE_MAX, CONFIDENCE_MIN
from scoring.term_matcher import normalize


def _renumber(entries: list) -> list:
    return [{**entry, "sort_order": i} for i, entry in enumerate(entries)]


def _check_index(entries: list, index: int):
    if not 0 <= index < len(entries):
        raise ValueError(f"Diagnosis index {index} out of range (0-{len(entries) - 1})")


def _check_confidence(confidence):
    if confidence is None:
        return
    if isinstance(confidence, bool) or not isinstance(confidence, int):
        raise ValueError(f"Confidence must be an integer, got {confidence!r}")
    if not CONFIDENCE_MIN <= confidence <= CONFIDENCE_MAX:
        raise ValueError(
            f"Confidence must be {CONFIDENCE_MIN}-{CONFIDENCE_MAX}, got {confidence}"
        )


def migrate_categories(entry: dict) -> dict:
    """Fold the deprecated single vindicate_category into vindicate_categories."""
    categories = list(entry.get("vindicate_categories") or [])
    legacy = entry.get("vindicate_category")
    if legacy and legacy not in categories:
        categories.insert(0, legacy)
    migrated = {k: v for k, v in entry.items() if k != "vindicate_category"}
    migrated["vindicate_categories"] = categories
    return migrated


def add_diagnosis(entries: list, diagnosis: str, **fields) -> list:
    """
    Append a diagnosis at the bottom of the ranking.
    A case-insensitive duplicate of an existing entry leaves the list unchanged.
    """
    text = (diagnosis or "").strip()
    if not text:
        raise ValueError("Diagnosis text is empty")
    _check_confidence(fields.get("confidence"))

    if any(normalize(e.get("diagnosis")) == normalize(text) for e in entries):
        return _renumber(entries)

    new_entry = {"diagnosis": text, "vindicate_categories": [], **fields}
    return _renumber(list(entries) + [new_entry])


def remove_diagnosis(entries: list, index: int) -> list:
    """Delete one entry; the rest are compacted."""
    _check_index(entries, index)
    return _renumber(entries[:index] + entries[index + 1:])


def move_diagnosis(entries: list, from_index: int, to_index: int) -> list:
    """Drag-and-drop reorder: move one entry and renumber all."""
    _check_index(entries, from_index)
    _check_index(entries, to_index)
    reordered = list(entries)
    moved = reordered.pop(from_index)
    reordered.insert(to_index, moved)
    return _renumber(reordered)


def update_diagnosis(entries: list, index: int, *, confidence=None, reasoning=None) -> list:
    """Edit confidence and/or reasoning of one entry."""
    _check_index(entries, index)
    _check_confidence(confidence)

    updated = dict(entries[index])
    if confidence is not None:
        updated["confidence"] = confidence
    if reasoning is not None:
        updated["reasoning"] = reasoning.strip()
    return _renumber(entries[:index] + [updated] + entries[index + 1:])


def diagnoses_from_texts(texts: list, confidences: list = None) -> list:
    """Build a ranked list from plain strings (roster CSVs, practice submissions)."""
    entries = []
    confidences = confidences or []
    for i, text in enumerate(texts):
        if not (text or "").strip():
            continue
        confidence = confidences[i] if i < len(confidences) else None
        fields = {"confidence": confidence} if confidence is not None else {}
        entries = add_diagnosis(entries, text, **fields)
    return entries
