"""
DDx Coach | OSCE Performance Comparator (Deterministic Code)
===============================================================
Scores an OSCE practice encounter across its two phases:
  Phase 1 — Door Prep:  draft differential + planned history questions + PE maneuvers
  Phase 2 — SOAP Note:  revised differential + mapped evidence + assessment + plans

Rules:
  - Diagnosis matching uses the alias index only (exact). No fuzzy fallback: SOAP
    diagnoses are typed carefully and this score is higher-stakes.
  - missed_important = answer-key entries with tier most_likely OR is_cant_miss that
    the SOAP differential did not match
  - correct_diagnosis_included compares against the supplied reference diagnosis,
    else the answer key's first entry
  - Workup counts are plain counting; unique maneuvers dedupe case-insensitively
    across the whole door-prep set
"""

from scoring.term_matcher import build_alias_index, match, normalize


def _matched_names(diagnoses: list, alias_index: dict) -> list:
    """Canonical names matched by a phase's diagnoses, first-seen order, no repeats."""
    matched = []
    for d in diagnoses:
        canonical = match(d.get("diagnosis", ""), alias_index)
        if canonical is not None and canonical not in matched:
            matched.append(canonical)
    return matched


def _reference_diagnosis(answer_key: list, correct_diagnosis: str | None) -> str:
    if correct_diagnosis:
        return correct_diagnosis
    if answer_key:
        return answer_key[0].get("diagnosis", "")
    return ""


def _includes_correct(diagnoses: list, reference: str, alias_index: dict) -> bool:
    if not normalize(reference):
        return False
    resolved = alias_index.get(normalize(reference), reference)
    for d in diagnoses:
        text = d.get("diagnosis", "")
        if normalize(text) and normalize(text) == normalize(reference):
            return True
        if match(text, alias_index) == resolved:
            return True
    return False


def _differential_evolution(door_diagnoses: list, soap_diagnoses: list) -> dict:
    """How the differential changed from door prep to SOAP note (normalized text)."""
    door = [d.get("diagnosis", "").strip() for d in door_diagnoses]
    soap = [d.get("diagnosis", "").strip() for d in soap_diagnoses]
    door_keys = {normalize(t) for t in door}
    soap_keys = {normalize(t) for t in soap}
    return {
        "kept": [t for t in soap if t and normalize(t) in door_keys],
        "added": [t for t in soap if t and normalize(t) not in door_keys],
        "dropped": [t for t in door if t and normalize(t) not in soap_keys],
    }


def compare_osce_performance(
    door_prep: dict,
    soap_note: dict,
    answer_key: list,
    correct_diagnosis: str = None,
) -> dict:
    """
    Deterministic comparison of OSCE performance against the answer key.

    Args:
        door_prep: {"diagnoses": [{diagnosis, confidence?, history_questions,
                    pe_maneuvers, sort_order}]}
        soap_note: {"subjective_review", "objective_review", "diagnoses": [{diagnosis,
                    evidence, assessment, diagnostic_plan, therapeutic_plan, sort_order}]}
        answer_key: AnswerKeyEntry dicts
        correct_diagnosis: reference diagnosis for practice cases (optional)

    Returns:
        OsceDeterministicResult dict
    """
    answer_key = answer_key or []
    door_diagnoses = (door_prep or {}).get("diagnoses") or []
    soap_diagnoses = (soap_note or {}).get("diagnoses") or []
    alias_index = build_alias_index(answer_key)

    # --- Differential quality (SOAP phase, exact only) ---
    matched = _matched_names(soap_diagnoses, alias_index)
    missed_important = [
        e.get("diagnosis", "")
        for e in answer_key
        if e.get("diagnosis") not in matched
        and (e.get("tier") == "most_likely" or e.get("is_cant_miss"))
    ]
    reference = _reference_diagnosis(answer_key, correct_diagnosis)

    # --- Door prep stats ---
    total_questions = sum(
        len([q for q in d.get("history_questions") or [] if q.strip()])
        for d in door_diagnoses
    )
    all_maneuvers = [m for d in door_diagnoses for m in d.get("pe_maneuvers") or []]
    unique_maneuvers = {m.lower().strip() for m in all_maneuvers if m.strip()}

    # --- SOAP stats ---
    evidence_mapped = sum(len(d.get("evidence") or []) for d in soap_diagnoses)
    assessments_written = sum(
        1 for d in soap_diagnoses if (d.get("assessment") or "").strip()
    )
    diagnostic_plan_items = sum(len(d.get("diagnostic_plan") or []) for d in soap_diagnoses)
    therapeutic_plan_items = sum(len(d.get("therapeutic_plan") or []) for d in soap_diagnoses)

    return {
        "differential_quality": {
            "total": len(soap_diagnoses),
            "matched_count": len(matched),
            "matched_diagnoses": matched,
            "missed_important": missed_important,
            "correct_diagnosis": reference,
            "correct_diagnosis_included": _includes_correct(soap_diagnoses, reference, alias_index),
            "door_prep_matched": _matched_names(door_diagnoses, alias_index),
            "evolution": _differential_evolution(door_diagnoses, soap_diagnoses),
        },
        "history_quality": {
            "total_questions": total_questions,
            "avg_questions_per_diagnosis": (
                total_questions / len(door_diagnoses) if door_diagnoses else 0
            ),
        },
        "pe_quality": {
            "total_maneuvers": len(all_maneuvers),
            "unique_maneuvers": len(unique_maneuvers),
        },
        "soap_quality": {
            "evidence_mapped": evidence_mapped,
            "assessments_written": assessments_written,
            "diagnostic_plan_items": diagnostic_plan_items,
            "therapeutic_plan_items": therapeutic_plan_items,
        },
    }
