"""
DDx Coach | OSCE Feedback (Deterministic + LLM Rubric)
=========================================================
Step A (compare) — Code: compare_osce_performance() over door prep + SOAP note
Step B (rubric)  — LLM rates five rubric categories and writes bullets from the
                   code-computed performance data

Also provides the S/O context for the SOAP-note phase:
  structured case data → deterministic bulletizer
  otherwise            → LLM-generated bullets (placeholders if no LLM)
"""

import logging

from config import (
    BULLET,
    LOGGER_NAME,
    NO_OBJECTIVE_PLACEHOLDER,
    NO_SUBJECTIVE_PLACEHOLDER,
    OSCE_RUBRIC_CATEGORIES,
    RUBRIC_RATINGS,
)
from llm_client import LLMClient
from prompts.system_prompts import OSCE_FEEDBACK, SOAP_CONTEXT_GENERATOR
from scoring.finding_extractor import extract_findings
from scoring.osce_comparator import compare_osce_performance
from scoring.soap_bulletizer import bullets_from_list, extract_soap_context

logger = logging.getLogger(LOGGER_NAME)


def build_osce_message(
    comparison: dict,
    door_prep: dict,
    soap_note: dict,
    chief_complaint: str,
) -> str:
    """PERFORMANCE DATA block for the rubric prompt."""
    dq = comparison["differential_quality"]
    hq = comparison["history_quality"]
    pq = comparison["pe_quality"]
    sq = comparison["soap_quality"]
    door = ", ".join(d.get("diagnosis", "") for d in (door_prep or {}).get("diagnoses") or [])
    soap = ", ".join(d.get("diagnosis", "") for d in (soap_note or {}).get("diagnoses") or [])

    return (
        f"Case: {chief_complaint}\n"
        f"Correct Diagnosis: {dq['correct_diagnosis'] or 'not specified'}\n\n"
        "PERFORMANCE DATA:\n"
        f"- Door Prep differential: {door or 'none'}\n"
        f"- History questions planned: {hq['total_questions']} total "
        f"(avg {hq['avg_questions_per_diagnosis']:.1f}/diagnosis)\n"
        f"- PE maneuvers planned: {pq['unique_maneuvers']} unique\n"
        f"- SOAP differential: {soap or 'none'}\n"
        f"- Added after encounter: {', '.join(dq['evolution']['added']) or 'none'}\n"
        f"- Dropped after encounter: {', '.join(dq['evolution']['dropped']) or 'none'}\n"
        f"- Correct diagnosis included: {'yes' if dq['correct_diagnosis_included'] else 'no'}\n"
        f"- Key diagnoses missed: {', '.join(dq['missed_important']) or 'none'}\n"
        f"- Evidence linked to diagnoses: {sq['evidence_mapped']} findings\n"
        f"- Assessments written: {sq['assessments_written']}\n"
        f"- Diagnostic plan items: {sq['diagnostic_plan_items']}\n"
        f"- Therapeutic plan items: {sq['therapeutic_plan_items']}"
    )


def _clean_rubric(scores) -> list:
    """Keep only known categories/ratings, in rubric order."""
    by_category = {}
    for s in scores if isinstance(scores, list) else []:
        if not isinstance(s, dict):
            continue
        category = s.get("category")
        rating = s.get("rating")
        if category in OSCE_RUBRIC_CATEGORIES and rating in RUBRIC_RATINGS:
            by_category.setdefault(category, {
                "category": category,
                "rating": rating,
                "comment": str(s.get("comment", "")).strip(),
            })
    return [by_category[c] for c in OSCE_RUBRIC_CATEGORIES if c in by_category]


def _as_lines(value, fallback: list) -> list:
    """LLM bullet field -> list of non-empty strings; a bare string is one bullet."""
    if isinstance(value, str):
        return [value.strip()] if value.strip() else list(fallback)
    if isinstance(value, list):
        lines = [v.strip() for v in value if isinstance(v, str) and v.strip()]
        return lines or list(fallback)
    return list(fallback)


def _template_osce_feedback(comparison: dict) -> dict:
    """Code-generated bullets from the deterministic counts."""
    dq = comparison["differential_quality"]
    hq = comparison["history_quality"]
    pq = comparison["pe_quality"]
    sq = comparison["soap_quality"]

    strengths = ["Completed the full OSCE workflow from door prep to SOAP note."]
    if dq["correct_diagnosis_included"]:
        strengths.append("Your SOAP differential included the correct diagnosis.")
    if sq["evidence_mapped"]:
        strengths.append("You linked findings from the encounter to your diagnoses.")

    improvements = []
    if not dq["correct_diagnosis_included"] and dq["correct_diagnosis"]:
        improvements.append(f"Revisit why {dq['correct_diagnosis']} fits this presentation.")
    if hq["avg_questions_per_diagnosis"] < 2:
        improvements.append("Plan more targeted history questions for each diagnosis.")
    if not pq["unique_maneuvers"]:
        improvements.append("Plan the exam maneuvers that would separate your diagnoses.")
    if not sq["diagnostic_plan_items"]:
        improvements.append("Add a diagnostic plan to confirm or exclude your leading diagnoses.")

    return {
        "rubric_scores": [],
        "strengths": strengths[:3],
        "improvements": improvements[:2],
        "cant_miss": [
            f"{name} was not on your final differential and is important to rule out."
            for name in dq["missed_important"][:2]
        ],
        "ai_narrative": "",
    }


def run_osce_feedback(
    llm: LLMClient | None,
    door_prep: dict,
    soap_note: dict,
    answer_key: list,
    chief_complaint: str = "",
    correct_diagnosis: str = None,
) -> dict:
    """
    Deterministic OSCE comparison + rubric feedback.

    Returns:
        {"comparison", "rubric_scores", "strengths", "improvements", "cant_miss",
         "ai_narrative", "narrative_source"}
    """
    comparison = compare_osce_performance(door_prep, soap_note, answer_key, correct_diagnosis)
    feedback = _template_osce_feedback(comparison)
    source = "template"

    if llm is not None:
        try:
            parsed = llm.query_json(
                system_prompt=OSCE_FEEDBACK,
                user_message=build_osce_message(comparison, door_prep, soap_note, chief_complaint),
                flow="osce",
            )
        except Exception as e:
            logger.warning(f"OSCE rubric unavailable: {e}")
            parsed = {}

        rubric = _clean_rubric(parsed.get("rubric_scores"))
        if rubric:
            feedback = {
                "rubric_scores": rubric,
                "strengths": _as_lines(parsed.get("strengths"), feedback["strengths"]),
                "improvements": _as_lines(parsed.get("improvements"), feedback["improvements"]),
                "cant_miss": _as_lines(parsed.get("cant_miss"), []),
                "ai_narrative": str(parsed.get("overall_comment", "")).strip(),
            }
            source = "llm"
        elif parsed:
            logger.warning("OSCE rubric response had no usable rubric_scores, using template")

    return {"comparison": comparison, **feedback, "narrative_source": source}


def get_soap_context(
    llm: LLMClient | None,
    full_case_data: dict,
    chief_complaint: str = "",
    correct_diagnosis: str = "",
) -> dict:
    """
    S/O bullet text plus the selectable findings extracted from it.

    Returns:
        {"subjective", "objective", "findings", "source"} — source is
        "structured", "llm" or "placeholder"
    """
    context = extract_soap_context(full_case_data)
    source = "structured"

    if context is None and llm is not None:
        available = ", ".join((full_case_data or {}).keys()) or "none"
        try:
            parsed = llm.query_json(
                system_prompt=SOAP_CONTEXT_GENERATOR,
                user_message=(
                    f"Chief Complaint: {chief_complaint}\n"
                    f"Correct Diagnosis: {correct_diagnosis}\n"
                    f"Available data fields: {available}"
                ),
                flow="soap_context",
            )
        except Exception as e:
            logger.warning(f"SOAP context generation unavailable: {e}")
            parsed = {}
        if parsed.get("subjective") or parsed.get("objective"):
            context = {
                "subjective": bullets_from_list(parsed.get("subjective"), NO_SUBJECTIVE_PLACEHOLDER),
                "objective": bullets_from_list(parsed.get("objective"), NO_OBJECTIVE_PLACEHOLDER),
            }
            source = "llm"

    if context is None:
        context = {
            "subjective": BULLET + NO_SUBJECTIVE_PLACEHOLDER,
            "objective": BULLET + NO_OBJECTIVE_PLACEHOLDER,
        }
        source = "placeholder"

    return {
        **context,
        "findings": extract_findings(context["subjective"], context["objective"]),
        "source": source,
    }
