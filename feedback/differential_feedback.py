"""
DDx Coach | Differential Feedback (Deterministic + LLM Narrative)
====================================================================
Step A (compare)  — Code, 100% deterministic: answer-key comparison
Step B (narrate)  — LLM explains the already-scored comparison

The LLM CANNOT change what was hit or missed; its output is only merged as
ai_narrative. No client, or a failed call → code-generated template narrative.
"""

import json
import logging

from config import DEFAULT_FEEDBACK_MODE, FEEDBACK_MODES, LOGGER_NAME, TIER_LABELS, VINDICATE_CATEGORIES
from llm_client import LLMClient
from prompts.system_prompts import (
    DIFFERENTIAL_FEEDBACK,
    MODE_FOCUS,
    PRACTICE_FEEDBACK,
    PRACTICE_SIMULATION_DEBRIEF,
)
from scoring.differential_comparator import (
    check_practice_differential,
    compare_differential,
    confidence_calibration,
    vindicate_summary,
)

logger = logging.getLogger(LOGGER_NAME)


def _resolve_mode(feedback_mode: str) -> str:
    if feedback_mode in FEEDBACK_MODES:
        return feedback_mode
    if feedback_mode:
        logger.warning(f"Unknown feedback mode '{feedback_mode}', using {DEFAULT_FEEDBACK_MODE}")
    return DEFAULT_FEEDBACK_MODE


def _slim_comparison(comparison: dict, chief_complaint: str) -> dict:
    """Only the fields the active mode needs — the prompt never sees raw student input."""
    mode = comparison["feedback_mode"]
    slim = {
        "chief_complaint": chief_complaint,
        "hit_by_tier": {
            TIER_LABELS.get(t, t): names for t, names in comparison["tiered_differential"].items() if names
        },
        "missed_by_tier": {
            TIER_LABELS.get(t, t): names for t, names in comparison["tiered_missed"].items() if names
        },
        "not_in_answer_key": comparison["unmatched"],
        "approximate_matches": comparison["fuzzy_matched"],
    }
    if mode in ("breadth", "combined"):
        summary = vindicate_summary(comparison)
        slim["vindicate_covered"] = [VINDICATE_CATEGORIES[c] for c in summary["covered"]]
        slim["vindicate_missing"] = [VINDICATE_CATEGORIES[c] for c in summary["missing"]]
        slim["common_missed"] = comparison["common_missed"]
    if mode in ("cant_miss", "combined"):
        slim["cant_miss_hit"] = comparison["cant_miss_hit"]
        slim["cant_miss_missed"] = comparison["cant_miss_missed"]
    return slim


def build_feedback_message(comparison: dict, chief_complaint: str) -> str:
    """User message for the differential narrative."""
    mode = comparison.get("feedback_mode", DEFAULT_FEEDBACK_MODE)
    return (
        f"{MODE_FOCUS.get(mode, MODE_FOCUS[DEFAULT_FEEDBACK_MODE])}\n\n"
        "Explain this already-scored differential to the student.\n\n"
        f"{json.dumps(_slim_comparison(comparison, chief_complaint), indent=2)}"
    )


def template_narrative(comparison: dict) -> str:
    """Fallback narrative when no LLM is available — same bullet format."""
    mode = comparison.get("feedback_mode", DEFAULT_FEEDBACK_MODE)
    hits = [n for names in comparison["tiered_differential"].values() for n in names]
    lines = []

    if hits:
        lines.append(f"- Strength: Your differential included {', '.join(hits[:3])}.")
    else:
        lines.append("- Strength: You committed to a differential, which is the first step.")

    top_missed = comparison["tiered_missed"].get("most_likely", [])
    if top_missed:
        lines.append(f"- Consider: {', '.join(top_missed)} belongs near the top for this presentation.")

    if mode in ("breadth", "combined"):
        missing = vindicate_summary(comparison)["missing"]
        if missing:
            labels = ", ".join(VINDICATE_CATEGORIES[c] for c in missing[:3])
            lines.append(f"- Consider: Widen your differential to {labels} causes.")

    if mode in ("cant_miss", "combined"):
        for name in comparison["cant_miss_missed"][:2]:
            lines.append(f"- Can't-miss: {name} is dangerous if overlooked and should be ruled out.")

    return "\n".join(lines)


def run_differential_feedback(
    llm: LLMClient | None,
    diagnoses: list,
    answer_key: list,
    chief_complaint: str = "",
    feedback_mode: str = DEFAULT_FEEDBACK_MODE,
) -> dict:
    """
    Deterministic comparison + narrative.

    Returns:
        FeedbackResult dict: ComparisonResult fields + confidence_calibration +
        ai_narrative + narrative_source ("llm" or "template")
    """
    mode = _resolve_mode(feedback_mode)
    comparison = compare_differential(diagnoses, answer_key, feedback_mode=mode)

    narrative = ""
    source = "template"
    if llm is not None:
        try:
            narrative = llm.query_text(
                system_prompt=DIFFERENTIAL_FEEDBACK,
                user_message=build_feedback_message(comparison, chief_complaint),
                flow="differential",
            )
            source = "llm"
        except Exception as e:
            logger.warning(f"Differential narrative unavailable: {e}")
            narrative = ""

    if not narrative:
        narrative = template_narrative(comparison)
        source = "template"

    # comparison fields are ALWAYS from code, never from the LLM
    return {
        **comparison,
        "confidence_calibration": confidence_calibration(diagnoses, comparison),
        "ai_narrative": narrative,
        "narrative_source": source,
    }


def run_practice_feedback(
    llm: LLMClient | None,
    diagnoses: list,
    correct_diagnosis: str,
    chief_complaint: str = "",
    patient_age=None,
    patient_gender: str = None,
    simulation: bool = False,
) -> dict:
    """
    Practice case (no answer key): did the student include the reference diagnosis?
    simulation=True asks for the enriched debrief (expert reasoning, takeaways, pitfalls).
    """
    texts = [d.get("diagnosis", "") if isinstance(d, dict) else d for d in diagnoses or []]
    student_got_it = check_practice_differential(texts, correct_diagnosis)

    demographics = " ".join(
        p for p in [f"{patient_age}-year-old" if patient_age else "", patient_gender or ""] if p
    )
    case_line = f"{demographics} presenting with {chief_complaint}" if demographics else chief_complaint
    user_message = (
        f"Case: {case_line}\n"
        f"Correct diagnosis: {correct_diagnosis}\n"
        f"Student's differential: {', '.join(texts) or 'none'}\n"
        f"Student included correct answer: {'Yes' if student_got_it else 'No'}"
    )

    if student_got_it:
        fallback = (
            f"You correctly identified {correct_diagnosis}. Review the other diagnoses in your "
            f"differential to understand what else could present similarly."
        )
    else:
        fallback = (
            f"The correct diagnosis was {correct_diagnosis}. Consider what clinical features would "
            f"point toward this diagnosis and how it differs from your top choices."
        )

    result = {
        "narrative": fallback,
        "correct_diagnosis": correct_diagnosis,
        "student_got_it": student_got_it,
        "narrative_source": "template",
    }
    if simulation:
        result.update({"expert_reasoning": "", "key_takeaways": [], "common_pitfalls": []})

    if llm is None:
        return result

    try:
        if simulation:
            parsed = llm.query_json(
                system_prompt=PRACTICE_SIMULATION_DEBRIEF,
                user_message=user_message,
                flow="practice_simulation",
            )
            if parsed.get("narrative"):
                result.update({
                    "narrative": parsed["narrative"],
                    "expert_reasoning": parsed.get("expert_reasoning", ""),
                    "key_takeaways": parsed.get("key_takeaways", []),
                    "common_pitfalls": parsed.get("common_pitfalls", []),
                    "narrative_source": "llm",
                })
        else:
            narrative = llm.query_text(
                system_prompt=PRACTICE_FEEDBACK,
                user_message=user_message,
                flow="practice",
            )
            if narrative:
                result.update({"narrative": narrative, "narrative_source": "llm"})
    except Exception as e:
        logger.warning(f"Practice narrative unavailable: {e}")

    return result
