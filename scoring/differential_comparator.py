"""
DDx Coach | Differential Comparator (Deterministic Code)
===========================================================
100% deterministic — identical (diagnoses, answer key) always produces an identical result.

Input:  ranked student DiagnosisEntry list + tiered AnswerKeyEntry list
Output: ComparisonResult dict (tier hit/miss buckets, common / can't-miss buckets,
        VINDICATE coverage, unmatched entries, exact vs fuzzy match records)

Claiming Rules:
  - Student entries are processed in rank order (sort_order)
  - Exact alias-index match first; fuzzy (substring) only when exact fails
  - An answer-key entry is claimed by at most one student entry (first in rank wins)
  - A student entry whose exact target is already claimed is a duplicate → unmatched
  - Fuzzy candidates are limited to still-unclaimed entries; smallest length gap wins,
    ties go to answer-key order
"""

from config import CONFIDENT_THRESHOLD, DEFAULT_FEEDBACK_MODE, DIFFERENTIAL_TIERS, VINDICATE_CATEGORIES
from scoring.term_matcher import (
    EXACT,
    TermMatch,
    build_alias_index,
    fuzzy_match_entry,
    match,
    normalize,
    same_diagnosis,
)


def _ranked(diagnoses: list) -> list:
    """Stable sort by sort_order; entries without one (missing or None) keep list position."""
    def rank_key(pair):
        position, entry = pair
        order = entry.get("sort_order")
        return (position if order is None else order, position)

    indexed = sorted(enumerate(diagnoses or []), key=rank_key)
    return [d for _, d in indexed]


def _empty_result(feedback_mode: str) -> dict:
    return {
        "tiered_differential": {tier: [] for tier in DIFFERENTIAL_TIERS},
        "tiered_missed": {tier: [] for tier in DIFFERENTIAL_TIERS},
        "tier_coverage": {tier: {"matched": 0, "total": 0} for tier in DIFFERENTIAL_TIERS},
        "common_hit": [],
        "common_missed": [],
        "cant_miss_hit": [],
        "cant_miss_missed": [],
        "vindicate_coverage": {cat: False for cat in VINDICATE_CATEGORIES},
        "diagnosis_categories": {},
        "unmatched": [],
        "fuzzy_matched": [],
        "matches": [],
        "feedback_mode": feedback_mode,
    }


def _claim_entries(ranked: list, answer_key: list, alias_index: dict) -> tuple:
    """
    Pair student entries with answer-key entries.

    Returns:
        (claims, unmatched) — claims maps canonical name → (student_entry, TermMatch)
    """
    claims = {}
    unmatched = []

    for student in ranked:
        text = student.get("diagnosis", "")
        canonical = match(text, alias_index)

        if canonical is not None:
            if canonical in claims:
                unmatched.append(text)
            else:
                claims[canonical] = (student, TermMatch(canonical=canonical, kind=EXACT))
            continue

        best = None
        for entry in answer_key:
            if entry.get("diagnosis") in claims:
                continue
            candidate = fuzzy_match_entry(text, entry)
            if candidate is None:
                continue
            if best is None or candidate.distance_hint < best.distance_hint:
                best = candidate

        if best is None:
            unmatched.append(text)
        else:
            claims[best.canonical] = (student, best)

    return claims, unmatched


def compare_differential(
    diagnoses: list,
    answer_key: list,
    feedback_mode: str = DEFAULT_FEEDBACK_MODE,
) -> dict:
    """
    Deterministic comparison of a ranked student differential against an answer key.

    Args:
        diagnoses: DiagnosisEntry dicts ({diagnosis, sort_order, confidence?, ...})
        answer_key: AnswerKeyEntry dicts ({diagnosis, tier, vindicate_category,
                    is_common, is_cant_miss, aliases})
        feedback_mode: breadth / cant_miss / combined (carried through for prompting)

    Returns:
        ComparisonResult dict. Inputs are never mutated.
    """
    answer_key = answer_key or []
    result = _empty_result(feedback_mode)
    alias_index = build_alias_index(answer_key)
    claims, unmatched = _claim_entries(_ranked(diagnoses), answer_key, alias_index)
    result["unmatched"] = unmatched

    for entry in answer_key:
        name = entry.get("diagnosis", "")
        tier = entry.get("tier")
        category = entry.get("vindicate_category")
        claimed = claims.get(name)

        coverage = result["tier_coverage"].setdefault(tier, {"matched": 0, "total": 0})
        coverage["total"] += 1

        if claimed:
            student, _ = claimed
            coverage["matched"] += 1
            result["tiered_differential"].setdefault(tier, []).append(name)
            if entry.get("is_common"):
                result["common_hit"].append(name)
            if entry.get("is_cant_miss"):
                result["cant_miss_hit"].append(name)
            if category:
                result["vindicate_coverage"][category] = True
                result["diagnosis_categories"][student.get("diagnosis", "")] = category
        else:
            result["tiered_missed"].setdefault(tier, []).append(name)
            if entry.get("is_common"):
                result["common_missed"].append(name)
            if entry.get("is_cant_miss"):
                result["cant_miss_missed"].append(name)
            if category:
                result["vindicate_coverage"].setdefault(category, False)

    # claims is filled in rank order, so records come out ranked
    for canonical, (student, term_match) in claims.items():
        record = {
            "student": student.get("diagnosis", ""),
            "matched_to": canonical,
            "kind": term_match.kind,
            "distance_hint": term_match.distance_hint,
            "sort_order": student.get("sort_order"),
        }
        result["matches"].append(record)
        if not term_match.is_exact:
            result["fuzzy_matched"].append(
                {"student": record["student"], "matched_to": canonical}
            )

    return result


def vindicate_summary(comparison: dict) -> dict:
    """Covered / missing VINDICATE keys (standard categories only) for reports and prompts."""
    coverage = comparison.get("vindicate_coverage", {})
    covered = [cat for cat in VINDICATE_CATEGORIES if coverage.get(cat)]
    missing = [cat for cat in VINDICATE_CATEGORIES if not coverage.get(cat)]
    return {"covered": covered, "missing": missing, "covered_count": len(covered)}


def check_practice_differential(diagnoses: list, correct_diagnosis: str) -> bool:
    """
    Practice cases carry only a reference diagnosis, no answer key.
    True iff any student diagnosis equals it (normalized) or either contains the other.
    """
    for d in diagnoses or []:
        text = d.get("diagnosis", "") if isinstance(d, dict) else d
        if normalize(text) and normalize(text) == normalize(correct_diagnosis):
            return True
        if same_diagnosis(text, correct_diagnosis):
            return True
    return False


def confidence_calibration(diagnoses: list, comparison: dict) -> dict:
    """
    Compare self-rated confidence with correctness (matched to any answer-key entry).

    Returns:
        {"data_points": [{label, confidence, was_correct}], "well_calibrated",
         "overconfident", "underconfident"}
    """
    matched = {(m["sort_order"], m["student"]) for m in comparison.get("matches", [])}
    points = []
    for d in _ranked(diagnoses):
        confidence = d.get("confidence")
        if confidence is None:
            continue
        points.append({
            "label": d.get("diagnosis", ""),
            "confidence": confidence,
            "was_correct": (d.get("sort_order"), d.get("diagnosis", "")) in matched,
        })

    return {
        "data_points": points,
        "well_calibrated": sum(
            1 for p in points if p["was_correct"] and p["confidence"] >= CONFIDENT_THRESHOLD
        ),
        "overconfident": sum(
            1 for p in points if not p["was_correct"] and p["confidence"] >= CONFIDENT_THRESHOLD
        ),
        "underconfident": sum(
            1 for p in points if p["was_correct"] and p["confidence"] < CONFIDENT_THRESHOLD
        ),
    }
