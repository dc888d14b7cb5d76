"""
Unit tests for compare_differential() and its companions.
Totality, idempotence, empty-input boundaries, exact vs fuzzy records, calibration.
"""

import copy
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import DIFFERENTIAL_TIERS, VINDICATE_CATEGORIES
from scoring.differential_comparator import (
    check_practice_differential,
    compare_differential,
    confidence_calibration,
    vindicate_summary,
)

ANSWER_KEY = [
    {"diagnosis": "Myocardial Infarction", "tier": "most_likely", "vindicate_category": "V",
     "is_common": True, "is_cant_miss": True, "aliases": ["MI", "Heart Attack"]},
    {"diagnosis": "Pulmonary Embolism", "tier": "moderate", "vindicate_category": "V",
     "is_common": False, "is_cant_miss": True, "aliases": ["PE"]},
    {"diagnosis": "GERD", "tier": "less_likely", "vindicate_category": "I2",
     "is_common": True, "is_cant_miss": False, "aliases": ["Reflux"]},
    {"diagnosis": "Aortic Dissection", "tier": "unlikely_important", "vindicate_category": "T",
     "is_common": False, "is_cant_miss": True, "aliases": []},
]


def _dx(*texts):
    return [{"diagnosis": t, "sort_order": i} for i, t in enumerate(texts)]


def _hits(result):
    return [n for names in result["tiered_differential"].values() for n in names]


def _misses(result):
    return [n for names in result["tiered_missed"].values() for n in names]


def test_exact_alias_match():
    result = compare_differential(_dx("MI"), ANSWER_KEY[:1])
    assert "Myocardial Infarction" in result["cant_miss_hit"]
    assert result["unmatched"] == []
    assert result["fuzzy_matched"] == []
    assert result["matches"][0]["kind"] == "exact"


def test_fuzzy_match_is_recorded_separately():
    result = compare_differential(_dx("Acute MI syndrome"), ANSWER_KEY[:1])
    assert result["fuzzy_matched"] == [
        {"student": "Acute MI syndrome", "matched_to": "Myocardial Infarction"}
    ]
    assert result["cant_miss_hit"] == ["Myocardial Infarction"]
    assert result["matches"][0]["kind"] == "fuzzy"


def test_totality():
    students = _dx("Heart attack", "Costochondritis", "reflux", "PE", "Anxiety")
    result = compare_differential(students, ANSWER_KEY)

    key_names = sorted(e["diagnosis"] for e in ANSWER_KEY)
    assert sorted(_hits(result) + _misses(result)) == key_names
    assert not set(_hits(result)) & set(_misses(result))

    matched_students = [m["student"] for m in result["matches"]]
    assert sorted(matched_students + result["unmatched"]) == sorted(d["diagnosis"] for d in students)


def test_buckets_and_coverage():
    result = compare_differential(_dx("PE", "GERD"), ANSWER_KEY)
    assert result["tiered_differential"]["moderate"] == ["Pulmonary Embolism"]
    assert result["tiered_missed"]["most_likely"] == ["Myocardial Infarction"]
    assert result["tier_coverage"]["moderate"] == {"matched": 1, "total": 1}
    assert result["common_hit"] == ["GERD"]
    assert result["common_missed"] == ["Myocardial Infarction"]
    assert result["cant_miss_missed"] == ["Myocardial Infarction", "Aortic Dissection"]
    assert result["vindicate_coverage"]["V"] is True
    assert result["vindicate_coverage"]["I2"] is True
    assert result["vindicate_coverage"]["T"] is False
    assert result["diagnosis_categories"] == {"PE": "V", "GERD": "I2"}


def test_idempotent_and_inputs_untouched():
    students = _dx("MI", "Acute aortic dissection", "Pneumothorax")
    key_before = copy.deepcopy(ANSWER_KEY)
    students_before = copy.deepcopy(students)

    first = compare_differential(students, ANSWER_KEY)
    second = compare_differential(students, ANSWER_KEY)
    assert first == second
    assert ANSWER_KEY == key_before
    assert students == students_before


def test_empty_student_list():
    result = compare_differential([], ANSWER_KEY)
    assert sorted(_misses(result)) == sorted(e["diagnosis"] for e in ANSWER_KEY)
    assert _hits(result) == []
    assert not any(result["vindicate_coverage"].values())
    assert set(result["vindicate_coverage"]) == set(VINDICATE_CATEGORIES)


def test_empty_answer_key():
    result = compare_differential(_dx("MI", "Asthma"), [])
    assert result["unmatched"] == ["MI", "Asthma"]
    for tier in DIFFERENTIAL_TIERS:
        assert result["tiered_differential"][tier] == []
        assert result["tiered_missed"][tier] == []
    assert result["cant_miss_hit"] == [] and result["cant_miss_missed"] == []


def test_none_inputs_are_empty():
    result = compare_differential(None, None)
    assert result["unmatched"] == []
    assert result["matches"] == []


def test_duplicate_exact_goes_to_unmatched():
    result = compare_differential(_dx("MI", "Heart Attack"), ANSWER_KEY)
    assert result["tier_coverage"]["most_likely"] == {"matched": 1, "total": 1}
    assert result["unmatched"] == ["Heart Attack"]


def test_rank_order_decides_claims():
    students = [
        {"diagnosis": "Heart Attack", "sort_order": 1},
        {"diagnosis": "MI", "sort_order": 0},
    ]
    result = compare_differential(students, ANSWER_KEY)
    assert result["matches"][0]["student"] == "MI"
    assert result["unmatched"] == ["Heart Attack"]


def test_fuzzy_only_targets_unclaimed_entries():
    # "Embolism" would fuzzy-match PE, but PE was already claimed exactly
    result = compare_differential(_dx("PE", "Embolism"), ANSWER_KEY)
    assert result["unmatched"] == ["Embolism"]
    assert result["fuzzy_matched"] == []


def test_fuzzy_prefers_smallest_length_gap():
    key = [
        {"diagnosis": "Pneumonia", "tier": "most_likely", "aliases": []},
        {"diagnosis": "Aspiration Pneumonia", "tier": "moderate", "aliases": []},
    ]
    result = compare_differential(_dx("Aspiration Pneumonia, right lower lobe"), key)
    assert result["fuzzy_matched"][0]["matched_to"] == "Aspiration Pneumonia"


def test_feedback_mode_carried_through():
    assert compare_differential([], ANSWER_KEY, feedback_mode="breadth")["feedback_mode"] == "breadth"


def test_vindicate_summary():
    result = compare_differential(_dx("MI"), ANSWER_KEY)
    summary = vindicate_summary(result)
    assert summary["covered"] == ["V"]
    assert summary["covered_count"] == 1
    assert "T" in summary["missing"]


def test_practice_check():
    assert check_practice_differential(["Appendicitis"], "Acute Appendicitis")
    assert check_practice_differential([{"diagnosis": "acute appendicitis"}], "Acute Appendicitis")
    assert not check_practice_differential(["Cholecystitis"], "Acute Appendicitis")
    assert not check_practice_differential([], "Acute Appendicitis")
    assert not check_practice_differential([""], "Acute Appendicitis")


def test_confidence_calibration():
    students = [
        {"diagnosis": "MI", "sort_order": 0, "confidence": 5},
        {"diagnosis": "Anxiety", "sort_order": 1, "confidence": 4},
        {"diagnosis": "PE", "sort_order": 2, "confidence": 2},
        {"diagnosis": "GERD", "sort_order": 3},
    ]
    comparison = compare_differential(students, ANSWER_KEY)
    calibration = confidence_calibration(students, comparison)
    assert len(calibration["data_points"]) == 3
    assert calibration["well_calibrated"] == 1
    assert calibration["overconfident"] == 1
    assert calibration["underconfident"] == 1


def test_calibration_duplicate_text_counts_once():
    students = [
        {"diagnosis": "MI", "sort_order": 0, "confidence": 5},
        {"diagnosis": "MI", "sort_order": 1, "confidence": 5},
    ]
    comparison = compare_differential(students, ANSWER_KEY)
    calibration = confidence_calibration(students, comparison)
    assert calibration["well_calibrated"] == 1
    assert calibration["overconfident"] == 1


def test_null_sort_order_keeps_list_position():
    students = [
        {"diagnosis": "Anxiety", "sort_order": None},
        {"diagnosis": "MI", "sort_order": 0},
    ]
    result = compare_differential(students, ANSWER_KEY)
    assert result["cant_miss_hit"] == ["Myocardial Infarction"]
    assert result["unmatched"] == ["Anxiety"]
    assert [m["student"] for m in result["matches"]] == ["MI"]
