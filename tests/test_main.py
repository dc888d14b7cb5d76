"""
Batch-runner tests: per-submission error capture, roster loop, result files.
No LLM (template narratives).
"""

import json
import sys
import os

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import run_roster, run_single_submission, save_results

CASE = {
    "case_id": "headache_01",
    "chief_complaint": "headache",
    "differential_answer_key": [
        {"diagnosis": "Migraine", "tier": "most_likely", "vindicate_category": "V",
         "is_common": True, "is_cant_miss": False, "aliases": []},
        {"diagnosis": "Subarachnoid Hemorrhage", "tier": "unlikely_important",
         "vindicate_category": "V", "is_common": False, "is_cant_miss": True, "aliases": ["SAH"]},
    ],
}


def test_bad_answer_key_is_recorded_not_raised():
    case = {"case_id": "broken", "differential_answer_key": ["not an entry"]}
    result = run_single_submission(None, case, [{"diagnosis": "Migraine", "sort_order": 0}], "s1")
    assert result["feedback"] == {}
    assert len(result["errors"]) == 1
    assert result["errors"][0]["stage"] == "feedback"
    assert "Traceback" in result["errors"][0]["traceback"]
    assert "total" in result["processing_time"]


def test_single_submission_ok():
    result = run_single_submission(None, CASE, [{"diagnosis": "SAH", "sort_order": 0}], "s1", "cant_miss")
    assert result["errors"] == []
    assert result["feedback"]["cant_miss_hit"] == ["Subarachnoid Hemorrhage"]
    assert result["feedback"]["feedback_mode"] == "cant_miss"


def test_practice_submission():
    case = {**CASE, "correct_diagnosis": "Migraine"}
    result = run_single_submission(None, case, [{"diagnosis": "migraine"}], "s1", practice=True)
    assert result["feedback"]["student_got_it"] is True


def test_roster_keeps_going_after_bad_row():
    df = pd.DataFrame({
        "student_id": ["001", "002", "003"],
        "diagnoses": ["Migraine; SAH", "Migraine", "Tension headache"],
        "confidences": ["5;3", "4.5", None],
        "feedback_mode": ["breadth", None, None],
    })
    results, failed = run_roster(None, CASE, df, quiet=True)

    assert [r["student_id"] for r in results] == ["001", "002", "003"]
    assert failed == [("002", "Confidence '4.5' is not a whole number")]
    assert results[1]["errors"][0]["stage"] == "input"
    assert results[0]["feedback"]["feedback_mode"] == "breadth"
    assert results[2]["feedback"]["feedback_mode"] == "combined"
    assert results[2]["feedback"]["unmatched"] == ["Tension headache"]


def test_mode_flag_overrides_row_mode():
    df = pd.DataFrame({"student_id": ["001"], "diagnoses": ["Migraine"],
                       "confidences": [None], "feedback_mode": ["breadth"]})
    results, _ = run_roster(None, CASE, df, mode="cant_miss", quiet=True)
    assert results[0]["feedback"]["feedback_mode"] == "cant_miss"


def test_save_results_writes_json_and_summary(tmp_path):
    ok = run_single_submission(None, CASE, [{"diagnosis": "Migraine", "sort_order": 0}], "s1")
    bad = run_single_submission(None, {"differential_answer_key": [1]}, [], "s2")
    json_path, csv_path = save_results([ok, bad], tag="test", output_dir=str(tmp_path))

    assert os.path.dirname(json_path) == str(tmp_path)
    with open(json_path, encoding="utf-8") as f:
        saved = json.load(f)
    assert [r["student_id"] for r in saved] == ["s1", "s2"]

    summary = pd.read_csv(csv_path, dtype={"student_id": str})
    assert list(summary["student_id"]) == ["s1", "s2"]
    assert list(summary["errors"]) == [0, 1]
    assert summary.loc[0, "most_likely_hit"] == 1
    assert summary.loc[0, "cant_miss_missed"] == 1
