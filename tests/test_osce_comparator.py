"""
Unit tests for compare_osce_performance().
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from scoring.osce_comparator import compare_osce_performance

ANSWER_KEY = [
    {"diagnosis": "Acute Appendicitis", "tier": "most_likely", "is_cant_miss": True,
     "aliases": ["Appendicitis"]},
    {"diagnosis": "Ectopic Pregnancy", "tier": "unlikely_important", "is_cant_miss": True,
     "aliases": []},
    {"diagnosis": "Gastroenteritis", "tier": "moderate", "is_cant_miss": False, "aliases": []},
    {"diagnosis": "Ovarian Torsion", "tier": "less_likely", "is_cant_miss": False, "aliases": []},
]

DOOR_PREP = {
    "diagnoses": [
        {"diagnosis": "Appendicitis", "sort_order": 0,
         "history_questions": ["Where did the pain start?", "Fever?", "Anorexia?"],
         "pe_maneuvers": ["McBurney point", "Psoas sign"]},
        {"diagnosis": "Gastroenteritis", "sort_order": 1,
         "history_questions": ["Diarrhea?", " "],
         "pe_maneuvers": ["mcburney point ", "Bowel sounds", ""]},
    ]
}

SOAP_NOTE = {
    "diagnoses": [
        {"diagnosis": "appendicitis", "sort_order": 0,
         "evidence": ["RLQ tenderness", "Fever 38.2"], "assessment": "Classic migration.",
         "diagnostic_plan": ["CBC", "CT abdomen"], "therapeutic_plan": ["Surgery consult"]},
        {"diagnosis": "Mesenteric adenitis", "sort_order": 1,
         "evidence": [], "assessment": "  ", "diagnostic_plan": ["Ultrasound"],
         "therapeutic_plan": []},
    ]
}


def test_differential_quality():
    result = compare_osce_performance(DOOR_PREP, SOAP_NOTE, ANSWER_KEY)
    dq = result["differential_quality"]
    assert dq["total"] == 2
    assert dq["matched_count"] == 1
    assert dq["matched_diagnoses"] == ["Acute Appendicitis"]
    assert dq["missed_important"] == ["Ectopic Pregnancy"]
    assert dq["correct_diagnosis"] == "Acute Appendicitis"
    assert dq["correct_diagnosis_included"] is True
    assert dq["door_prep_matched"] == ["Acute Appendicitis", "Gastroenteritis"]


def test_evolution():
    evolution = compare_osce_performance(DOOR_PREP, SOAP_NOTE, ANSWER_KEY)["differential_quality"]["evolution"]
    assert evolution["kept"] == ["appendicitis"]
    assert evolution["added"] == ["Mesenteric adenitis"]
    assert evolution["dropped"] == ["Gastroenteritis"]


def test_workup_counts():
    result = compare_osce_performance(DOOR_PREP, SOAP_NOTE, ANSWER_KEY)
    assert result["history_quality"]["total_questions"] == 4
    assert result["history_quality"]["avg_questions_per_diagnosis"] == 2
    assert result["pe_quality"]["total_maneuvers"] == 5
    assert result["pe_quality"]["unique_maneuvers"] == 3
    sq = result["soap_quality"]
    assert sq["evidence_mapped"] == 2
    assert sq["assessments_written"] == 1
    assert sq["diagnostic_plan_items"] == 3
    assert sq["therapeutic_plan_items"] == 1


def test_no_door_prep_diagnoses_avoids_division_by_zero():
    result = compare_osce_performance({"diagnoses": []}, SOAP_NOTE, ANSWER_KEY)
    assert result["history_quality"]["avg_questions_per_diagnosis"] == 0
    assert result["pe_quality"]["unique_maneuvers"] == 0


def test_supplied_correct_diagnosis_overrides_key_order():
    result = compare_osce_performance(DOOR_PREP, SOAP_NOTE, ANSWER_KEY, correct_diagnosis="Ovarian Torsion")
    assert result["differential_quality"]["correct_diagnosis"] == "Ovarian Torsion"
    assert result["differential_quality"]["correct_diagnosis_included"] is False


def test_fuzzy_text_does_not_count_in_osce():
    soap = {"diagnoses": [{"diagnosis": "Perforated appendicitis", "sort_order": 0}]}
    dq = compare_osce_performance(DOOR_PREP, soap, ANSWER_KEY)["differential_quality"]
    assert dq["matched_count"] == 0
    assert "Acute Appendicitis" in dq["missed_important"]


def test_empty_phases():
    result = compare_osce_performance(None, None, [])
    dq = result["differential_quality"]
    assert dq["total"] == 0
    assert dq["correct_diagnosis"] == ""
    assert dq["correct_diagnosis_included"] is False
    assert result["soap_quality"]["evidence_mapped"] == 0
