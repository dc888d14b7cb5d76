"""
Markdown report rendering (no LLM, no python-docx required).
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from feedback.differential_feedback import run_differential_feedback
from feedback.osce_feedback import run_osce_feedback
from report_renderer import render_report

ANSWER_KEY = [
    {"diagnosis": "Pneumonia", "tier": "most_likely", "vindicate_category": "I",
     "is_common": True, "is_cant_miss": False, "aliases": ["CAP"]},
    {"diagnosis": "Pulmonary Embolism", "tier": "unlikely_important", "vindicate_category": "V",
     "is_common": False, "is_cant_miss": True, "aliases": ["PE"]},
]


def test_differential_report(tmp_path):
    diagnoses = [
        {"diagnosis": "Community-acquired pneumonia (CAP)", "sort_order": 0, "confidence": 4},
        {"diagnosis": "Bronchitis", "sort_order": 1, "confidence": 2},
    ]
    result = run_differential_feedback(None, diagnoses, ANSWER_KEY)
    path = render_report(result, "case1_s01", output_dir=str(tmp_path))

    assert os.path.basename(path) == "feedback_case1_s01.md"
    with open(path, encoding="utf-8") as f:
        md = f.read()
    assert "## Answer Key Coverage" in md
    assert "| Most Likely | 1/1 | Pneumonia |" in md
    assert "- ✗ Pulmonary Embolism" in md
    assert "counted as Pneumonia" in md
    assert "- Bronchitis" in md
    assert "## Confidence Calibration" in md


def test_osce_report(tmp_path):
    door = {"diagnoses": [{"diagnosis": "Pneumonia", "history_questions": ["Fever?", "Cough?"],
                           "pe_maneuvers": ["Lung auscultation"]}]}
    soap = {"diagnoses": [{"diagnosis": "CAP", "evidence": ["Crackles RLL"], "assessment": "Lobar",
                           "diagnostic_plan": ["CXR"], "therapeutic_plan": ["Antibiotics"]}]}
    result = run_osce_feedback(None, door, soap, ANSWER_KEY)
    path = render_report(result, "osce_case1", output_dir=str(tmp_path))

    with open(path, encoding="utf-8") as f:
        md = f.read()
    assert "OSCE Feedback" in md
    assert "| Correct diagnosis included | yes |" in md
    assert "**Key diagnoses missed:** Pulmonary Embolism" in md
    assert "## Strengths" in md
