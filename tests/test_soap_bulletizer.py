"""
Unit tests for the clinical-text bulletizer.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import BULLET, NO_OBJECTIVE_PLACEHOLDER, NO_SUBJECTIVE_PLACEHOLDER
from scoring.soap_bulletizer import bullets_from_list, extract_soap_context, flatten_value, to_bullets

CASE = {
    "Patient_Actor": {
        "History": "Chest pain for 2 hours; radiates to left arm; started at rest",
        "Symptoms": {"Primary_Symptom": "Chest pain", "Secondary_Symptoms": ["Diaphoresis", "Nausea"]},
        "Past_Medical_History": "Hypertension",
        "Medications": ["Lisinopril 10 mg", {"name": "Aspirin", "dose": "81 mg"}],
        "Social_History": "",
    },
    "Physical_Examination_Findings": {
        "Vital_Signs": {"Heart_Rate": "92 bpm", "Blood_Pressure": "128/78 mmHg"},
        "Cardiovascular": "S4 gallop",
    },
    "Test_Results": {"ECG": {"Findings": ["ST elevation V1-V4"]}, "Troponin": None},
}

JSON_CHARS = set('{}[]"')


def test_flatten_rules():
    assert flatten_value(42) == "42"
    assert flatten_value(["a", "", None, "b"]) == "a, b"
    assert flatten_value({"Heart_Rate": "92", "BP": "128/78"}) == "Heart Rate: 92 | BP: 128/78"
    assert flatten_value({"Outer": {"Inner_Key": ["x", "y"]}}) == "Outer: Inner Key: x, y"


def test_semicolon_string_splits():
    bullets = to_bullets("HPI", "Chest pain for 2 hours; radiates to left arm; ok")
    assert bullets == [BULLET + "Chest pain for 2 hours", BULLET + "radiates to left arm"]


def test_plain_string_gets_label():
    assert to_bullets("PMH", "Hypertension") == [BULLET + "PMH: Hypertension"]
    assert to_bullets("PMH", "   ") == []
    assert to_bullets("PMH", None) == []


def test_dict_and_list_fields():
    assert to_bullets("Symptoms", {"Primary_Symptom": "Chest pain"}) == [BULLET + "Primary Symptom: Chest pain"]
    assert to_bullets("Medications", ["A", "", "B"]) == [BULLET + "A", BULLET + "B"]


def test_context_sections():
    context = extract_soap_context(CASE)
    subjective = context["subjective"].split("\n")
    objective = context["objective"].split("\n")

    assert BULLET + "Chest pain for 2 hours" in subjective
    assert BULLET + "PMH: Hypertension" in subjective
    assert BULLET + "name: Aspirin | dose: 81 mg" in subjective
    assert BULLET + "Vital Signs: Heart Rate: 92 bpm | Blood Pressure: 128/78 mmHg" in objective
    assert BULLET + "ECG: Findings: ST elevation V1-V4" in objective
    assert not any("Troponin" in line for line in objective)


def test_never_leaks_json_syntax():
    nasty = {
        "Patient_Actor": {"History": {"quote": 'said "ouch"', "list": [["nested"], {"k": "[v]"}]}},
        "Physical_Examination_Findings": {"Skin": ['{"rash": true}']},
    }
    context = extract_soap_context(nasty)
    text = context["subjective"] + context["objective"]
    assert not JSON_CHARS & set(text)


def test_placeholders_when_one_side_empty():
    context = extract_soap_context({"Physical_Examination_Findings": {"Abdomen": "Soft"}})
    assert context["subjective"] == BULLET + NO_SUBJECTIVE_PLACEHOLDER
    assert context["objective"] == BULLET + "Abdomen: Soft"

    context = extract_soap_context({"Patient_Actor": {"History": "Cough"}})
    assert context["objective"] == BULLET + NO_OBJECTIVE_PLACEHOLDER


def test_none_without_structured_data():
    assert extract_soap_context({}) is None
    assert extract_soap_context(None) is None
    assert extract_soap_context({"Test_Results": {"CBC": "normal"}}) is None
    assert extract_soap_context({"Patient_Actor": {"Social_History": ""}}) is None


def test_bullets_from_list():
    assert bullets_from_list(["• Fever", "- Cough", ""], "none") == BULLET + "Fever\n" + BULLET + "Cough"
    assert bullets_from_list("line one\n\nline two", "none") == BULLET + "line one\n" + BULLET + "line two"
    assert bullets_from_list(None, "none") == BULLET + "none"
