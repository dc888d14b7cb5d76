"""
DDx Coach Configuration
==========================
Differential-diagnosis practice feedback for medical students
- Deterministic scoring: answer-key comparison, OSCE workup counts
- Narrative: Anthropic Claude API (optional, template fallback)
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Project root: directory containing this config.py file
PROJECT_ROOT = str(Path(__file__).resolve().parent)

# Load .env file (override=True to ensure .env values take precedence)
load_dotenv(override=True)

# --- API Configuration ---
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.environ.get("DDX_COACH_MODEL", "claude-sonnet-4-6")
MAX_TOKENS = 1200
TEMPERATURE = 0.3  # Some warmth in narrative, structure comes from code

# Per-flow token budgets for the narrative generator
FLOW_TOKENS = {
    "differential": 500,
    "practice": 400,
    "practice_simulation": 800,
    "osce": 1200,
    "soap_context": 500,
}

# --- Logging ---
LOGGER_NAME = "ddx_coach"

# --- Answer Key Constants ---
# Ordered most → least likely; report and prompt sections follow this order
DIFFERENTIAL_TIERS = ["most_likely", "moderate", "less_likely", "unlikely_important"]

TIER_LABELS = {
    "most_likely": "Most Likely",
    "moderate": "Moderate",
    "less_likely": "Less Likely",
    "unlikely_important": "Unlikely but Important",
}

# VINDICATE etiology mnemonic (I2 disambiguates the second "I")
VINDICATE_CATEGORIES = {
    "V": "Vascular",
    "I": "Infectious",
    "N": "Neoplastic",
    "D": "Degenerative",
    "I2": "Iatrogenic/Intoxication",
    "C": "Congenital",
    "A": "Autoimmune/Allergic",
    "T": "Traumatic",
    "E": "Endocrine/Metabolic",
}

# --- Feedback Modes (what the narrative focuses on) ---
FEEDBACK_MODES = {
    "breadth": "Focus on VINDICATE coverage",
    "cant_miss": "Focus on dangerous diagnoses",
    "combined": "Both breadth and can't-miss",
}
DEFAULT_FEEDBACK_MODE = "combined"

# Confidence is rated 1-5; >= threshold counts as "confident"
CONFIDENCE_MIN = 1
CONFIDENCE_MAX = 5
CONFIDENT_THRESHOLD = 4

# --- Clinical Text Constants ---
BULLET = "• "
NO_SUBJECTIVE_PLACEHOLDER = "No subjective data available"
NO_OBJECTIVE_PLACEHOLDER = "No objective data available"
FINDING_MIN_LENGTH = 5
FINDING_SEGMENT_MIN_LENGTH = 3
FINDING_MAX_LENGTH = 200

# OSCE rubric categories and rating scale
OSCE_RUBRIC_CATEGORIES = [
    "Differential Diagnosis",
    "History Taking",
    "Physical Exam Selection",
    "Diagnostic Workup",
    "Treatment Planning",
]
RUBRIC_RATINGS = ["excellent", "good", "developing", "needs_work"]

# --- Output Configuration (relative to PROJECT_ROOT) ---
RESULTS_PATH = os.path.join(PROJECT_ROOT, "results")
REPORTS_PATH = os.path.join(PROJECT_ROOT, "reports")
LOGS_PATH = os.path.join(PROJECT_ROOT, "logs")

# Roster CSV columns for batch scoring
ROSTER_COLUMNS = ["student_id", "diagnoses"]
ROSTER_OPTIONAL_COLUMNS = ["confidences", "feedback_mode"]
