"""
DDx Coach | Report Renderer (Code Only)
==========================================
Converts a differential or OSCE feedback result dict -> Markdown report.
No LLM calls. Reuses the narrative already stored on the result.
Optional .docx conversion with python-docx.
"""

import os
from datetime import datetime

from config import DIFFERENTIAL_TIERS, REPORTS_PATH, TIER_LABELS, VINDICATE_CATEGORIES


def render_report(result: dict, report_id: str, output_dir: str = REPORTS_PATH) -> str:
    """
    Render one feedback result to Markdown.
    Returns the filepath of the generated report.
    """
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M")

    if "comparison" in result:
        md = _render_osce(result, report_id, timestamp)
    else:
        md = _render_differential(result, report_id, timestamp)

    filepath = os.path.join(output_dir, f"feedback_{report_id}.md")
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(md)

    return filepath


def render_docx(md_path: str) -> str | None:
    """
    Convert Markdown report to Word document.
    Returns filepath or None if python-docx not available.
    """
    try:
        from docx import Document as DocxDocument
        from docx.shared import Pt
    except ImportError:
        print("  [Report] python-docx not installed, skipping .docx generation")
        return None

    with open(md_path, "r", encoding="utf-8") as f:
        lines = f.readlines()

    doc = DocxDocument()

    for line in lines:
        line = line.rstrip("\n")

        if line.strip() == "---":
            continue
        if line.startswith("# "):
            doc.add_heading(line[2:].strip(), level=1)
        elif line.startswith("## "):
            doc.add_heading(line[3:].strip(), level=2)
        elif line.startswith("> "):
            run = doc.add_paragraph().add_run(line[2:].strip())
            run.italic = True
        elif line.startswith("|"):
            if set(line.replace("|", "").replace("-", "").strip()) == set():
                continue  # separator row like |---|---|
            cells = [c.strip() for c in line.split("|")[1:-1]]
            p = doc.add_paragraph("  |  ".join(cells))
            p.style = doc.styles["No Spacing"]
        elif line.startswith("- "):
            doc.add_paragraph(line[2:].strip(), style="List Bullet")
        elif line.startswith("*") and line.endswith("*"):
            run = doc.add_paragraph().add_run(line.strip("*").strip())
            run.italic = True
            run.font.size = Pt(9)
        elif line.strip() == "":
            doc.add_paragraph("")
        else:
            doc.add_paragraph(line.replace("**", ""))

    docx_path = md_path.replace(".md", ".docx")
    doc.save(docx_path)
    return docx_path


# ==========================================================================
# Differential Feedback Report
# ==========================================================================

def _render_differential(result: dict, report_id: str, timestamp: str) -> str:
    lines = [_header("Differential Feedback", report_id, timestamp)]
    lines.append(_tiers(result))
    lines.append(_cant_miss(result))
    lines.append(_vindicate(result))
    lines.append(_unmatched(result))
    lines.append(_calibration(result.get("confidence_calibration", {})))
    lines.append(_narrative(result.get("ai_narrative", ""), result.get("narrative_source")))
    lines.append(_footer(timestamp))
    return "\n".join(lines)


def _tiers(result: dict) -> str:
    lines = ["\n## Answer Key Coverage\n"]
    lines.append("| Tier | Covered | Hit | Missed |")
    lines.append("|------|---------|-----|--------|")
    for tier in DIFFERENTIAL_TIERS:
        cov = result["tier_coverage"].get(tier, {"matched": 0, "total": 0})
        hit = ", ".join(result["tiered_differential"].get(tier, [])) or "—"
        missed = ", ".join(result["tiered_missed"].get(tier, [])) or "—"
        lines.append(f"| {TIER_LABELS[tier]} | {cov['matched']}/{cov['total']} | {hit} | {missed} |")
    lines.append("")
    return "\n".join(lines)


def _cant_miss(result: dict) -> str:
    hit = result["cant_miss_hit"]
    missed = result["cant_miss_missed"]
    lines = [f"\n## Can't-Miss Diagnoses ({len(hit)} of {len(hit) + len(missed)})\n"]
    for name in hit:
        lines.append(f"- ✓ {name}")
    for name in missed:
        lines.append(f"- ✗ {name}")
    if result["common_missed"]:
        lines.append(f"\n**Common diagnoses missed:** {', '.join(result['common_missed'])}")
    return "\n".join(lines)


def _vindicate(result: dict) -> str:
    coverage = result["vindicate_coverage"]
    covered = sum(1 for cat in VINDICATE_CATEGORIES if coverage.get(cat))
    lines = [f"\n## VINDICATE Coverage ({covered}/{len(VINDICATE_CATEGORIES)})\n"]
    lines.append("| Category | Covered |")
    lines.append("|----------|---------|")
    for cat, label in VINDICATE_CATEGORIES.items():
        lines.append(f"| {label} | {'✓' if coverage.get(cat) else '✗'} |")
    lines.append("")
    return "\n".join(lines)


def _unmatched(result: dict) -> str:
    lines = []
    if result["fuzzy_matched"]:
        lines.append("\n## Approximate Matches\n")
        for fm in result["fuzzy_matched"]:
            lines.append(f"- \"{fm['student']}\" counted as {fm['matched_to']}")
    if result["unmatched"]:
        lines.append("\n## Not in Answer Key\n")
        lines.extend(f"- {name}" for name in result["unmatched"])
    return "\n".join(lines)


def _calibration(calibration: dict) -> str:
    points = calibration.get("data_points", [])
    if not points:
        return ""
    return (
        f"\n## Confidence Calibration\n\n"
        f"Well calibrated: {calibration['well_calibrated']} | "
        f"Overconfident: {calibration['overconfident']} | "
        f"Underconfident: {calibration['underconfident']}\n"
    )


# ==========================================================================
# OSCE Feedback Report
# ==========================================================================

def _render_osce(result: dict, report_id: str, timestamp: str) -> str:
    comparison = result["comparison"]
    dq = comparison["differential_quality"]
    hq = comparison["history_quality"]
    pq = comparison["pe_quality"]
    sq = comparison["soap_quality"]

    lines = [_header("OSCE Feedback", report_id, timestamp)]
    lines.append("\n## Performance Data\n")
    lines.append("| Measure | Value |")
    lines.append("|---------|-------|")
    lines.append(f"| Correct diagnosis included | {'yes' if dq['correct_diagnosis_included'] else 'no'} |")
    lines.append(f"| Answer-key diagnoses matched | {dq['matched_count']} of {dq['total']} listed |")
    lines.append(f"| History questions | {hq['total_questions']} (avg {hq['avg_questions_per_diagnosis']:.1f}) |")
    lines.append(f"| PE maneuvers | {pq['unique_maneuvers']} unique / {pq['total_maneuvers']} |")
    lines.append(f"| Evidence mapped | {sq['evidence_mapped']} |")
    lines.append(f"| Assessments written | {sq['assessments_written']} |")
    lines.append(f"| Diagnostic / therapeutic plan | {sq['diagnostic_plan_items']} / {sq['therapeutic_plan_items']} |")
    lines.append("")
    if dq["missed_important"]:
        lines.append(f"**Key diagnoses missed:** {', '.join(dq['missed_important'])}\n")

    if result.get("rubric_scores"):
        lines.append("\n## Rubric\n")
        lines.append("| Category | Rating | Comment |")
        lines.append("|----------|--------|---------|")
        for s in result["rubric_scores"]:
            lines.append(f"| {s['category']} | {s['rating'].replace('_', ' ')} | {s['comment']} |")
        lines.append("")

    for title, key in (("Strengths", "strengths"), ("Improvements", "improvements"),
                       ("Can't-Miss", "cant_miss")):
        if result.get(key):
            lines.append(f"\n## {title}\n")
            lines.extend(f"- {item}" for item in result[key])

    lines.append(_narrative(result.get("ai_narrative", ""), result.get("narrative_source")))
    lines.append(_footer(timestamp))
    return "\n".join(lines)


# ==========================================================================
# Shared Sections
# ==========================================================================

def _header(title: str, report_id: str, timestamp: str) -> str:
    return (
        f"# DDx Coach — {title}\n\n"
        f"**Report:** {report_id} | **Generated:** {timestamp}\n\n"
        f"---\n"
    )


def _narrative(narrative: str, source: str | None) -> str:
    if not narrative:
        return ""
    label = "Attending Feedback" if source == "llm" else "Feedback"
    return f"\n## {label}\n\n{narrative}\n"


def _footer(timestamp: str) -> str:
    return (
        f"\n---\n"
        f"*Report generated by DDx Coach | {timestamp}*\n"
    )
