"""
DDx Coach: Command-Line Runner
=================================
Deterministic differential scoring + optional attending-style narrative.

Flows:
  Differential  → compare_differential (Code) → narrative (LLM or template)
  Practice      → reference-diagnosis check (Code) → narrative (LLM or template)
  OSCE          → compare_osce_performance (Code) → rubric (LLM or template)
  SOAP context  → bulletizer (Code) → findings (Code), LLM only if no structured data
  Roster batch  → Differential flow per CSV row → results JSON + summary CSV

Usage:
  python main.py --case case.json --submission sub.json          # One differential
  python main.py --case case.json --submission sub.json --practice
  python main.py --case case.json --osce session.json            # OSCE feedback
  python main.py --case case.json --soap-context                 # S/O bullets + findings
  python main.py --case case.json --roster roster.csv            # Batch scoring
  python main.py ... --mode breadth --no-narrative --docx
"""

import argparse
import json
import logging
import os
import sys
import time
import traceback
from datetime import datetime

import pandas as pd

from config import (
    ANTHROPIC_API_KEY,
    DEFAULT_FEEDBACK_MODE,
    FEEDBACK_MODES,
    LOGGER_NAME,
    LOGS_PATH,
    RESULTS_PATH,
)
from case_loader import (
    get_roster_diagnoses,
    load_case,
    load_osce_session,
    load_roster,
    load_submission,
)
from feedback.differential_feedback import run_differential_feedback, run_practice_feedback
from feedback.osce_feedback import get_soap_context, run_osce_feedback
from llm_client import LLMClient
from report_renderer import render_docx, render_report
from scoring.term_matcher import find_alias_collisions

# --- Run logger (module-level, configured per run) ---
_run_logger: logging.Logger | None = None


def _setup_logger(tag: str) -> logging.Logger:
    """Configure file + console logger for a run.

    File handler is detailed (DEBUG, UTF-8); console shows INFO and above.
    """
    global _run_logger
    os.makedirs(LOGS_PATH, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = os.path.join(LOGS_PATH, f"run_{tag}_{timestamp}.log")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-5s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(fh)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter("  [LOG] %(message)s"))
    logger.addHandler(ch)

    logger.info(f"Run log: {log_path}")
    _run_logger = logger
    return logger


def _log(msg: str, level: str = "info"):
    """Log to the run logger if configured."""
    if _run_logger:
        getattr(_run_logger, level, _run_logger.info)(msg)


def _make_llm(no_narrative: bool) -> LLMClient | None:
    """Narrative generator, or None (template narratives) when disabled/unconfigured."""
    if no_narrative:
        return None
    if not ANTHROPIC_API_KEY:
        print("  ANTHROPIC_API_KEY not set — using template narratives")
        return None
    return LLMClient(backend="anthropic")


def run_single_submission(
    llm: LLMClient | None,
    case: dict,
    diagnoses: list,
    student_id: str,
    feedback_mode: str = DEFAULT_FEEDBACK_MODE,
    practice: bool = False,
) -> dict:
    """Score one student's differential. Errors are recorded on the result, not raised."""
    result = {
        "student_id": student_id,
        "case_id": case.get("case_id"),
        "feedback": {},
        "errors": [],
        "processing_time": {},
    }
    t0 = time.time()
    try:
        if practice:
            result["feedback"] = run_practice_feedback(
                llm,
                diagnoses,
                case.get("correct_diagnosis") or _top_answer(case),
                chief_complaint=case.get("chief_complaint", ""),
                patient_age=case.get("patient_age"),
                patient_gender=case.get("patient_gender"),
            )
        else:
            result["feedback"] = run_differential_feedback(
                llm,
                diagnoses,
                case["differential_answer_key"],
                chief_complaint=case.get("chief_complaint", ""),
                feedback_mode=feedback_mode,
            )
        _log(f"Student {student_id} | OK | {len(diagnoses)} diagnoses")
    except Exception as e:
        tb = traceback.format_exc()
        result["errors"].append({"stage": "feedback", "error": str(e), "traceback": tb})
        _log(f"Student {student_id} | FAIL: {e}", "error")
        _log(tb, "debug")
    result["processing_time"]["total"] = round(time.time() - t0, 2)
    return result


def run_roster(llm: LLMClient | None, case: dict, df: pd.DataFrame,
               mode: str = "", quiet: bool = False) -> tuple:
    """Score every roster row. A bad row is recorded and the loop keeps going.

    Returns:
        (results, failed) where failed is [(student_id, error)]
    """
    _log(f"Roster start: {len(df)} submissions | case={case.get('case_id')}")
    results = []
    failed = []
    for idx, (_, row) in enumerate(df.iterrows()):
        student_id = str(row["student_id"])
        try:
            diagnoses = get_roster_diagnoses(row)
        except ValueError as e:
            _log(f"[{idx+1}/{len(df)}] {student_id} | invalid row: {e}", "error")
            results.append({"student_id": student_id, "case_id": case.get("case_id"),
                            "feedback": {}, "errors": [{"stage": "input", "error": str(e)}],
                            "processing_time": {}})
            failed.append((student_id, str(e)))
            continue

        row_mode = row.get("feedback_mode")
        row_mode = mode or (row_mode if isinstance(row_mode, str) and row_mode else DEFAULT_FEEDBACK_MODE)
        result = run_single_submission(llm, case, diagnoses, student_id, row_mode)
        results.append(result)
        if result["errors"]:
            failed.append((student_id, result["errors"][0]["error"]))
        elif not quiet:
            print(f"  [{idx+1}/{len(df)}] {student_id}: "
                  f"{len(result['feedback']['cant_miss_missed'])} can't-miss missed")
    return results, failed


def _top_answer(case: dict) -> str:
    key = case.get("differential_answer_key") or []
    return key[0]["diagnosis"] if key else ""


def save_results(results: list, tag: str = "", output_dir: str = RESULTS_PATH):
    """Save feedback results to JSON and summary CSV."""
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    tag_str = f"_{tag}" if tag else ""

    json_path = os.path.join(output_dir, f"results{tag_str}_{timestamp}.json")
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(results, f, indent=2, default=str, ensure_ascii=False)
    print(f"\nFull results: {json_path}")

    summary_rows = []
    for r in results:
        fb = r.get("feedback", {})
        coverage = fb.get("tier_coverage", {})
        summary_rows.append({
            "student_id": r["student_id"],
            "case_id": r.get("case_id"),
            "feedback_mode": fb.get("feedback_mode"),
            "most_likely_hit": coverage.get("most_likely", {}).get("matched"),
            "most_likely_total": coverage.get("most_likely", {}).get("total"),
            "cant_miss_hit": len(fb.get("cant_miss_hit", [])),
            "cant_miss_missed": len(fb.get("cant_miss_missed", [])),
            "vindicate_covered": sum(1 for v in fb.get("vindicate_coverage", {}).values() if v),
            "unmatched": len(fb.get("unmatched", [])),
            "fuzzy_matched": len(fb.get("fuzzy_matched", [])),
            "narrative_source": fb.get("narrative_source"),
            "errors": len(r.get("errors", [])),
            "total_time_s": r.get("processing_time", {}).get("total"),
        })

    csv_path = os.path.join(output_dir, f"summary{tag_str}_{timestamp}.csv")
    pd.DataFrame(summary_rows).to_csv(csv_path, index=False)
    print(f"Summary CSV: {csv_path}")

    return json_path, csv_path


def print_summary_stats(results: list):
    """Print aggregate statistics for a roster run."""
    total = len(results)
    scored = [r for r in results if not r.get("errors")]

    print(f"\n{'='*60}")
    print(f"  DDx Coach Roster Summary")
    print(f"{'='*60}")
    print(f"  Total: {total} | Scored: {len(scored)} | Errors: {total - len(scored)}")
    if not scored:
        return

    # Most frequently missed can't-miss diagnoses
    missed = {}
    for r in scored:
        for name in r["feedback"].get("cant_miss_missed", []):
            missed[name] = missed.get(name, 0) + 1
    if missed:
        print(f"\n  Can't-Miss Diagnoses Missed:")
        for name, count in sorted(missed.items(), key=lambda kv: -kv[1]):
            pct = count / len(scored) * 100
            bar = "█" * int(pct / 5)
            print(f"    {name:35s}: {count:3d} ({pct:5.1f}%) {bar}")

    fuzzy = sum(len(r["feedback"].get("fuzzy_matched", [])) for r in scored)
    print(f"\n  Approximate (fuzzy) matches to review: {fuzzy}")


def _print_soap_context(context: dict):
    print(f"\n  Subjective ({context['source']}):")
    print(context["subjective"])
    print(f"\n  Objective:")
    print(context["objective"])
    print(f"\n  Findings ({len(context['findings'])}):")
    for i, finding in enumerate(context["findings"], 1):
        print(f"    {i:2d}. {finding}")


def main():
    parser = argparse.ArgumentParser(description="DDx Coach — differential diagnosis feedback")
    parser.add_argument("--case", required=True, help="Case JSON (answer key + case data)")
    parser.add_argument("--submission", type=str, default="", help="Student submission JSON")
    parser.add_argument("--osce", type=str, default="", help="OSCE session JSON (door prep + SOAP)")
    parser.add_argument("--soap-context", action="store_true", help="Print S/O bullets and findings")
    parser.add_argument("--roster", type=str, default="", help="Roster CSV for batch scoring")
    parser.add_argument("--practice", action="store_true",
                        help="Practice mode: check against the reference diagnosis only")
    parser.add_argument("--mode", type=str, default="", choices=[""] + list(FEEDBACK_MODES),
                        help=f"Feedback mode (default: {DEFAULT_FEEDBACK_MODE})")
    parser.add_argument("--no-narrative", action="store_true", help="Template narratives only")
    parser.add_argument("--docx", action="store_true", help="Also generate Word report")
    parser.add_argument("--quiet", action="store_true", help="Minimal output")
    args = parser.parse_args()

    case = load_case(args.case)
    case_id = case.get("case_id") or os.path.splitext(os.path.basename(args.case))[0]
    tag = f"{case_id}_{'roster' if args.roster else 'single'}"
    _setup_logger(tag)

    for c in find_alias_collisions(case["differential_answer_key"]):
        print(f"  [WARN] alias '{c['term']}' claimed by {c['kept']} and {c['shadowed']}")

    llm = _make_llm(args.no_narrative)

    if args.soap_context:
        _print_soap_context(get_soap_context(
            llm,
            case.get("full_case_data", {}),
            chief_complaint=case.get("chief_complaint", ""),
            correct_diagnosis=case.get("correct_diagnosis") or _top_answer(case),
        ))
        return

    if args.osce:
        session = load_osce_session(args.osce)
        result = run_osce_feedback(
            llm,
            session["door_prep"],
            session["soap_note"],
            case["differential_answer_key"],
            chief_complaint=case.get("chief_complaint", ""),
            correct_diagnosis=case.get("correct_diagnosis"),
        )
        md_path = render_report(result, f"osce_{case_id}")
        print(f"Report: {md_path}")
        if args.docx:
            docx_path = render_docx(md_path)
            if docx_path:
                print(f"Word report: {docx_path}")
        if not args.quiet:
            print(json.dumps(result, indent=2, ensure_ascii=False))
        return

    if args.submission:
        submission = load_submission(args.submission)
        student_id = str(submission.get("student_id", "student"))
        mode = args.mode or submission.get("feedback_mode") or DEFAULT_FEEDBACK_MODE
        result = run_single_submission(
            llm, case, submission["diagnoses"], student_id, mode, practice=args.practice
        )
        if result["errors"]:
            print(f"  FAILED: {result['errors'][0]['error']}")
            sys.exit(1)
        if not args.practice:
            md_path = render_report(result["feedback"], f"{case_id}_{student_id}")
            print(f"Report: {md_path}")
            if args.docx:
                docx_path = render_docx(md_path)
                if docx_path:
                    print(f"Word report: {docx_path}")
        if not args.quiet:
            print(json.dumps(result["feedback"], indent=2, ensure_ascii=False))
        return

    if args.roster:
        results, failed = run_roster(llm, case, load_roster(args.roster), args.mode, args.quiet)
        save_results(results, tag=tag)
        print_summary_stats(results)
        if failed:
            print(f"\n  FAILED ROWS ({len(failed)})")
            for sid, err in failed:
                print(f"    {sid} | {err[:100]}")
        return

    parser.error("one of --submission, --osce, --soap-context or --roster is required")


if __name__ == "__main__":
    main()
