# tools/audit_rubric.py
from __future__ import annotations
import argparse, json, sys
from pathlib import Path

from grading_core.audit_rubric import audit_rubric

def _grading_files(target: Path) -> list[Path]:
    if target.is_dir():
        return sorted(target.glob("*_grading.json"))
    return [target]

def print_audit(case_id: str, audit) -> None:
    print(f"\n=== Rubric Audit: {case_id} ===")
    print("Totals:", audit.totals)
    print("Section summary:")
    for sid, s in audit.section_summary.items():
        print(f"  - {sid}: enabled {s['enabled_points']:g}/{s['max_points']:g} "
              f"(omitted {s['omitted_points']:g}, criteria {s['enabled_count']}/{s['criteria_count']})")
    if audit.disabled_criteria:
        print("Disabled criteria:")
        for c in audit.disabled_criteria:
            reason = c["omit_reason"] or "(missing omit_reason)"
            print(f"  - {c['id']} [{c['section']}, {c['points']:g}]: {reason}")
    else:
        print("Disabled criteria: none")
    if audit.warnings:
        print("Warnings:")
        for w in audit.warnings:
            print(f"  - {w}")
    else:
        print("Warnings: none")

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Static checks for case grading rubrics.")
    ap.add_argument("target", help="a *_grading.json file or a directory of them")
    args = ap.parse_args(argv)

    files = _grading_files(Path(args.target))
    if not files:
        print("No grading files found.", file=sys.stderr)
        return 1

    had_warnings = False
    for path in files:
        if not path.exists():
            print(f"Missing file: {path}", file=sys.stderr)
            had_warnings = True
            continue
        grading = json.loads(path.read_text(encoding="utf-8"))
        case_id = grading.get("case_id") or path.name.replace("_grading.json", "")
        audit = audit_rubric(grading)
        print_audit(case_id, audit)
        had_warnings = had_warnings or bool(audit.warnings)
    return 2 if had_warnings else 0

if __name__ == "__main__":
    sys.exit(main())
