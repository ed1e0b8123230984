# tools/calibrate_rubric.py
from __future__ import annotations
import argparse, json, os, sys
from pathlib import Path

from grading_core.engine import grade_conversation

def load_fixtures(directory: Path) -> list[dict]:
    out = []
    for p in sorted(directory.glob("*.json")):
        data = json.loads(p.read_text(encoding="utf-8"))
        data["name"] = p.stem
        out.append(data)
    return out

def run_fixture(fx: dict):
    return grade_conversation(
        fx.get("case") or {"case_id": fx.get("case_id")},
        fx.get("grading") or {},
        fx.get("conversation") or [],
        {"hpi": str(fx.get("hpi") or "").strip()},
    )

def _pad(s, n: int) -> str:
    return str(s if s is not None else "").ljust(n)[:n]

def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Grade calibration fixtures and check expected score ranges.")
    ap.add_argument("fixtures", help="directory of fixture JSON files")
    args = ap.parse_args(argv)

    if os.getenv("GRADING_LLM_DISABLED", "").lower() not in ("1", "true", "yes", "on"):
        print("Warning: GRADING_LLM_DISABLED is not set. The judge will be called for each fixture.\n"
              "To run offline, set GRADING_LLM_DISABLED=true.\n", file=sys.stderr)

    fixtures = load_fixtures(Path(args.fixtures))
    if not fixtures:
        print("No fixture files found.", file=sys.stderr)
        return 1

    print("\n=== Rubric Calibration Run ===\n")
    print(_pad("Fixture", 20), _pad("Score", 7), _pad("Expected", 12), _pad("Pass/Fail", 10), "Critical Fails")
    print("-" * 75)

    failed = False
    for fx in fixtures:
        lo = float(fx.get("expected_min_score", 0)); hi = float(fx.get("expected_max_score", 100))
        res = run_fixture(fx)
        ok = lo <= res.score <= hi
        failed = failed or not ok
        crit = ", ".join(res.critical_fails_triggered) or "none"
        print(_pad(fx["name"], 20), _pad(f"{res.score:g}%", 7), _pad(f"{lo:g}-{hi:g}%", 12),
              _pad("PASS" if ok else "FAIL !!", 10), crit)
        for s in res.section_scores:
            if s.available_points > 0:
                print(f"  {_pad(s.label, 26)} {s.earned_points:g}/{s.available_points:g} pts")
        if res.missed_required_questions:
            print(f"  Missed history: {', '.join(res.missed_required_questions)}")
        if res.missed_red_flags:
            print(f"  Missed red flags: {', '.join(res.missed_red_flags)}")
        print()

    print("=" * 75)
    print("Result: FAILED - one or more fixtures scored outside expected range." if failed else "Result: ALL PASSED")
    return 2 if failed else 0

if __name__ == "__main__":
    sys.exit(main())
