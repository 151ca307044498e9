#!/usr/bin/env python3
"""Fail a CI step when a finished scan exceeds its severity budget.

Reads the ``scan.json`` a LocalJobRepository wrote for one job.
"""
import argparse, json, sys


def load_json(path, default):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--scan", required=True, help="path to <DATA_DIR>/scans/<scan_id>/scan.json")

    ap.add_argument("--max_critical", type=int, default=0)
    ap.add_argument("--max_high", type=int, default=0)
    ap.add_argument("--max_medium", type=int, default=25)
    args = ap.parse_args()

    scan = load_json(args.scan, {})
    status = scan.get("status")
    if status != "completed":
        print(f"[gate] scan status is {status!r}, expected 'completed'")
        sys.exit(2)

    counts = scan.get("issuesCounts") or {}
    c = int(counts.get("critical") or 0)
    h = int(counts.get("high") or 0)
    m = int(counts.get("medium") or 0)

    print(f"[gate] critical={c} (max {args.max_critical})")
    print(f"[gate] high={h} (max {args.max_high})")
    print(f"[gate] medium={m} (max {args.max_medium})")

    failed = (c > args.max_critical) or (h > args.max_high) or (m > args.max_medium)
    if failed:
        print("[gate] FAILED")
        sys.exit(1)
    print("[gate] PASSED")
    sys.exit(0)


if __name__ == "__main__":
    main()
