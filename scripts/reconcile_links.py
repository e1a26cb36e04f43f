#!/usr/bin/env python3
"""
Repair Boat <-> Load links left half-written by a failed request.

Links are written Boat first, then Load. When the second write fails the two
documents disagree; this sweep makes them agree again:
- a boat entry whose load is gone or points at another carrier is dropped
- a load carrier whose boat is gone or does not list the load is cleared

Run it while the API is quiet. A sweep that overlaps a live link request can
undo that request's first write.

Usage:
  python scripts/reconcile_links.py --dry-run
  DOCUMENT_STORE=dynamodb DYNAMODB_TABLE=cargo AWS_REGION=us-east-1 \
    python scripts/reconcile_links.py
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from cargo_tracker.core.config import Settings
from cargo_tracker.services.relationships import reconcile_all
from cargo_tracker.store import DocumentStoreError, build_store


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    p.add_argument("--dry-run", action="store_true", help="report problems without writing")
    p.add_argument("--table", help="override DYNAMODB_TABLE")
    args = p.parse_args(argv)

    settings = Settings.from_env()
    logging.basicConfig(level=settings.LOG_LEVEL)
    if args.table:
        settings = replace(settings, DYNAMODB_TABLE=args.table)

    store = build_store(settings)
    print(f"[reconcile] store={settings.DOCUMENT_STORE} dry_run={args.dry_run}", flush=True)

    try:
        report = reconcile_all(store, dry_run=args.dry_run)
    except DocumentStoreError as e:
        print(f"[reconcile] ❌ store error: {e}", file=sys.stderr, flush=True)
        return 1

    for boat_key, load_key in report.dropped_from_boats:
        print(f"[reconcile] boat {boat_key.id}: stale load {load_key.id}", flush=True)
    for load_key in report.cleared_carriers:
        print(f"[reconcile] load {load_key.id}: stale carrier", flush=True)

    if not report.changed:
        print("[reconcile] ✅ all links consistent", flush=True)
    elif args.dry_run:
        print("[reconcile] dry run, nothing written", flush=True)
    else:
        print("[reconcile] ✅ repaired", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
