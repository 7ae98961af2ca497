#!/usr/bin/env python3
"""
Image CDN • Cache warmer
========================

CLI helper that asks the API to warm the CDN cache for catalog records and
prints the run report.

Examples
--------
1) Warm the first page of the whole catalog (default sizes):
    python scripts/warm_tmdb_cache.py --all

2) Warm specific records at two sizes:
    python scripts/warm_tmdb_cache.py \
      --api http://localhost:8000/api/v1 \
      --ids 8d3c...,91ab... \
      --sizes w500,w780

Env vars:
  API_BASE  (default http://localhost:8000/api/v1)
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional

import requests


def _csv(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def build_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if args.all:
        payload["cacheAll"] = True
    else:
        payload["contentIds"] = _csv(args.ids)
    sizes = _csv(args.sizes)
    if sizes:
        payload["sizes"] = sizes
    return payload


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Warm the TMDB image cache through the API")
    ap.add_argument("--api", default=os.environ.get("API_BASE", "http://localhost:8000/api/v1"))
    target = ap.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", help="warm the first page of the whole catalog")
    target.add_argument("--ids", help="comma separated content ids")
    ap.add_argument("--sizes", help="comma separated size variants (server default when omitted)")
    ap.add_argument("--timeout", type=float, default=600.0)
    args = ap.parse_args(argv)

    payload = build_payload(args)
    if not args.all and not payload["contentIds"]:
        print("--ids must list at least one content id", file=sys.stderr)
        return 2

    url = f"{args.api.rstrip('/')}/cache-tmdb-images"
    try:
        resp = requests.post(url, json=payload, timeout=args.timeout)
    except requests.RequestException as e:
        print("ERROR:", url, e, file=sys.stderr)
        return 1

    try:
        body = resp.json()
    except ValueError:
        print(f"ERROR: non-JSON response ({resp.status_code}): {resp.text[:200]}", file=sys.stderr)
        return 1

    if resp.status_code != 200 or not body.get("success"):
        print(f"ERROR ({resp.status_code}): {body.get('error', body)}", file=sys.stderr)
        return 1

    for item in body.get("details", []):
        line = f"{item['status']:>8}  {item['path']}"
        if item.get("error"):
            line += f"  ({item['error']})"
        print(line)
    print(json.dumps({k: body[k] for k in ("cached", "skipped", "failed")}))
    return 0 if body.get("failed", 0) == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
