#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys

import requests


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify every variant's movement chain through the HTTP API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--organization", required=True)
    args = parser.parse_args()

    summary = requests.get(
        f"{args.base_url}/inventory/summary",
        params={"organization_id": args.organization},
        timeout=30,
    )
    summary.raise_for_status()

    failures = []
    items = summary.json()["items"]
    for item in items:
        resp = requests.get(f"{args.base_url}/ledger/variants/{item['variant_id']}/verify", timeout=30)
        resp.raise_for_status()
        report = resp.json()
        if not report["ok"] or report["ledger_reserved"] != report["order_reserved"]:
            failures.append(report)

    print(
        json.dumps(
            {"organization_id": args.organization, "checked": len(items), "failures": failures},
            indent=2,
            ensure_ascii=False,
        )
    )
    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
