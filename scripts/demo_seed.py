#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json

import requests

DEMO_ORDER_ITEMS = [
    {"variant_id": "var-1", "quantity": 1},
    {"variant_id": "var-12", "quantity": 1},
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Place and ship one order against the demo catalog")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--organization", default="org-demo")
    parser.add_argument("--customer-id", default="cus-demo-001")
    args = parser.parse_args()

    created = requests.post(
        f"{args.base_url}/orders",
        json={
            "organization_id": args.organization,
            "customer_id": args.customer_id,
            "items": DEMO_ORDER_ITEMS,
            "shipping_address": {
                "postal_code": "150-0001",
                "prefecture": "Tokyo",
                "city": "Shibuya-ku",
                "line1": "1-2-3 Jingumae",
            },
            "payment_method": "credit_card",
        },
        headers={"X-Actor-Name": "demo-script"},
        timeout=30,
    )
    created.raise_for_status()
    order = created.json()

    for step in ("confirm", "ship"):
        resp = requests.post(
            f"{args.base_url}/orders/{order['id']}/{step}",
            headers={"X-Actor-Name": "demo-script"},
            timeout=30,
        )
        resp.raise_for_status()
        order = resp.json()

    print(json.dumps(order, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
