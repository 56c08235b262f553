#!/usr/bin/env python3
"""
Compute the tax snapshot of one order from a profile file and an order file.

Handy for checking a tenant's profile before publishing it: the output is
the exact document that would be persisted with the closed order.

Usage:
  python3 scripts/calculate_snapshot.py \\
    --profile tax_config/sets/gt_restaurant.yaml \\
    --order order.json [--pretty] [--log-level DEBUG]

Order file (JSON):
  {"orderType": "dine-in", "deliveryFeeCents": 0,
   "customer": {"taxId": "123456-7", "name": "ACME"},
   "locality": {"country": "GT", "zip": "01010"},
   "lines": [{"quantity": 2, "unitPriceCents": 2500, "tags": ["food"]}]}

Exit codes: 0 ok, 1 unreadable input, 2 invalid profile or order.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from tax_config.loader import load_profile_yaml
from tax_engines.snapshot_calculator import SnapshotCalculator
from tax_kernel.domain.order import Customer, Locality, OrderContext, OrderLine
from tax_kernel.exceptions import ConfigurationError
from tax_kernel.logging_config import configure_logging, get_logger

logger = get_logger("scripts.calculate_snapshot")


def _object(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{path} must be a JSON object, got {type(value).__name__}")
    return value


def parse_order_document(data: Any) -> OrderContext:
    """
    Build an ``OrderContext`` from its camelCase JSON form.

    Raises:
        TypeError: the document, a line, the customer or the locality is not
            a JSON object, or a field has the wrong type.
        ValueError: a field value is out of range.
    """
    data = _object(data, "order")
    customer = _object(data.get("customer") or {}, "customer")
    locality = _object(data.get("locality") or {}, "locality")
    lines = [
        OrderLine(
            quantity=line.get("quantity", 1),
            unit_price_cents=line.get("unitPriceCents", 0),
            addons_cents=line.get("addonsCents", 0),
            category_id=line.get("categoryId"),
            tags=tuple(line.get("tags") or ()),
            line_id=str(line.get("lineId") or ""),
            tax_exempt=bool(line.get("taxExempt", False)),
        )
        for line in (
            _object(raw, f"lines[{i}]") for i, raw in enumerate(data.get("lines") or [])
        )
    ]
    return OrderContext(
        lines=tuple(lines),
        order_type=data.get("orderType") or "",
        customer=Customer(
            tax_id=customer.get("taxId"),
            name=customer.get("name"),
            tax_exempt=bool(customer.get("taxExempt", False)),
        ),
        locality=Locality(
            country=locality.get("country"),
            state=locality.get("state"),
            city=locality.get("city"),
            zip=locality.get("zip"),
        ),
        delivery_fee_cents=data.get("deliveryFeeCents", 0),
        currency=data.get("currency"),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compute the tax snapshot of an order.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--profile", type=Path, required=True, help="Tax profile YAML file")
    parser.add_argument("--order", type=Path, required=True, help="Order JSON file")
    parser.add_argument("--pretty", action="store_true", help="Indent the JSON output")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level (logs go to stderr)",
    )
    args = parser.parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)

    for label, path in (("Profile", args.profile), ("Order", args.order)):
        if not path.exists():
            print(f"ERROR: {label} file not found: {path}", file=sys.stderr)
            return 1

    try:
        with open(args.order, encoding="utf-8") as f:
            order_data = json.load(f)
    except json.JSONDecodeError as exc:
        print(f"ERROR: Order file is not valid JSON: {exc}", file=sys.stderr)
        return 1

    try:
        profile = load_profile_yaml(args.profile)
    except yaml.YAMLError as exc:
        print(f"ERROR: Profile file is not valid YAML: {exc}", file=sys.stderr)
        return 1
    except ConfigurationError as exc:
        logger.debug("tax_profile_rejected", exc_info=True)
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 2

    try:
        order = parse_order_document(order_data)
        snapshot = SnapshotCalculator().calculate(order, profile)
    except ConfigurationError as exc:
        logger.debug("tax_snapshot_rejected", exc_info=True)
        print(f"ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 2
    except (AttributeError, TypeError, ValueError) as exc:
        print(f"ERROR: Invalid order: {exc}", file=sys.stderr)
        return 2

    document = snapshot.to_dict()
    document["fingerprint"] = snapshot.fingerprint()
    print(json.dumps(document, indent=2 if args.pretty else None, sort_keys=args.pretty))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
