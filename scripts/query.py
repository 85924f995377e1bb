"""Query a scoring service from the command line.

Dispatches one route against the synthetic data source and prints the JSON
response body. Parameters are given as key=value pairs; values that look like
JSON arrays or objects are decoded.

Examples:
    python scripts/query.py /v1/risk/score address=0x1234...
    python scripts/query.py "GET /v1/demand/index" geoType=zip geoCode=10001 category=plumbing
    python scripts/query.py /v1/provenance/lineage datasetId=ds-demo-002 --now 2026-02-26T12:00:00Z
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

# Add src/ to import path
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from api import ServiceAPI
from config import load_config
from datasource import SyntheticDataSource, demo_datasets
from util import parse_iso, utc_now


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query a scoring service route and print the JSON response."
    )
    parser.add_argument(
        "route",
        help='Route path, optionally with method (e.g. "/v1/risk/score" or "POST /v1/risk/score")',
    )
    parser.add_argument(
        "params", nargs="*", metavar="key=value",
        help="Request parameters",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to engine config YAML (default: config/engine.yaml)",
    )
    parser.add_argument(
        "--now", default=None,
        help="Fix the current instant (ISO-8601). Default: system clock.",
    )
    parser.add_argument(
        "--missing", action="append", default=[],
        help="Key to report as not found (repeatable)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )
    return parser


def parse_params(pairs: list[str]) -> dict[str, Any]:
    """Turn key=value strings into a parameter dict.

    Raises:
        ValueError: If a pair has no '=' or an empty key
    """
    params: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got: {pair}")
        if value.startswith(("[", "{")):
            try:
                params[key] = json.loads(value)
                continue
            except json.JSONDecodeError:
                pass
        params[key] = value
    return params


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        params = parse_params(args.params)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        config = load_config(Path(args.config) if args.config else None)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    now = parse_iso(args.now) if args.now else utc_now()
    source = SyntheticDataSource(config, datasets=demo_datasets(now), missing=args.missing)
    api = ServiceAPI(config, source, clock=lambda: now)

    status, body = api.handle(args.route, params)
    print(json.dumps(body, indent=2))
    return 0 if status == 200 else 1


if __name__ == "__main__":
    raise SystemExit(main())
