import argparse
import logging
import os
import sys
from typing import List, Optional

from report import render_report, results_to_json, summarize
from rpc_config import DEFAULT_TIMEOUT, NetworkClass, load_endpoints
from stability import run_stability


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Probe JSON-RPC endpoints for liveness, rate-limit tolerance and error handling."
    )
    parser.add_argument(
        "--endpoints",
        default=os.getenv("RPC_STABILITY_ENDPOINTS", ""),
        help="Comma-separated NAME=CLASS:URL items (default: built-in registry).",
    )
    parser.add_argument(
        "--network",
        choices=["test", "main", "all"],
        default="all",
        help="Only probe endpoints of this network class.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Per-call timeout in seconds.",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")
    parser.add_argument("--verbose", action="store_true", help="Log individual call failures.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO; the burst alone would flood the output
    logging.getLogger("httpx").setLevel(logging.WARNING)

    network = None if args.network == "all" else NetworkClass.parse(args.network)
    try:
        endpoints = load_endpoints(args.endpoints, network=network)
    except ValueError as e:
        parser.error(str(e))

    if not endpoints:
        print("no endpoints configured")
        return 2

    results = run_stability(endpoints, timeout=args.timeout)
    summary = summarize(results)

    if args.json:
        print(results_to_json(results, summary))
    else:
        print(render_report(results, summary))

    if summary.online_count == 0:
        print("ALL RPCs FAILED!", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
