#!/usr/bin/env python3
"""
Scan Runner

Starts (or reloads) a publisher identity scan, follows it until it
finishes and prints the revenue impact summary as JSON.

Usage:
    # Set environment variables first:
    export SCANNER_SUPABASE_URL=https://<project>.supabase.co
    export SCANNER_SUPABASE_KEY=your_key

    # Run a scan:
    python scripts/run_scan.py example.com news.example

    # With publisher context:
    python scripts/run_scan.py example.com news.example \
        --vertical news \
        --impressions 5000000 \
        --owned-domains 2

    # Domains from a CSV / text file:
    python scripts/run_scan.py --file domains.csv

    # Reload an existing scan:
    python scripts/run_scan.py --load 3f6c0c1e-...
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from idscan.collector import ScannerError
from idscan.models import PublisherContext, PublisherVertical
from idscan.services import ScanService
from idscan.utils.config import load_settings
from idscan.utils.domains import parse_domain_file

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


async def run_scan(
    domains: List[str],
    context: Optional[PublisherContext] = None,
    scan_id: Optional[str] = None,
    timeout: float = 600.0,
) -> dict:
    """Run or reload a scan and return its summary payload."""

    load_dotenv()
    settings = load_settings()
    logging.getLogger().setLevel(settings.LOG_LEVEL.upper())

    async with ScanService.from_settings(settings) as service:
        if scan_id:
            scan = await service.load_scan(scan_id)
        else:
            scan = await service.start_scan(domains, context)
        logger.info(f"Following scan {scan.id} ({scan.total_domains} domains)")

        try:
            state = await service.wait_until_complete(timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Scan {scan.id} still running after {timeout}s, reporting partial results")
            await service.stop()
            state = service.state

        summary = service.summary()
        impact = service.revenue_impact()
        return {
            "scan": state.scan.to_dict(),
            "results": service.result_rows(),
            "summary": summary.to_dict() if summary else None,
            "revenue_impact": impact.to_dict() if impact else None,
            "benchmarks": [b.to_dict() for b in service.benchmarks()],
        }


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Run a publisher identity scan and print its revenue impact"
    )
    parser.add_argument(
        "domains",
        nargs="*",
        help="Domains to scan (e.g., example.com)"
    )
    parser.add_argument(
        "--file",
        default=None,
        help="CSV or text file with domains"
    )
    parser.add_argument(
        "--load",
        default=None,
        metavar="SCAN_ID",
        help="Reload an existing scan instead of starting one"
    )
    parser.add_argument(
        "--vertical",
        default=None,
        choices=[v.value for v in PublisherVertical],
        help="Publisher vertical for CPM benchmarks"
    )
    parser.add_argument(
        "--impressions",
        type=int,
        default=None,
        help="Monthly ad impressions (default: estimated from Tranco rank)"
    )
    parser.add_argument(
        "--owned-domains",
        type=int,
        default=None,
        help="Number of owned domains in the portfolio"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=600.0,
        help="Seconds to wait for the scan to finish (default: 600)"
    )

    args = parser.parse_args()

    domains = list(args.domains)
    if args.file:
        domains += parse_domain_file(args.file)
    if not domains and not args.load:
        parser.error("Provide domains, --file or --load")

    context = None
    if args.vertical or args.impressions or args.owned_domains:
        context = PublisherContext(
            monthly_impressions=args.impressions,
            publisher_vertical=PublisherVertical(args.vertical) if args.vertical else None,
            owned_domains_count=args.owned_domains,
        )

    try:
        result = asyncio.run(run_scan(
            domains=domains,
            context=context,
            scan_id=args.load,
            timeout=args.timeout,
        ))
    except ScannerError as e:
        logger.error(str(e))
        sys.exit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
