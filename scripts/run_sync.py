"""Run one order sync pass in-process.

Usage:
    python scripts/run_sync.py
    python scripts/run_sync.py --start 2026-01-01 --end 2026-01-31
    python scripts/run_sync.py --config path/to/config.json --json-logs
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, time, timezone
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import ConfigurationError, load_config
from core.observability.logging import configure_logging, get_logger
from core.observability.metrics import get_metrics
from reconciliation.sync import OrderSyncService, default_range


logger = get_logger(__name__)


def parse_date(value: str, end_of_day: bool = False) -> datetime:
    """YYYY-MM-DD as an aware UTC datetime (start or end of that day)."""
    day = datetime.strptime(value, "%Y-%m-%d").date()
    moment = time.max if end_of_day else time.min
    return datetime.combine(day, moment, tzinfo=timezone.utc)


def print_progress(percent: float) -> None:
    print(f"\r  Progress: {percent:5.1f}%", end="", flush=True)
    if percent >= 100:
        print()


async def run(args) -> int:
    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 2

    start, end = default_range(config.sync.default_range_days)
    if args.start:
        start = parse_date(args.start)
    if args.end:
        end = parse_date(args.end, end_of_day=True)

    service = OrderSyncService.from_config(config, on_progress=print_progress)
    try:
        result = await service.sync_orders(start, end)
    finally:
        await service.close()

    print(json.dumps(result.to_dict(), indent=2))
    if args.metrics:
        print(json.dumps(get_metrics().get_summary(), indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Sync Shopify orders into the Google Sheets ledger")
    parser.add_argument("--start", help="Range start (YYYY-MM-DD), default 30 days ago")
    parser.add_argument("--end", help="Range end (YYYY-MM-DD), default today")
    parser.add_argument("--config", help="Path to config.json")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--metrics", action="store_true", help="Print the metrics summary")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging(
        level=logging.DEBUG if args.debug else logging.INFO,
        json_format=args.json_logs,
        include_temporal=False,
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
