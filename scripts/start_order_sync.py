"""Start an Order Sync workflow on Temporal.

Connects to Temporal, starts OrderSyncWorkflow on the ``order-sync`` task
queue and waits for the result.

Usage:
    python scripts/start_order_sync.py
    python scripts/start_order_sync.py --start 2026-01-01T00:00:00+00:00 --no-wait
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client
from workflows.order_sync_workflow import OrderSyncInput, OrderSyncWorkflow, TASK_QUEUE


logger = get_logger(__name__)


async def start_order_sync(
    start: str = None,
    end: str = None,
    batch_size: int = None,
    wait: bool = True,
):
    """Start the workflow; returns its result dict, or the workflow id when not waiting."""
    workflow_id = f"order-sync-{uuid.uuid4().hex[:8]}"

    client = await get_temporal_client()
    logger.info("Connected to Temporal namespace %s", client.namespace)

    handle = await client.start_workflow(
        OrderSyncWorkflow.run,
        OrderSyncInput(start=start, end=end, batch_size=batch_size),
        id=workflow_id,
        task_queue=TASK_QUEUE,
    )
    logger.info("Started %s on task queue '%s'", workflow_id, TASK_QUEUE)

    if not wait:
        return workflow_id

    result = await handle.result()
    logger.info("Workflow %s finished with status %s", workflow_id, result.get("status"))
    return result


def main():
    parser = argparse.ArgumentParser(description="Start an order sync workflow")
    parser.add_argument("--start", help="Range start (ISO-8601)")
    parser.add_argument("--end", help="Range end (ISO-8601)")
    parser.add_argument("--batch-size", type=int, help="Mutations per ledger write (default: config)")
    parser.add_argument("--no-wait", action="store_true", help="Return after starting")
    args = parser.parse_args()

    configure_logging(level=logging.INFO)
    result = asyncio.run(start_order_sync(
        start=args.start,
        end=args.end,
        batch_size=args.batch_size,
        wait=not args.no_wait,
    ))
    print(json.dumps(result, indent=2) if isinstance(result, dict) else result)


if __name__ == "__main__":
    main()
