"""Worker for the order sync pipeline.

Polls the ``order-sync`` task queue and runs OrderSyncWorkflow and its
activities. Connects to Temporal Cloud or a local dev server depending on
the environment (see temporal_client.py).
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from activities import SYNC_ACTIVITIES
from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client
from workflows.order_sync_workflow import OrderSyncWorkflow, TASK_QUEUE


logger = get_logger(__name__)


async def run_worker(task_queue: str = TASK_QUEUE):
    """Start a worker on ``task_queue``.

    Raises:
        Exception: If the connection to Temporal fails
    """
    client = await get_temporal_client()
    logger.info("Connected to Temporal namespace %s", client.namespace)

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=[OrderSyncWorkflow],
        activities=SYNC_ACTIVITIES,
    )
    logger.info(
        "Worker created for queue '%s': 1 workflow, %d activities",
        task_queue, len(SYNC_ACTIVITIES),
    )

    logger.info("Worker running... (Ctrl+C to stop)")
    await worker.run()


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Order Sync Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE,
        help=f"Task queue to poll (default: {TASK_QUEUE})",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )
    args = parser.parse_args()

    configure_logging(level=logging.INFO, json_format=args.json_logs)
    try:
        asyncio.run(run_worker(task_queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
