#!/usr/bin/env python3
"""
Nutrition Batch Engine - Standalone Cron Runner

Runs the batch scheduler as a standalone service, or a single drain when
invoked with --drain JOB_NAME.

Jobs managed:
1. meal_descriptions - localized description backfill (every 5 min)
2. meal_images - photo regeneration (every 5 min)
3. tag_meals - tag-driven meal generation (every 10 min)
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timezone

# Setup logging first
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Validate required environment variables
REQUIRED_VARS = ["DATABASE_URL"]
missing = [var for var in REQUIRED_VARS if not os.getenv(var)]
if missing:
    logger.error(f"Missing required environment variables: {missing}")
    sys.exit(1)

# Import after env validation
from nutribatch.core.database import dispose_engine, init_db
from nutribatch.jobs.pipeline_scheduler import pipeline_scheduler
from nutribatch.jobs.registry import get_batch_engine

# Graceful shutdown flag
_shutdown = False


def handle_shutdown(signum, frame):
    """Handle shutdown signals gracefully."""
    global _shutdown
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    _shutdown = True


async def run_scheduler():
    """Main entry point for cron service."""
    logger.info("=" * 60)
    logger.info("Nutrition Batch Engine Cron Service")
    logger.info("=" * 60)
    logger.info(f"Started at: {datetime.now(timezone.utc).isoformat()}")
    logger.info(f"OPENAI_API_KEY: {'set' if os.getenv('OPENAI_API_KEY') else 'NOT SET'}")
    logger.info(f"RECRAFT_API_TOKEN: {'set' if os.getenv('RECRAFT_API_TOKEN') else 'NOT SET'}")

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        await init_db()
        await pipeline_scheduler.start()

        logger.info("Cron service running. Press Ctrl+C to stop.")
        while not _shutdown:
            await asyncio.sleep(10)  # Check every 10 seconds
    finally:
        logger.info("Stopping batch scheduler...")
        await pipeline_scheduler.stop()
        await dispose_engine()
        logger.info("Cron service stopped.")


async def run_drain(job_name: str, max_pages=None):
    """Drain one job to the end of its collection, holding the job lock."""
    try:
        summary = await get_batch_engine().run_drain(job_name, max_pages=max_pages)
        logger.info(f"[{job_name}] Drain finished: {summary.to_dict()}")
    finally:
        await dispose_engine()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Nutrition batch engine cron runner")
    parser.add_argument("--drain", metavar="JOB_NAME", help="drain one job and exit")
    parser.add_argument("--max-pages", type=int, default=None, help="stop a drain after this many pages")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    try:
        if args.drain:
            asyncio.run(run_drain(args.drain, max_pages=args.max_pages))
        else:
            asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
