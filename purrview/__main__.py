"""Main entry point for PurrView."""

import argparse
import asyncio
import sys

from loguru import logger

from .orchestrator.coordinator import JobCoordinator
from .orchestrator.scheduler import JobScheduler
from .utils.config import get_config
from .utils.logger import setup_logging


async def run_scheduler():
    """Run the job scheduler."""
    config = get_config()
    setup_logging()

    logger.info("=" * 80)
    logger.info("PurrView Scheduler - Starting")
    logger.info("=" * 80)

    coordinator = JobCoordinator(config.model_dump())
    scheduler = JobScheduler(coordinator, config.model_dump())

    scheduler.configure_jobs()
    scheduler.start()

    logger.info("Scheduler started. Press Ctrl+C to stop.")

    try:
        while True:
            await asyncio.sleep(1)
    finally:
        logger.info("Shutting down...")
        scheduler.stop()


async def run_cleanup() -> bool:
    """Run the notification expiry sweep once."""
    config = get_config()
    setup_logging()

    coordinator = JobCoordinator(config.model_dump())
    result = await coordinator.cleanup_notifications()

    logger.info(f"{result['message']}: {result['deletedCount']} deleted")
    return result["success"]


async def run_monitor():
    """Run the price monitor once."""
    config = get_config()
    setup_logging()

    coordinator = JobCoordinator(config.model_dump())
    summary = await coordinator.run_price_monitor()

    for retailer, stats in sorted(summary["retailerStats"].items()):
        logger.info(f"  {retailer}: {stats['success']} ok, {stats['failure']} failed")


async def run_achievements(user_id: str):
    """Check achievements for one user."""
    config = get_config()
    setup_logging()

    coordinator = JobCoordinator(config.model_dump())
    unlocked = await coordinator.check_achievements(user_id)

    if unlocked:
        logger.info(f"Unlocked: {', '.join(unlocked)}")
    else:
        logger.info("No new achievements")


def run_api():
    """Run the FastAPI server."""
    import uvicorn

    from .api.main import app

    config = get_config()
    setup_logging()

    logger.info("=" * 80)
    logger.info("PurrView API - Starting")
    logger.info("=" * 80)

    uvicorn.run(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="PurrView tracking service")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("api", help="Run the API server")
    subparsers.add_parser("scheduler", help="Run the job scheduler")
    subparsers.add_parser("cleanup", help="Delete expired notifications")
    subparsers.add_parser("monitor", help="Refresh prices for tracked wishlist items")

    achievements_parser = subparsers.add_parser(
        "achievements", help="Check achievements for a user"
    )
    achievements_parser.add_argument("user_id", help="User to check")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "api":
            run_api()
        elif args.command == "scheduler":
            asyncio.run(run_scheduler())
        elif args.command == "cleanup":
            if not asyncio.run(run_cleanup()):
                sys.exit(1)
        elif args.command == "monitor":
            asyncio.run(run_monitor())
        elif args.command == "achievements":
            asyncio.run(run_achievements(args.user_id))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.opt(exception=e).error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
