"""Job scheduling for PurrView."""

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

if TYPE_CHECKING:
    from .coordinator import JobCoordinator


class JobScheduler:
    """Manages scheduled maintenance jobs.

    Default schedule (UTC):
    - Notification cleanup: daily at 02:00
    - Price monitor: Sundays at 02:00

    Runs never overlap; a missed run is coalesced into one.
    """

    def __init__(self, coordinator: "JobCoordinator", config: dict):
        """Initialize job scheduler.

        Args:
            coordinator: Job coordinator instance
            config: Configuration dictionary
        """
        self.coordinator = coordinator
        self.config = config

        schedule_config = config.get("schedule", {})
        self.job_defaults = {
            "coalesce": True,
            "max_instances": schedule_config.get("max_instances_per_job", 1),
            "misfire_grace_time": schedule_config.get("misfire_grace_time_seconds", 300),
        }
        self.scheduler = AsyncIOScheduler(job_defaults=self.job_defaults, timezone="UTC")

    def configure_jobs(self):
        """Set up all scheduled jobs based on configuration."""
        schedule_config = self.config.get("schedule", {})

        # Daily notification cleanup
        cleanup_hour = schedule_config.get("cleanup_hour", 2)
        self.scheduler.add_job(
            self.coordinator.cleanup_notifications,
            CronTrigger(hour=cleanup_hour, minute=0, timezone="UTC"),
            id="notification_cleanup",
            name="Notification Cleanup",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled daily notification cleanup at {cleanup_hour:02d}:00 UTC")

        # Weekly price monitor
        monitor_day = schedule_config.get("price_monitor_day", "sun")
        monitor_hour = schedule_config.get("price_monitor_hour", 2)
        self.scheduler.add_job(
            self.coordinator.run_price_monitor,
            CronTrigger(day_of_week=monitor_day, hour=monitor_hour, minute=0, timezone="UTC"),
            id="price_monitor",
            name="Price Monitor",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled price monitor every {monitor_day} at {monitor_hour:02d}:00 UTC")

    def start(self):
        """Start the scheduler."""
        logger.info("Starting job scheduler")
        self.scheduler.start()

    def stop(self):
        """Stop the scheduler."""
        logger.info("Stopping job scheduler")
        self.scheduler.shutdown()

    def get_jobs(self):
        """Get list of scheduled jobs."""
        return self.scheduler.get_jobs()
