"""Job coordination for PurrView."""

from typing import Dict, Optional

from loguru import logger

from ..achievements import AchievementChecker
from ..notifications import NotificationService
from ..pricing import PriceChecker, PriceRefreshService
from ..storage.database import Database
from ..storage.models import utcnow
from ..utils.config import get_config


class JobCoordinator:
    """Runs the background jobs: notification cleanup and the price monitor."""

    def __init__(self, config: Optional[Dict] = None, db: Optional[Database] = None):
        """Initialize job coordinator.

        Args:
            config: Optional configuration dictionary
            db: Optional database (built from config when omitted)
        """
        if config is None:
            config = get_config().model_dump()

        self.config = config

        if db is None:
            db_config = config.get("database", {})
            db = Database(
                db_config.get("url", "sqlite:///data/db/purrview.db"),
                echo=db_config.get("echo", False),
            )
        self.db = db

        pricing = config.get("pricing", {})
        notifications = config.get("notifications", {})
        achievements = config.get("achievements", {})

        self.notifications = NotificationService(
            self.db, expiry_days=notifications.get("expiry_days", 30)
        )
        self.price_refresh = PriceRefreshService(
            self.db,
            PriceChecker(timeout=pricing.get("timeout_seconds", 10.0)),
            self.notifications,
            max_failures=pricing.get("max_failures", 3),
            rate_limit_delay=pricing.get("rate_limit_delay", 2.0),
        )
        self.achievements = AchievementChecker(
            self.db,
            self.notifications,
            notify=achievements.get("notify_on_unlock", True),
        )
        self.monitor_batch_size = pricing.get("monitor_batch_size", 60)

    async def cleanup_notifications(self) -> dict:
        """Delete notifications past their expiry."""
        logger.info("Starting notification cleanup")
        result = self.notifications.sweep_expired()
        if not result["success"]:
            logger.warning("Notification cleanup failed, will retry on the next run")
        return result

    async def run_price_monitor(self) -> dict:
        """Refresh prices for tracked wishlist items."""
        logger.info("Starting price monitor")
        start_time = utcnow()

        summary = await self.price_refresh.run_monitor(limit=self.monitor_batch_size)

        duration = (utcnow() - start_time).total_seconds()
        logger.info(f"Completed price monitor: {summary['checked']} items in {duration:.1f}s")
        return summary

    async def check_achievements(self, user_id: str) -> list[str]:
        """Run the achievement checker for one user."""
        unlocked = self.achievements.check(user_id)
        logger.info(f"Achievement check for {user_id}: {len(unlocked)} newly unlocked")
        return unlocked
