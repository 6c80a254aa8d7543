"""Achievement checker: unlock milestones the user has reached."""

from loguru import logger

from ..notifications.service import NotificationService
from ..storage.database import Database
from .definitions import ACHIEVEMENTS, AchievementRule


class AchievementChecker:
    """Evaluates the catalog against a user's current data.

    Safe to call repeatedly and concurrently for the same user: the unique
    (user_id, achievement_key) constraint decides which call unlocks a rule,
    and only that call creates the unlock notification.
    """

    def __init__(self, db: Database, notifications: NotificationService, notify: bool = True):
        self.db = db
        self.notifications = notifications
        self.notify = notify

    def check(self, user_id: str) -> list[str]:
        """Unlock every rule the user now satisfies.

        Returns:
            Keys newly unlocked by this call, in catalog order
        """
        already_unlocked = self.db.get_unlocked_keys(user_id)
        pending = [rule for rule in ACHIEVEMENTS if rule.key not in already_unlocked]
        if not pending:
            return []

        metrics = self.db.get_user_metrics(user_id)
        logger.debug(f"Achievement metrics for {user_id}: {metrics}")

        unlocked = []
        for rule in pending:
            if not rule.is_met(metrics):
                continue

            # Another request may have unlocked it since the pre-check
            if not self.db.insert_achievement(user_id, rule.key):
                continue

            unlocked.append(rule.key)
            logger.info(f"Unlocked achievement {rule.key} for {user_id}")

            if self.notify:
                self._notify(user_id, rule)

        return unlocked

    def _notify(self, user_id: str, rule: AchievementRule):
        self.notifications.create(
            user_id=user_id,
            notification_type="achievement_unlock",
            title=f"Achievement Unlocked: {rule.name}",
            message=rule.description,
            severity="low",
            link_url="/achievements",
            action_label="View Achievements",
            metadata={
                "achievement_id": rule.key,
                "achievement_emoji": rule.icon,
                "tier": rule.tier,
                "points": rule.points,
            },
        )
