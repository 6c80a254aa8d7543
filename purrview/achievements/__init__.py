"""Milestone achievements and their unlock checks"""

from .checker import AchievementChecker
from .definitions import ACHIEVEMENTS, AchievementRule, get_rule

__all__ = ["ACHIEVEMENTS", "AchievementChecker", "AchievementRule", "get_rule"]
