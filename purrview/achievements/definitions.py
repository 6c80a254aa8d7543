"""Achievement catalog.

Milestones only, no streaks: every rule is a threshold over a count the
user already has in their wardrobe.
"""

from dataclasses import dataclass
from typing import Optional

METRICS = (
    "owned_items",
    "wishlist_items",
    "total_wears",
    "unique_brands",
    "unique_categories",
)


@dataclass(frozen=True)
class AchievementRule:
    """One unlockable milestone: metric >= threshold."""

    key: str
    name: str
    description: str
    icon: str
    tier: str  # bronze, silver, gold, platinum
    points: int
    metric: str
    threshold: int

    def is_met(self, metrics: dict[str, int]) -> bool:
        return metrics.get(self.metric, 0) >= self.threshold


ACHIEVEMENTS: tuple[AchievementRule, ...] = (
    # Wardrobe size
    AchievementRule(
        key="wardrobe_10",
        name="Collection Starter",
        description="Add your first 10 items to your collection",
        icon="📦",
        tier="bronze",
        points=10,
        metric="owned_items",
        threshold=10,
    ),
    AchievementRule(
        key="wardrobe_15",
        name="Growing Closet",
        description="Own 15 items in your collection",
        icon="🧺",
        tier="bronze",
        points=15,
        metric="owned_items",
        threshold=15,
    ),
    AchievementRule(
        key="wardrobe_25",
        name="Wardrobe Curator",
        description="Catalog 25 items in your collection",
        icon="👔",
        tier="silver",
        points=25,
        metric="owned_items",
        threshold=25,
    ),
    AchievementRule(
        key="wardrobe_50",
        name="Style Connoisseur",
        description="Build a collection of 50 curated items",
        icon="✨",
        tier="gold",
        points=50,
        metric="owned_items",
        threshold=50,
    ),
    # Wishlist
    AchievementRule(
        key="wishlist_5",
        name="Window Shopper",
        description="Add 5 items to your wishlist",
        icon="🛍️",
        tier="bronze",
        points=10,
        metric="wishlist_items",
        threshold=5,
    ),
    AchievementRule(
        key="wishlist_10",
        name="Deal Watcher",
        description="Track 10 items on your wishlist",
        icon="🎯",
        tier="silver",
        points=20,
        metric="wishlist_items",
        threshold=10,
    ),
    # Wears
    AchievementRule(
        key="wears_10",
        name="Getting Started",
        description="Log 10 wears across your collection",
        icon="👟",
        tier="bronze",
        points=10,
        metric="total_wears",
        threshold=10,
    ),
    AchievementRule(
        key="wears_50",
        name="Everyday Rotation",
        description="Log 50 wears across your collection",
        icon="🔄",
        tier="silver",
        points=30,
        metric="total_wears",
        threshold=50,
    ),
    AchievementRule(
        key="wears_100",
        name="Well Worn",
        description="Log 100 wears across your collection",
        icon="💎",
        tier="gold",
        points=50,
        metric="total_wears",
        threshold=100,
    ),
    # Discovery
    AchievementRule(
        key="brand_explorer_10",
        name="Brand Adventurer",
        description="Own items from 10 different brands",
        icon="🌍",
        tier="silver",
        points=25,
        metric="unique_brands",
        threshold=10,
    ),
    AchievementRule(
        key="category_explorer_5",
        name="Category Explorer",
        description="Have items in 5 different categories",
        icon="🧭",
        tier="bronze",
        points=15,
        metric="unique_categories",
        threshold=5,
    ),
)

ACHIEVEMENTS_BY_KEY = {rule.key: rule for rule in ACHIEVEMENTS}


def get_rule(key: str) -> Optional[AchievementRule]:
    return ACHIEVEMENTS_BY_KEY.get(key)
