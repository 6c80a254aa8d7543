"""Price refresh flow: check a tracked item's retailer page and record the result."""

import asyncio
from datetime import datetime
from typing import Any, Optional

from loguru import logger

from ..errors import NotFoundError, StorageError, TransientFetchError, UnsupportedSourceError, ValidationError
from ..notifications.service import NotificationService
from ..storage.database import Database
from ..storage.models import TrackedItem, utcnow
from .checker import PriceChecker
from .parsing import PriceListing


def drop_severity(drop_percentage: float) -> str:
    if drop_percentage >= 30:
        return "high"
    if drop_percentage >= 15:
        return "medium"
    return "low"


DROP_TITLES = {
    "high": "Big Price Drop!",
    "medium": "Price Drop Alert",
    "low": "Small Price Drop",
}


def _money(value: float) -> str:
    return f"${value:,.2f}"


class PriceRefreshService:
    """Refreshes prices for tracked items, on demand or in scheduled batches."""

    def __init__(
        self,
        db: Database,
        checker: PriceChecker,
        notifications: NotificationService,
        max_failures: int = 3,
        rate_limit_delay: float = 2.0,
    ):
        self.db = db
        self.checker = checker
        self.notifications = notifications
        self.max_failures = max_failures
        self.rate_limit_delay = rate_limit_delay

    async def refresh_item(self, user_id: str, item_id: int) -> dict[str, Any]:
        """Refresh the price of one of the caller's items.

        Fetch and parse failures come back as {"success": False, "errorCategory": ...};
        only ownership and precondition problems raise.

        Raises:
            NotFoundError: the item does not exist or belongs to someone else
            ValidationError: tracking is disabled or the item has no product URL
        """
        item = self.db.get_item(item_id, user_id=user_id)
        if not item:
            raise NotFoundError("Item not found")

        if not item.auto_price_tracking_enabled:
            raise ValidationError(
                "Price tracking is disabled for this item. Enable it in the edit form."
            )

        if not item.product_url:
            raise ValidationError(
                "No product URL found. Add one in the edit form to enable price checking."
            )

        return await self._refresh(item, source="manual_check")

    async def run_monitor(self, limit: int = 60) -> dict[str, Any]:
        """Check every eligible wishlisted item, one at a time.

        Returns:
            Summary counts plus per-retailer success/failure stats
        """
        items = self.db.get_items_for_monitoring(limit=limit, max_failures=self.max_failures)
        summary: dict[str, Any] = {
            "checked": len(items),
            "successCount": 0,
            "failureCount": 0,
            "alertsCreated": 0,
            "retailerStats": {},
        }

        if not items:
            logger.info("No items to price check")
            return summary

        logger.info(f"Price monitor checking {len(items)} items")

        for index, item in enumerate(items):
            if index and self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay)

            try:
                result = await self._refresh(item, source="automated_scrape")
            except StorageError as e:
                logger.error(f"Error storing price check for item {item.id}: {e.detail}")
                result = {"success": False, "storeName": None}

            retailer = result.get("storeName") or "Unknown"
            stats = summary["retailerStats"].setdefault(retailer, {"success": 0, "failure": 0})
            if result["success"]:
                summary["successCount"] += 1
                summary["alertsCreated"] += result.get("alertsCreated", 0)
                stats["success"] += 1
            else:
                summary["failureCount"] += 1
                stats["failure"] += 1

        logger.info(
            f"Price monitor done: {summary['successCount']} ok, "
            f"{summary['failureCount']} failed, {summary['alertsCreated']} alerts"
        )
        return summary

    async def _refresh(self, item: TrackedItem, source: str) -> dict[str, Any]:
        checked_at = utcnow()
        try:
            listing = await self.checker.check(item.product_url, item.retail_price)
        except (UnsupportedSourceError, TransientFetchError) as e:
            return self._handle_failure(item, e, checked_at, source)

        return self._handle_success(item, listing, checked_at, source)

    def _handle_failure(
        self,
        item: TrackedItem,
        error,
        checked_at: datetime,
        source: str,
    ) -> dict[str, Any]:
        logger.info(f"Price check failed for item {item.id}: {error.message} ({error.category})")

        self.db.log_price_check(
            item_id=item.id,
            user_id=item.user_id,
            checked_at=checked_at,
            source=source,
            retailer=error.store_name,
            success=False,
            error_message=error.message,
            error_category=error.category,
            http_status_code=getattr(error, "status", None),
        )
        failure_count = self.db.record_price_failure(item.id, checked_at, self.max_failures)

        return {
            "success": False,
            "errorCategory": error.category,
            "message": error.message,
            "storeName": error.store_name,
            "supportLevel": self.checker.support_level_for(item.product_url),
            "retryable": error.retryable,
            "failureCount": failure_count,
        }

    def _handle_success(
        self,
        item: TrackedItem,
        listing: PriceListing,
        checked_at: datetime,
        source: str,
    ) -> dict[str, Any]:
        previous_price = item.sale_price or item.retail_price

        self.db.record_price_success(
            item.id,
            price=listing.price,
            store_name=listing.store_name,
            in_stock=listing.in_stock,
            checked_at=checked_at,
        )
        self.db.log_price_check(
            item_id=item.id,
            user_id=item.user_id,
            checked_at=checked_at,
            source=source,
            retailer=listing.store_name,
            success=True,
            price=listing.price,
        )

        alerts = self._notify_price_changes(item, listing.price, previous_price)

        dropped = previous_price is not None and listing.price < previous_price
        if dropped:
            message = f"Price dropped from {_money(previous_price)} to {_money(listing.price)}!"
        else:
            message = f"Price updated: {_money(listing.price)}"

        return {
            "success": True,
            "price": listing.price,
            "retailPrice": listing.retail_price or item.retail_price,
            "storeName": listing.store_name,
            "inStock": listing.in_stock,
            "supportLevel": self.checker.support_level_for(item.product_url),
            "message": message,
            "lastChecked": checked_at.isoformat(),
            "alertsCreated": alerts,
        }

    def _notify_price_changes(
        self, item: TrackedItem, price: float, previous_price: Optional[float]
    ) -> int:
        """Create price-drop and target-price notifications; returns how many were created."""
        created = 0
        link = f"/dashboard?tab=wishlist&item={item.id}"

        if previous_price and price < previous_price:
            drop_percentage = (previous_price - price) / previous_price * 100
            severity = drop_severity(drop_percentage)
            self.notifications.create(
                user_id=item.user_id,
                notification_type="price_alert",
                title=DROP_TITLES[severity],
                message=(
                    f"{item.display_name} dropped to {_money(price)} "
                    f"({round(drop_percentage)}% off)"
                ),
                severity=severity,
                link_url=link,
                action_label="View Item",
                metadata={
                    "item_id": item.id,
                    "current_price": price,
                    "previous_price": previous_price,
                    "percentage_off": round(drop_percentage),
                },
            )
            created += 1

        if item.target_price and price <= item.target_price:
            if self.notifications.has_unread(
                item.user_id, "price_alert", item_id=item.id, target_reached=True
            ):
                logger.debug(f"Target already met for item {item.id}, skipping duplicate alert")
            else:
                self.notifications.create(
                    user_id=item.user_id,
                    notification_type="price_alert",
                    title="Target Price Reached!",
                    message=(
                        f"{item.display_name} is now {_money(price)} "
                        f"(your target: {_money(item.target_price)})"
                    ),
                    severity="high",
                    link_url=link,
                    action_label="Buy Now",
                    metadata={
                        "item_id": item.id,
                        "current_price": price,
                        "target_price": item.target_price,
                        "target_reached": True,
                    },
                )
                created += 1

        return created
