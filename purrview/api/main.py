"""FastAPI application for PurrView."""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..achievements import ACHIEVEMENTS, AchievementChecker, get_rule
from ..errors import PurrViewError, ValidationError
from ..notifications import NotificationService
from ..pricing import PriceChecker, PriceRefreshService
from ..storage import Database
from ..storage.models import Notification, utcnow
from ..utils.config import get_config
from .auth import get_current_user_id, require_service_key

# Initialize FastAPI app
app = FastAPI(
    title="PurrView API",
    description="Price tracking, achievements and notifications for your wardrobe",
    version="1.0.0",
)

# Load configuration
config = get_config()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------


@lru_cache
def get_db() -> Database:
    return Database(config.database.url, echo=config.database.echo)


def get_price_checker() -> PriceChecker:
    return PriceChecker(timeout=config.pricing.timeout_seconds)


def get_notification_service(db: Database = Depends(get_db)) -> NotificationService:
    return NotificationService(db, expiry_days=config.notifications.expiry_days)


def get_price_refresh_service(
    db: Database = Depends(get_db),
    checker: PriceChecker = Depends(get_price_checker),
    notifications: NotificationService = Depends(get_notification_service),
) -> PriceRefreshService:
    return PriceRefreshService(
        db,
        checker,
        notifications,
        max_failures=config.pricing.max_failures,
        rate_limit_delay=config.pricing.rate_limit_delay,
    )


def get_achievement_checker(
    db: Database = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> AchievementChecker:
    return AchievementChecker(db, notifications, notify=config.achievements.notify_on_unlock)


# ----------------------------------------------------------------------
# Request bodies and serialization
# ----------------------------------------------------------------------


class CheckPriceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: Optional[int] = Field(None, alias="itemId")


class SnoozeRequest(BaseModel):
    days: int = config.notifications.default_snooze_days


class DismissByTypeRequest(BaseModel):
    notification_type: str = ""
    ids: list[int] = Field(default_factory=list)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "notification_type": notification.notification_type,
        "title": notification.title,
        "message": notification.message,
        "severity": notification.severity,
        "link_url": notification.link_url,
        "action_label": notification.action_label,
        "is_read": notification.is_read,
        "read_at": _isoformat(notification.read_at),
        "snoozed_until": _isoformat(notification.snoozed_until),
        "expiry_at": _isoformat(notification.expiry_at),
        "metadata": notification.payload or {},
        "created_at": _isoformat(notification.created_at),
    }


# ----------------------------------------------------------------------
# Error handling and lifecycle
# ----------------------------------------------------------------------


@app.exception_handler(PurrViewError)
async def purrview_error_handler(request: Request, exc: PurrViewError):
    """Map service errors to their status code and a uniform error body."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.category}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("PurrView API starting up")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("PurrView API shutting down")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "PurrView API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
    }


# ----------------------------------------------------------------------
# Price refresh
# ----------------------------------------------------------------------


@app.post("/items/{item_id}/check-price")
async def check_item_price(
    item_id: int,
    user_id: str = Depends(get_current_user_id),
    service: PriceRefreshService = Depends(get_price_refresh_service),
):
    """Refresh one tracked item's price from its retailer page.

    Fetch and parse failures are reported in the body with success=false
    and an errorCategory, not as HTTP errors.
    """
    return await service.refresh_item(user_id, item_id)


@app.post("/check-price-now")
async def check_price_now(
    body: CheckPriceRequest,
    user_id: str = Depends(get_current_user_id),
    service: PriceRefreshService = Depends(get_price_refresh_service),
):
    """Same as /items/{item_id}/check-price, with the item id in the body."""
    if body.item_id is None:
        raise ValidationError("Item ID is required")
    return await service.refresh_item(user_id, body.item_id)


# ----------------------------------------------------------------------
# Achievements
# ----------------------------------------------------------------------


@app.post("/achievements/check")
async def check_achievements(
    user_id: str = Depends(get_current_user_id),
    checker: AchievementChecker = Depends(get_achievement_checker),
):
    """Unlock any achievements the caller has newly earned."""
    unlocked = checker.check(user_id)
    return {"success": True, "unlocked": unlocked}


@app.get("/achievements")
async def list_achievements(
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    """The caller's unlocked achievements plus catalog totals."""
    results = []
    for achievement in db.list_achievements(user_id):
        rule = get_rule(achievement.achievement_key)
        results.append({
            "achievement_key": achievement.achievement_key,
            "unlocked_at": _isoformat(achievement.unlocked_at),
            "name": rule.name if rule else achievement.achievement_key,
            "description": rule.description if rule else None,
            "icon": rule.icon if rule else None,
            "tier": rule.tier if rule else None,
            "points": rule.points if rule else 0,
        })

    return {
        "achievements": results,
        "unlockedCount": len(results),
        "totalCount": len(ACHIEVEMENTS),
        "totalPoints": sum(a["points"] for a in results),
    }


# ----------------------------------------------------------------------
# Notifications
# ----------------------------------------------------------------------


@app.post("/internal/notifications/cleanup", dependencies=[Depends(require_service_key)])
async def cleanup_notifications(
    notifications: NotificationService = Depends(get_notification_service),
):
    """Delete expired notifications for all users."""
    result = notifications.sweep_expired()
    if not result["success"]:
        return JSONResponse(status_code=500, content=result)
    return result


@app.get("/notifications")
async def list_notifications(
    cursor: Optional[datetime] = Query(None, description="created_at of the last row of the previous page"),
    cursor_id: Optional[int] = Query(None, description="id of the last row of the previous page"),
    limit: int = Query(config.notifications.page_size, ge=1, le=100, description="Number of results"),
    unread_only: bool = Query(False, description="Only unread notifications"),
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    """List the caller's notifications, newest first."""
    page = notifications.list_for_user(
        user_id, limit=limit, cursor=cursor, cursor_id=cursor_id, unread_only=unread_only
    )

    return {
        "notifications": [serialize_notification(n) for n in page["notifications"]],
        "nextCursor": _isoformat(page["next_cursor"]),
        "nextCursorId": page["next_cursor_id"],
        "hasMore": page["has_more"],
        "unreadCount": notifications.unread_count(user_id),
    }


@app.put("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    notification = notifications.mark_read(user_id, notification_id)
    return {"notification": serialize_notification(notification)}


@app.post("/notifications/mark-all-read")
async def mark_all_notifications_read(
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    marked = notifications.mark_all_read(user_id)
    return {"success": True, "markedCount": marked}


@app.put("/notifications/{notification_id}/snooze")
async def snooze_notification(
    notification_id: int,
    body: Optional[SnoozeRequest] = None,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Hide a notification for a number of days (default from config)."""
    days = body.days if body else config.notifications.default_snooze_days
    notification = notifications.snooze(user_id, notification_id, days)
    return {"notification": serialize_notification(notification)}


@app.post("/notifications/dismiss-by-type")
async def dismiss_notifications_by_type(
    body: DismissByTypeRequest,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    dismissed = notifications.dismiss_by_type(user_id, body.notification_type, body.ids)
    return {"success": True, "dismissed": dismissed}


@app.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    notifications.delete(user_id, notification_id)
    return {"success": True}
