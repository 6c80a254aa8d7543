"""Database models for PurrView."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TrackedItem(Base):
    """A user's owned or wishlisted item, optionally monitored for price changes."""

    __tablename__ = "items"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), index=True, nullable=False)

    brand = Column(String(128))
    model = Column(String(256))
    category = Column(String(64), index=True)
    status = Column(String(16), default="wishlisted", index=True)  # owned, wishlisted, archived

    # Price tracking
    product_url = Column(String(2048))
    store_name = Column(String(128))
    sale_price = Column(Float)
    retail_price = Column(Float)
    target_price = Column(Float)
    lowest_price_seen = Column(Float)
    in_stock = Column(Boolean)
    auto_price_tracking_enabled = Column(Boolean, default=True, nullable=False)
    price_check_failures = Column(Integer, default=0, nullable=False)
    last_price_check_at = Column(DateTime)

    wear_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    price_checks = relationship("PriceCheckLog", back_populates="item", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.brand, self.model) if part) or "Item"

    def __repr__(self):
        return f"<TrackedItem(id={self.id}, user='{self.user_id}', status='{self.status}')>"


class Achievement(Base):
    """An unlocked milestone. One row per (user, key), never updated."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_key", name="uq_user_achievements_user_key"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), index=True, nullable=False)
    achievement_key = Column(String(64), nullable=False)
    unlocked_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Achievement(user='{self.user_id}', key='{self.achievement_key}')>"


class Notification(Base):
    """In-app notification shown to a single user."""

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint("is_read = (read_at IS NOT NULL)", name="ck_notifications_read_at"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), index=True, nullable=False)

    notification_type = Column(String(32), index=True, nullable=False)  # price_alert, achievement_unlock, ...
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(String(8), default="low", nullable=False)  # low, medium, high
    link_url = Column(String(512))
    action_label = Column(String(64))

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime)
    snoozed_until = Column(DateTime)
    expiry_at = Column(DateTime, index=True)

    # "metadata" is reserved on declarative classes
    payload = Column("metadata", JSON, default=dict, nullable=False)

    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.notification_type}', read={self.is_read})>"


class PriceCheckLog(Base):
    """Audit trail of price check attempts, successful or not."""

    __tablename__ = "price_check_log"

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(64), index=True, nullable=False)

    checked_at = Column(DateTime, default=utcnow, index=True)
    source = Column(String(32))  # manual_check, automated_scrape
    retailer = Column(String(128))

    success = Column(Boolean, nullable=False)
    price = Column(Float)
    error_message = Column(Text)
    error_category = Column(String(32))
    http_status_code = Column(Integer)

    item = relationship("TrackedItem", back_populates="price_checks")

    def __repr__(self):
        return f"<PriceCheckLog(item_id={self.item_id}, success={self.success})>"
