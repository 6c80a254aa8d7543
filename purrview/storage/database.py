"""Database operations and management"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger
from sqlalchemy import create_engine, func, make_url
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import StorageError
from .models import Achievement, Base, PriceCheckLog, TrackedItem, utcnow


class Database:
    """Database management class"""

    def __init__(self, db_url: str = "sqlite:///data/db/purrview.db", echo: bool = False):
        self.db_url = db_url

        engine_kwargs = {"echo": echo}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in db_url or db_url == "sqlite://":
                # One shared connection so every session sees the same in-memory database
                engine_kwargs["poolclass"] = StaticPool
            else:
                database = make_url(db_url).database
                if database:
                    Path(database).parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(db_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"Database initialized: {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session(self):
        """Context manager for database sessions"""
        session = self.Session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise StorageError(str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, user_id: str, **fields) -> TrackedItem:
        """Insert an item for a user and return it detached."""
        with self.session() as session:
            item = TrackedItem(user_id=user_id, **fields)
            session.add(item)
            session.flush()
            session.expunge(item)
            return item

    def get_item(self, item_id: int, user_id: Optional[str] = None) -> Optional[TrackedItem]:
        """Get a single item, optionally restricted to its owner"""
        with self.session() as session:
            query = session.query(TrackedItem).filter(TrackedItem.id == item_id)
            if user_id is not None:
                query = query.filter(TrackedItem.user_id == user_id)

            item = query.first()
            if item:
                session.expunge(item)
            return item

    def get_items_for_monitoring(self, limit: int = 60, max_failures: int = 3) -> list[TrackedItem]:
        """Wishlisted items with a product URL whose tracking is still enabled"""
        with self.session() as session:
            items = (
                session.query(TrackedItem)
                .filter(
                    TrackedItem.status == "wishlisted",
                    TrackedItem.product_url.isnot(None),
                    TrackedItem.auto_price_tracking_enabled.is_(True),
                    TrackedItem.price_check_failures < max_failures,
                )
                .order_by(TrackedItem.last_price_check_at.asc().nullsfirst(), TrackedItem.id)
                .limit(limit)
                .all()
            )

            session.expunge_all()
            return items

    def record_price_success(
        self,
        item_id: int,
        price: float,
        store_name: Optional[str],
        in_stock: Optional[bool],
        checked_at: datetime,
    ) -> None:
        """Persist a freshly scraped price and reset the failure counter"""
        with self.session() as session:
            item = session.get(TrackedItem, item_id)
            if not item:
                return

            item.sale_price = price
            if store_name:
                item.store_name = store_name
            if in_stock is not None:
                item.in_stock = in_stock
            item.last_price_check_at = checked_at
            item.price_check_failures = 0
            if item.lowest_price_seen is None or price < item.lowest_price_seen:
                item.lowest_price_seen = price

    def record_price_failure(self, item_id: int, checked_at: datetime, max_failures: int = 3) -> int:
        """Increment the failure counter, disabling tracking once it hits max_failures.

        Returns:
            The new consecutive failure count
        """
        with self.session() as session:
            item = session.get(TrackedItem, item_id)
            if not item:
                return 0

            item.price_check_failures = (item.price_check_failures or 0) + 1
            item.last_price_check_at = checked_at
            if item.price_check_failures >= max_failures:
                item.auto_price_tracking_enabled = False
                logger.warning(
                    f"Price tracking disabled for item {item_id} after {item.price_check_failures} failures"
                )
            return item.price_check_failures

    def log_price_check(self, **fields) -> None:
        """Record a price check attempt"""
        with self.session() as session:
            session.add(PriceCheckLog(**fields))

    def get_price_checks(self, item_id: int) -> list[PriceCheckLog]:
        """Price check history for an item, newest first"""
        with self.session() as session:
            checks = (
                session.query(PriceCheckLog)
                .filter(PriceCheckLog.item_id == item_id)
                .order_by(PriceCheckLog.checked_at.desc(), PriceCheckLog.id.desc())
                .all()
            )
            session.expunge_all()
            return checks

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------

    def get_user_metrics(self, user_id: str) -> dict[str, int]:
        """Aggregate counts the achievement rules are evaluated against"""
        with self.session() as session:
            owned = session.query(TrackedItem).filter(
                TrackedItem.user_id == user_id, TrackedItem.status == "owned"
            )

            return {
                "owned_items": owned.count(),
                "wishlist_items": session.query(TrackedItem)
                .filter(TrackedItem.user_id == user_id, TrackedItem.status == "wishlisted")
                .count(),
                "total_wears": int(
                    owned.with_entities(func.coalesce(func.sum(TrackedItem.wear_count), 0)).scalar()
                ),
                "unique_brands": owned.with_entities(
                    func.count(func.distinct(func.lower(TrackedItem.brand)))
                ).scalar(),
                "unique_categories": owned.with_entities(
                    func.count(func.distinct(TrackedItem.category))
                ).scalar(),
            }

    def get_unlocked_keys(self, user_id: str) -> set[str]:
        """Achievement keys the user has already unlocked"""
        with self.session() as session:
            rows = (
                session.query(Achievement.achievement_key)
                .filter(Achievement.user_id == user_id)
                .all()
            )
            return {row.achievement_key for row in rows}

    def list_achievements(self, user_id: str) -> list[Achievement]:
        """Unlocked achievements, oldest first"""
        with self.session() as session:
            rows = (
                session.query(Achievement)
                .filter(Achievement.user_id == user_id)
                .order_by(Achievement.unlocked_at, Achievement.id)
                .all()
            )
            session.expunge_all()
            return rows

    def insert_achievement(self, user_id: str, key: str, unlocked_at: Optional[datetime] = None) -> bool:
        """Atomically insert an achievement unless (user, key) already exists.

        Returns:
            True if this call created the row, False if it already existed
        """
        values = {
            "user_id": user_id,
            "achievement_key": key,
            "unlocked_at": unlocked_at or utcnow(),
        }
        dialect = self.engine.dialect.name

        with self.session() as session:
            if dialect in ("postgresql", "sqlite"):
                insert = pg_insert if dialect == "postgresql" else sqlite_insert
                stmt = (
                    insert(Achievement)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["user_id", "achievement_key"])
                )
                result = session.execute(stmt)
                return result.rowcount == 1

            return self._insert_achievement_savepoint(session, values)

    def _insert_achievement_savepoint(self, session: Session, values: dict) -> bool:
        """Fallback for dialects without ON CONFLICT: let the constraint reject duplicates"""
        try:
            with session.begin_nested():
                session.add(Achievement(**values))
        except IntegrityError:
            logger.debug(f"Achievement {values['achievement_key']} already unlocked for {values['user_id']}")
            return False
        return True
