"""Data storage and persistence layer"""

from .models import Achievement, Notification, PriceCheckLog, TrackedItem
from .database import Database

__all__ = [
    "Achievement",
    "Notification",
    "PriceCheckLog",
    "TrackedItem",
    "Database",
]
