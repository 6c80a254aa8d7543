"""User notifications: creation, read state and expiry"""

from .service import NotificationService

__all__ = ["NotificationService"]
