"""
Notifier factory.
Configures which notification backend the booking services use.
"""

from typing import Optional

from app.core.config import get_settings
from app.services.interfaces.notifier import Notifier
from app.services.interfaces.log_notifier import LogNotifier
from app.services.notification_service import RedisNotifier


def build_notifier() -> Notifier:
    """
    Build the configured notifier.

    NOTIFIER_BACKEND:
    - "log" (default): LogNotifier
    - "redis": RedisNotifier, publishing to NOTIFICATION_CHANNEL
    """
    backend = get_settings().NOTIFIER_BACKEND

    if backend == "redis":
        return RedisNotifier()
    else:
        return LogNotifier()


# Singleton instance
_notifier: Optional[Notifier] = None

def get_notifier() -> Notifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier
