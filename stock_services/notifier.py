"""LoggingNotifier -- Notifier that writes operator notifications to the log."""

from __future__ import annotations

import logging

from stock_kernel.logging_config import get_logger
from stock_services.ports import NotificationKind

_LEVELS = {
    NotificationKind.ERROR: logging.ERROR,
    NotificationKind.WARNING: logging.WARNING,
    NotificationKind.INFO: logging.INFO,
    NotificationKind.SUCCESS: logging.INFO,
}


class LoggingNotifier:
    """Routes report(kind, message) to the structured logger. Never blocks."""

    def __init__(self, name: str = "services.notifier"):
        self._logger = get_logger(name)

    def report(self, kind: NotificationKind, message: str) -> None:
        kind = NotificationKind(kind)
        self._logger.log(
            _LEVELS[kind],
            "operator_notified",
            extra={"notification_kind": kind.value, "notification": message},
        )
