"""Notifier Factory - Create notifiers from configuration"""

import logging
from typing import Any, Dict, List

from .interface import NotifierInterface
from .null import NullNotifier
from .console import ConsoleNotifier
from .composite import CompositeNotifier

logger = logging.getLogger(__name__)


def create_notifier_from_config(config: Dict[str, Any]) -> NotifierInterface:
    """Create a notifier from the `notifications` section of a config dict."""
    notifications_config = config.get("notifications", {})
    if not notifications_config:
        return NullNotifier()

    notifiers: List[NotifierInterface] = []

    console_config = notifications_config.get("console", {})
    if console_config.get("enabled", True):
        notifiers.append(ConsoleNotifier(
            show_progress_bar=console_config.get("show_progress_bar", True),
            verbose=console_config.get("verbose", False),
        ))

    for name in notifications_config:
        if name != "console":
            logger.warning(f"Unknown notifier type in config: {name}")

    if not notifiers:
        return NullNotifier()
    elif len(notifiers) == 1:
        return notifiers[0]
    else:
        return CompositeNotifier(notifiers)
