"""Composite Notifier - Combine multiple notifiers"""

import logging
from typing import List

from .models import ProgressEvent
from .interface import NotifierInterface

logger = logging.getLogger(__name__)


class CompositeNotifier:
    """Combines multiple notifiers into one.

    A failing notifier is logged and does not stop the others; progress is
    a side channel and must not break indexing.
    """

    def __init__(self, notifiers: List[NotifierInterface]):
        self.notifiers = notifiers

    def notify(self, event: ProgressEvent) -> None:
        for n in self.notifiers:
            try:
                n.notify(event)
            except Exception as e:
                logger.warning(f"Notifier {type(n).__name__} failed: {e}")

    def add(self, notifier: NotifierInterface) -> None:
        self.notifiers.append(notifier)

    def remove(self, notifier: NotifierInterface) -> bool:
        try:
            self.notifiers.remove(notifier)
            return True
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self.notifiers)
