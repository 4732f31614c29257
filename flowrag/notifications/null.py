"""
Null Notifier - No-op implementation used when progress is not wanted
"""

from .models import ProgressEvent


class NullNotifier:
    """No-op notifier implementation."""

    def notify(self, event: ProgressEvent) -> None:
        pass
