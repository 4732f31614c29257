"""
Notifier Interface - Protocol definition for notification implementations
"""

from typing import Protocol, runtime_checkable

from .models import ProgressEvent


@runtime_checkable
class NotifierInterface(Protocol):
    """Protocol for progress notification implementations.

    A notifier's bound notify method is a valid on_progress callback.
    """

    def notify(self, event: ProgressEvent) -> None:
        """Send a progress notification."""
        ...
