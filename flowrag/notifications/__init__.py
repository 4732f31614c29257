"""
FlowRAG Notifications - Pluggable indexing progress display

Usage:
    from flowrag.notifications import ConsoleNotifier

    notifier = ConsoleNotifier()
    await rag.index(["./docs"], on_progress=notifier.notify)
"""

from .models import ProgressType, ProgressEvent, TYPE_INFO
from .interface import NotifierInterface
from .null import NullNotifier
from .console import ConsoleNotifier
from .composite import CompositeNotifier
from .factory import create_notifier_from_config

__all__ = [
    # Models
    "ProgressType",
    "ProgressEvent",
    "TYPE_INFO",
    # Interface
    "NotifierInterface",
    # Implementations
    "NullNotifier",
    "ConsoleNotifier",
    "CompositeNotifier",
    # Factory
    "create_notifier_from_config",
]
