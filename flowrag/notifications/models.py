"""
Notification Models - Progress events emitted by the indexing pipeline

Each event carries running document and chunk counters so a consumer can
render progress without keeping its own state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ProgressType(str, Enum):
    """Indexing pipeline events"""
    SCAN = "scan"                        # Input paths scanned
    DOCUMENT_START = "document:start"    # Document will be (re)indexed
    DOCUMENT_SKIP = "document:skip"      # Content hash unchanged
    DOCUMENT_DONE = "document:done"      # Hash committed
    DOCUMENT_DELETE = "document:delete"  # Source no longer present
    CHUNK_DONE = "chunk:done"            # Chunk extracted, embedded, stored
    DONE = "done"                        # Whole run finished


# Display configuration (emoji, description)
TYPE_INFO = {
    ProgressType.SCAN: ("📄", "Scanned"),
    ProgressType.DOCUMENT_START: ("🧠", "Indexing"),
    ProgressType.DOCUMENT_SKIP: ("⏭️", "Unchanged"),
    ProgressType.DOCUMENT_DONE: ("💾", "Indexed"),
    ProgressType.DOCUMENT_DELETE: ("🗑️", "Removed"),
    ProgressType.CHUNK_DONE: ("✂️", "Chunk"),
    ProgressType.DONE: ("✅", "Complete"),
}


@dataclass
class ProgressEvent:
    """
    Progress event emitted during indexing.

    Attributes:
        type: Event type
        documents_total: Documents found by the scan
        documents_processed: Documents finished (indexed or skipped)
        chunks_total: Chunks produced so far
        chunks_processed: Chunks fully stored so far
        document_id: Document the event refers to (optional)
        chunk_id: Chunk the event refers to (optional)
        timestamp: When the event occurred
    """
    type: ProgressType
    documents_total: int = 0
    documents_processed: int = 0
    chunks_total: int = 0
    chunks_processed: int = 0
    document_id: Optional[str] = None
    chunk_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def percentage(self) -> float:
        """Document completion percentage (0-100)"""
        if self.documents_total == 0:
            return 0.0
        return (self.documents_processed / self.documents_total) * 100.0

    @property
    def is_complete(self) -> bool:
        return self.type == ProgressType.DONE

    @property
    def emoji(self) -> str:
        return TYPE_INFO.get(self.type, ("❓", "Unknown"))[0]

    @property
    def description(self) -> str:
        return TYPE_INFO.get(self.type, ("❓", "Unknown"))[1]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "type": self.type.value,
            "documents_total": self.documents_total,
            "documents_processed": self.documents_processed,
            "chunks_total": self.chunks_total,
            "chunks_processed": self.chunks_processed,
            "percentage": round(self.percentage, 1),
            "document_id": self.document_id,
            "chunk_id": self.chunk_id,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        subject = f" {self.document_id}" if self.document_id else ""
        if self.documents_total > 0:
            return (
                f"{self.emoji} {self.description}{subject} "
                f"[{self.documents_processed}/{self.documents_total}] ({self.percentage:.0f}%)"
            )
        return f"{self.emoji} {self.description}{subject}"
