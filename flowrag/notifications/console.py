"""Console Notifier - Terminal progress display"""

import sys
from datetime import datetime
from typing import Optional, TextIO

from .models import ProgressEvent, ProgressType


class ConsoleNotifier:
    """Console-based progress notifier with progress bar support."""

    def __init__(
        self,
        output: TextIO = sys.stderr,
        show_progress_bar: bool = True,
        verbose: bool = False,
        use_colors: Optional[bool] = None,
    ):
        self.output = output
        self.show_progress_bar = show_progress_bar
        self.verbose = verbose
        self.use_colors = use_colors if use_colors is not None else (hasattr(output, 'isatty') and output.isatty())
        self._start_time: Optional[datetime] = None

    def _color(self, text: str, code: str) -> str:
        return f"\033[{code}m{text}\033[0m" if self.use_colors else text

    def _green(self, text: str) -> str: return self._color(text, "32")
    def _cyan(self, text: str) -> str: return self._color(text, "36")
    def _dim(self, text: str) -> str: return self._color(text, "90")

    def _progress_bar(self, current: int, total: int, width: int = 20) -> str:
        if total == 0: return ""
        filled = int(width * current / total)
        return f"[{'█' * filled}{'░' * (width - filled)}] {current}/{total}"

    def notify(self, event: ProgressEvent) -> None:
        if event.type == ProgressType.SCAN:
            self._start_time = datetime.now()
            print(f"\n📚 Indexing {self._cyan(str(event.documents_total))} documents", file=self.output)
            return

        if event.type == ProgressType.CHUNK_DONE:
            if self.verbose:
                print(f"   {event.emoji} {self._dim(event.chunk_id or '')}", file=self.output)
            return

        if event.type == ProgressType.DONE:
            duration = (datetime.now() - self._start_time).total_seconds() if self._start_time else 0
            summary = f"{event.documents_processed} documents, {event.chunks_processed} chunks"
            print(f"   {self._green('✅')} {summary} {self._dim(f'({duration:.1f}s)')}", file=self.output)
            self._start_time = None
            return

        line = f"   {event.emoji} {event.description} {event.document_id or ''}"
        if self.show_progress_bar and event.documents_total > 0:
            line += f" {self._dim(self._progress_bar(event.documents_processed, event.documents_total))}"
        print(line, file=self.output)
