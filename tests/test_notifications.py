"""
Unit tests for the FlowRAG notification system.

Tests cover:
- ProgressType and ProgressEvent models
- NullNotifier (no-op behavior)
- ConsoleNotifier (output formatting)
- CompositeNotifier (multi-notifier)
- Factory function (config-based creation)
"""

import io
from unittest.mock import Mock

from flowrag.notifications import (
    TYPE_INFO,
    CompositeNotifier,
    ConsoleNotifier,
    NotifierInterface,
    NullNotifier,
    ProgressEvent,
    ProgressType,
    create_notifier_from_config,
)


class TestProgressType:
    """Tests for ProgressType enum"""

    def test_event_type_values(self):
        """Event types use the scan/document/chunk/done vocabulary"""
        assert [t.value for t in ProgressType] == [
            "scan",
            "document:start",
            "document:skip",
            "document:done",
            "document:delete",
            "chunk:done",
            "done",
        ]

    def test_type_info_coverage(self):
        """Every type has an emoji and a description"""
        for event_type in ProgressType:
            emoji, description = TYPE_INFO[event_type]
            assert emoji
            assert description


class TestProgressEvent:
    """Tests for ProgressEvent dataclass"""

    def test_defaults(self):
        """Counters default to zero"""
        event = ProgressEvent(type=ProgressType.SCAN)
        assert event.documents_total == 0
        assert event.chunks_processed == 0
        assert event.document_id is None

    def test_percentage(self):
        """Percentage is based on documents"""
        assert ProgressEvent(type=ProgressType.DOCUMENT_DONE, documents_total=4, documents_processed=1).percentage == 25.0
        assert ProgressEvent(type=ProgressType.SCAN).percentage == 0.0

    def test_is_complete(self):
        """Only the done event completes a run"""
        assert ProgressEvent(type=ProgressType.DONE).is_complete
        assert not ProgressEvent(type=ProgressType.DOCUMENT_DONE).is_complete

    def test_to_dict(self):
        """Serialization uses the wire event names"""
        event = ProgressEvent(
            type=ProgressType.CHUNK_DONE,
            documents_total=2,
            documents_processed=1,
            chunks_total=10,
            chunks_processed=3,
            document_id="doc:abc",
            chunk_id="chunk:doc:abc:2",
        )
        d = event.to_dict()
        assert d["type"] == "chunk:done"
        assert d["percentage"] == 50.0
        assert d["chunk_id"] == "chunk:doc:abc:2"
        assert "timestamp" in d

    def test_str_representation(self):
        """String form shows the document counter"""
        event = ProgressEvent(type=ProgressType.DOCUMENT_DONE, documents_total=10, documents_processed=5)
        assert "[5/10]" in str(event)
        assert "50%" in str(event)


class TestNullNotifier:
    """Tests for NullNotifier"""

    def test_implements_interface(self):
        """NullNotifier satisfies NotifierInterface"""
        assert isinstance(NullNotifier(), NotifierInterface)

    def test_notify_is_no_op(self):
        """notify() accepts any event"""
        NullNotifier().notify(ProgressEvent(type=ProgressType.DONE))


class TestConsoleNotifier:
    """Tests for ConsoleNotifier"""

    def test_implements_interface(self):
        """ConsoleNotifier satisfies NotifierInterface"""
        assert isinstance(ConsoleNotifier(), NotifierInterface)

    def test_scan_and_done(self):
        """Scan announces the document count, done prints a summary"""
        output = io.StringIO()
        notifier = ConsoleNotifier(output=output, use_colors=False)

        notifier.notify(ProgressEvent(type=ProgressType.SCAN, documents_total=3))
        notifier.notify(ProgressEvent(type=ProgressType.DONE, documents_total=3, documents_processed=3, chunks_processed=12))

        text = output.getvalue()
        assert "Indexing 3 documents" in text
        assert "3 documents, 12 chunks" in text

    def test_progress_bar(self):
        """Document events show a progress bar"""
        output = io.StringIO()
        notifier = ConsoleNotifier(output=output, use_colors=False)

        notifier.notify(ProgressEvent(
            type=ProgressType.DOCUMENT_DONE, documents_total=4, documents_processed=2, document_id="doc:x",
        ))

        text = output.getvalue()
        assert "doc:x" in text
        assert "2/4" in text
        assert "█" in text

    def test_chunks_only_when_verbose(self):
        """Chunk events are printed only in verbose mode"""
        quiet, loud = io.StringIO(), io.StringIO()
        event = ProgressEvent(type=ProgressType.CHUNK_DONE, chunk_id="chunk:doc:x:0")

        ConsoleNotifier(output=quiet, use_colors=False).notify(event)
        ConsoleNotifier(output=loud, use_colors=False, verbose=True).notify(event)

        assert quiet.getvalue() == ""
        assert "chunk:doc:x:0" in loud.getvalue()


class TestCompositeNotifier:
    """Tests for CompositeNotifier"""

    def test_fans_out(self):
        """Every notifier receives the event"""
        first, second = Mock(), Mock()
        event = ProgressEvent(type=ProgressType.SCAN)

        CompositeNotifier([first, second]).notify(event)

        first.notify.assert_called_once_with(event)
        second.notify.assert_called_once_with(event)

    def test_failure_isolated(self):
        """A failing notifier does not stop the others"""
        broken, healthy = Mock(), Mock()
        broken.notify.side_effect = RuntimeError("boom")

        CompositeNotifier([broken, healthy]).notify(ProgressEvent(type=ProgressType.DONE))

        healthy.notify.assert_called_once()

    def test_add_remove(self):
        """Notifiers can be added and removed"""
        composite = CompositeNotifier([])
        notifier = NullNotifier()
        composite.add(notifier)
        assert len(composite) == 1
        assert composite.remove(notifier)
        assert not composite.remove(notifier)


class TestFactory:
    """Tests for create_notifier_from_config()"""

    def test_empty_config(self):
        """No notifications section gives a NullNotifier"""
        assert isinstance(create_notifier_from_config({}), NullNotifier)

    def test_console(self):
        """A console section gives a ConsoleNotifier"""
        notifier = create_notifier_from_config({"notifications": {"console": {"verbose": True}}})
        assert isinstance(notifier, ConsoleNotifier)
        assert notifier.verbose

    def test_console_disabled(self):
        """A disabled console leaves nothing to notify"""
        notifier = create_notifier_from_config({"notifications": {"console": {"enabled": False}}})
        assert isinstance(notifier, NullNotifier)
