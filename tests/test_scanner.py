"""
Unit tests for the document scanner.
"""

import os

import pytest

from flowrag.indexing.scanner import Scanner, document_id_for_path, path_for_document_id
from flowrag.interfaces import ParsedDocument


@pytest.fixture
def corpus(tmp_path):
    (tmp_path / "guide.md").write_text("# Guide\n\nServiceA writes to DatabaseB.")
    (tmp_path / "notes.txt").write_text("plain notes")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / ".hidden.md").write_text("secret")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "api.md").write_text("API docs")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.md").write_text("vendored")
    return tmp_path


class PdfParser:
    supported_extensions = [".pdf"]

    async def parse(self, file_path):
        return ParsedDocument(content="parsed pdf text", metadata={"pages": 2})


class TestDocumentIds:
    """Tests for path-derived document ids"""

    def test_stable_and_reversible(self):
        """Ids are deterministic and decode back to the path"""
        doc_id = document_id_for_path("/docs/a b.md")
        assert doc_id == document_id_for_path("/docs/a b.md")
        assert doc_id.startswith("doc:")
        assert "=" not in doc_id
        assert path_for_document_id(doc_id) == "/docs/a b.md"

    def test_foreign_id(self):
        """Ids not built from a path decode to None"""
        assert path_for_document_id("chunk:doc:x:0") is None


class TestScanner:
    """Tests for Scanner"""

    @pytest.mark.asyncio
    async def test_directory_scan(self, corpus):
        """Text files are found; hidden, binary and excluded dirs are skipped"""
        docs = await Scanner().scan_files([str(corpus)])
        names = sorted(os.path.basename(d.metadata["path"]) for d in docs)
        assert names == ["api.md", "guide.md", "notes.txt"]

    @pytest.mark.asyncio
    async def test_metadata(self, corpus):
        """Documents carry path, extension and scan time"""
        docs = await Scanner().scan_files([str(corpus / "guide.md")])
        meta = docs[0].metadata
        assert meta["path"] == str(corpus / "guide.md")
        assert meta["extension"] == ".md"
        assert "scanned_at" in meta
        assert docs[0].id == document_id_for_path(str(corpus / "guide.md"))

    @pytest.mark.asyncio
    async def test_include_exclude(self, corpus):
        """Glob patterns select files inside directories"""
        scanner = Scanner()
        only_md = await scanner.scan_files([str(corpus)], include=["**/*.md"])
        assert sorted(os.path.basename(d.metadata["path"]) for d in only_md) == ["api.md", "guide.md"]

        no_sub = await scanner.scan_files([str(corpus)], exclude=["sub/*"])
        assert all("sub" not in d.metadata["path"].split(os.sep) for d in no_sub)

    @pytest.mark.asyncio
    async def test_duplicates_and_missing(self, corpus):
        """Repeated inputs are scanned once; missing paths are skipped"""
        docs = await Scanner().scan_files([str(corpus / "notes.txt"), str(corpus), str(corpus / "nope.md")])
        paths = [d.metadata["path"] for d in docs]
        assert len(paths) == len(set(paths)) == 3

    @pytest.mark.asyncio
    async def test_custom_parser(self, tmp_path):
        """Registered parsers handle their extensions"""
        (tmp_path / "report.pdf").write_bytes(b"%PDF")
        docs = await Scanner([PdfParser()]).scan_files([str(tmp_path)])
        assert docs[0].content == "parsed pdf text"
        assert docs[0].metadata["pages"] == 2

    @pytest.mark.asyncio
    async def test_unreadable_file_skipped(self, tmp_path):
        """Files that are not valid UTF-8 are skipped"""
        (tmp_path / "bad.txt").write_bytes(b"\xff\xfe\xfa")
        assert await Scanner().scan_files([str(tmp_path)]) == []
