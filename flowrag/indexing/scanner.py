"""
Scanner - Load documents for indexing

Accepts files and directories. Directories are walked recursively,
skipping hidden entries and common build/dependency folders, and keeping
only text files (plus any extension a registered DocumentParser handles).
Document ids are derived from the absolute path, so they are stable
across runs.
"""

import asyncio
import base64
import fnmatch
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from flowrag.interfaces import DocumentParser
from flowrag.types import Document

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {
    '.md', '.markdown', '.mdx', '.txt', '.rst', '.adoc',
    '.py', '.ts', '.tsx', '.js', '.jsx', '.java', '.go', '.rs', '.rb', '.php',
    '.c', '.h', '.cpp', '.hpp', '.cs', '.kt', '.swift', '.scala',
    '.sh', '.bash', '.sql', '.graphql',
    '.json', '.yml', '.yaml', '.toml', '.ini', '.cfg', '.xml',
    '.html', '.css', '.csv',
}

DEFAULT_EXCLUDED_DIRS = {
    'node_modules',
    '__pycache__',
    'dist',
    'build',
    'venv',
}


def document_id_for_path(path: str) -> str:
    """`doc:` + unpadded base64url of the path"""
    encoded = base64.urlsafe_b64encode(path.encode("utf-8")).decode("ascii").rstrip("=")
    return f"doc:{encoded}"


def path_for_document_id(document_id: str) -> Optional[str]:
    """Inverse of document_id_for_path; None for ids not built from a path"""
    if not document_id.startswith("doc:"):
        return None
    encoded = document_id[len("doc:"):]
    try:
        return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return None


def _matches(rel_path: str, patterns: Sequence[str]) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(name, pattern):
            return True
        if pattern.startswith("**/") and fnmatch.fnmatch(rel_path, pattern[3:]):
            return True
    return False


def _read_text(path: str) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


class Scanner:
    """Turn input paths into documents"""

    def __init__(self, parsers: Optional[Sequence[DocumentParser]] = None):
        self.parsers: Dict[str, DocumentParser] = {}
        for parser in parsers or []:
            for ext in parser.supported_extensions:
                self.parsers[ext.lower()] = parser

    def _is_supported(self, path: str) -> bool:
        ext = os.path.splitext(path)[1].lower()
        return ext in TEXT_EXTENSIONS or ext in self.parsers

    def collect_files(
        self,
        root: str,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """
        List the files under a directory that would be indexed

        Args:
            root: Directory to walk
            include: Glob patterns (relative to root); when given, only
                matching files are kept
            exclude: Glob patterns (relative to root) to drop

        Returns:
            Sorted absolute file paths
        """
        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith('.') and d not in DEFAULT_EXCLUDED_DIRS
            )
            for filename in sorted(filenames):
                if filename.startswith('.'):
                    continue
                full_path = os.path.join(dirpath, filename)
                rel_path = Path(os.path.relpath(full_path, root)).as_posix()
                if not self._is_supported(full_path):
                    continue
                if include and not _matches(rel_path, include):
                    continue
                if exclude and _matches(rel_path, exclude):
                    continue
                files.append(full_path)
        return files

    async def load_file(self, path: str) -> Optional[Document]:
        """
        Load a single file

        Returns:
            Document, or None if the file cannot be read
        """
        ext = os.path.splitext(path)[1].lower()
        try:
            parser = self.parsers.get(ext)
            if parser is not None:
                parsed = await parser.parse(path)
                content, extra = parsed.content, dict(parsed.metadata)
            else:
                content, extra = await asyncio.to_thread(_read_text, path), {}
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning(f"Failed to scan file {path}: {e}")
            return None

        return Document(
            id=document_id_for_path(path),
            content=content.strip(),
            metadata={
                **extra,
                'path': path,
                'extension': ext,
                'scanned_at': datetime.now(timezone.utc).isoformat(),
            },
        )

    async def scan_files(
        self,
        paths: Sequence[str],
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
    ) -> List[Document]:
        """
        Scan files and directories into documents

        Args:
            paths: Files and/or directories
            include: Glob patterns applied inside directories
            exclude: Glob patterns applied inside directories

        Returns:
            Documents in input order; unreadable or missing paths are skipped
        """
        documents: List[Document] = []
        seen = set()

        for raw_path in paths:
            path = os.path.abspath(raw_path)
            if os.path.isdir(path):
                candidates = self.collect_files(path, include, exclude)
            elif os.path.isfile(path):
                candidates = [path]
            else:
                logger.warning(f"Path not found: {raw_path}")
                continue

            for file_path in candidates:
                if file_path in seen:
                    continue
                seen.add(file_path)
                doc = await self.load_file(file_path)
                if doc:
                    documents.append(doc)

        logger.debug(f"Scanned {len(documents)} documents from {len(paths)} paths")
        return documents
