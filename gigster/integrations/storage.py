"""Generated-document archive using fsspec for filesystem abstraction.

Provides unified access to local filesystem and cloud storage (S3, GCS)
through fsspec's protocol detection.
"""

import asyncio
import os
from urllib.parse import urlparse

import fsspec


def get_filesystem(url: str) -> fsspec.AbstractFileSystem:
    """Get filesystem for URL, auto-detecting protocol.

    Examples:
        get_filesystem("s3://bucket/pdfs") -> S3FileSystem
        get_filesystem("/var/lib/gigster/pdfs") -> LocalFileSystem
    """
    parsed = urlparse(url)
    if not parsed.scheme or parsed.scheme == "file":
        return fsspec.filesystem("file")
    return fsspec.filesystem(parsed.scheme)


def _is_local(url: str) -> bool:
    scheme = urlparse(url).scheme
    return not scheme or scheme == "file"


def build_full_path(url: str, path: str) -> str:
    """Build full path from base URL and relative path."""
    parsed = urlparse(url)

    if _is_local(url):
        base = parsed.path if parsed.path else url
        return os.path.join(base, path) if path else base

    base = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
    if path:
        return f"{base.rstrip('/')}/{path.lstrip('/')}"
    return base


def _write_file_sync(fs: fsspec.AbstractFileSystem, path: str, content: bytes) -> None:
    with fs.open(path, "wb") as f:
        f.write(content)


class DocumentArchive:
    """Stores generated PDFs under ``<base_url>/<kind>/<name>.pdf``."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    @staticmethod
    def key_for(kind: str, document_id: int, version: int = 1) -> str:
        return f"{kind}/{kind}-{document_id}-v{version}.pdf"

    async def write(self, key: str, content: bytes) -> str:
        """Write bytes and return the full storage path."""
        fs = get_filesystem(self.base_url)
        full_path = build_full_path(self.base_url, key)
        if _is_local(self.base_url):
            directory = os.path.dirname(full_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        await asyncio.to_thread(_write_file_sync, fs, full_path, content)
        return full_path

