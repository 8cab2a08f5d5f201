"""External storage integrations."""

from gigster.integrations.storage import DocumentArchive, build_full_path, get_filesystem

__all__ = ["DocumentArchive", "build_full_path", "get_filesystem"]
