"""File system helpers for staging documents."""

from pathlib import Path

import aiofiles

SUPPORTED_EXTENSIONS = (".pdf", ".docx")


def is_supported_document(path: Path) -> bool:
    """Check whether a path looks like a CV the extractor can read."""
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


async def read_bytes_async(path: Path) -> bytes:
    """Read a file's raw bytes asynchronously.

    Args:
        path: Path to the file.

    Returns:
        File contents.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


def format_size(num_bytes: int) -> str:
    """Format a byte count for display."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"
