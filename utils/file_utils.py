"""
File utility functions for the GWAS Study Explorer.
"""

import gzip
import hashlib
import io
import os
from typing import Optional, TextIO

from utils.logging_config import get_logger

logger = get_logger(__name__)

GZIP_MAGIC = b'\x1f\x8b'


def validate_file_exists(filepath: str) -> bool:
    """
    Check if a file exists and is readable.

    Args:
        filepath: Path to the file to validate.

    Returns:
        bool: True if file exists and is readable, False otherwise.
    """
    if not os.path.exists(filepath):
        logger.warning(f"File does not exist: {filepath}")
        return False

    if not os.path.isfile(filepath):
        logger.warning(f"Path is not a file: {filepath}")
        return False

    if not os.access(filepath, os.R_OK):
        logger.warning(f"File is not readable: {filepath}")
        return False

    return True


def get_file_size(filepath: str) -> Optional[int]:
    """
    Get the size of a file in bytes.

    Args:
        filepath: Path to the file.

    Returns:
        Optional[int]: File size in bytes, or None if file doesn't exist.
    """
    try:
        return os.path.getsize(filepath)
    except OSError as e:
        logger.error(f"Error getting file size for {filepath}: {e}")
        return None


def is_gzipped(filepath: str) -> bool:
    """Check the gzip magic bytes at the start of a file."""
    with open(filepath, 'rb') as f:
        return f.read(2) == GZIP_MAGIC


def open_text(filepath: str) -> TextIO:
    """
    Open a text file for reading, transparently decompressing gzip content.

    Args:
        filepath: Path to a plain or gzip-compressed text file.

    Returns:
        TextIO: Text stream decoded as UTF-8.
    """
    if is_gzipped(filepath):
        return io.TextIOWrapper(gzip.open(filepath, 'rb'), encoding='utf-8', newline='')
    return open(filepath, 'r', encoding='utf-8', newline='')


def compute_file_hash(filepath: str, chunk_size: int = 1024 * 1024) -> str:
    """
    Compute the SHA-256 hex digest of a file.

    Args:
        filepath: Path to the file.
        chunk_size: Read size in bytes.

    Returns:
        str: Hex digest.
    """
    digest = hashlib.sha256()
    with open(filepath, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            digest.update(chunk)
    return digest.hexdigest()
