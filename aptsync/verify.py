import gzip
import hashlib
import logging
import zlib
from pathlib import Path
from typing import BinaryIO

from .config import CHUNK_SIZE

logger = logging.getLogger(__name__)

def calculate_sha256(reader: BinaryIO) -> str:
    """Reads the stream to exhaustion and returns its lowercase hex SHA256."""
    hasher = hashlib.sha256()
    while True:
        chunk = reader.read(CHUNK_SIZE)
        if not chunk:
            break
        hasher.update(chunk)
    return hasher.hexdigest()

def verify_sha256(reader: BinaryIO, expected_sha256: str) -> bool:
    """
    Checks a byte stream against an expected hex SHA256.
    Read errors (including corrupt gzip data) count as a mismatch, never raise.
    """
    try:
        actual = calculate_sha256(reader)
    except (OSError, EOFError, zlib.error) as e:
        logger.error(f"Error reading stream for SHA256: {e}")
        return False
    return actual == expected_sha256.strip().lower()

def verify_sha256_file(file_path: Path, expected_sha256: str) -> bool:
    """Verifies a file on disk against an expected hex SHA256."""
    try:
        with open(file_path, "rb") as f:
            return verify_sha256(f, expected_sha256)
    except OSError as e:
        logger.error(f"Cannot verify SHA256 of {file_path}: {e}")
        return False

def verify_gzip_file(file_path: Path, expected_sha256: str) -> bool:
    """Verifies the decompressed content of a gzip file against an expected hex SHA256."""
    try:
        with gzip.open(file_path, "rb") as gz:
            return verify_sha256(gz, expected_sha256)
    except OSError as e:
        logger.error(f"Cannot verify SHA256 of {file_path}: {e}")
        return False
