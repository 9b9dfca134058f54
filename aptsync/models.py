from dataclasses import dataclass
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class FileDescriptor:
    """A file listed by a repository index: relative path, expected size and SHA256."""
    path: str
    size: int = 0
    sha256: str = ""

# Relative path -> descriptor. Later entries overwrite earlier ones with the same path.
FileTable = dict[str, FileDescriptor]

def merge_file_tables(*tables: FileTable) -> FileTable:
    """Merges tables in order; on duplicate paths the last one seen wins."""
    merged: FileTable = {}
    for table in tables:
        merged.update(table)
    return merged

@dataclass(frozen=True)
class DownloadJob:
    """A FileDescriptor bound to a remote base and a local download root."""
    descriptor: FileDescriptor
    root: Path
    base: str # repository URL without scheme, e.g. "archive.ubuntu.com/ubuntu"
    scheme: str = "http"

    @property
    def remote_path(self) -> str:
        return f"{self.base}/{self.descriptor.path}"

    @property
    def local_path(self) -> Path:
        return self.root / self.base / self.descriptor.path

@dataclass
class PoolStats:
    """Summary of a download pool run."""
    jobs: int = 0
    fetched: int = 0
    failed: int = 0
    size_mismatches: int = 0
    hash_mismatches: int = 0
    bytes_written: int = 0
