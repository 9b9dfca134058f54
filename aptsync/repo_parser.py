import gzip
import logging
from pathlib import Path
from typing import Iterable, TextIO

from .exceptions import CapabilityError
from .models import FileDescriptor, FileTable

logger = logging.getLogger(__name__)

# Release scanner states
HEADER = "header"
HASH_BLOCK = "hash_block"

def parse_size(value: str) -> int:
    """Base-10 size field; anything unparsable counts as 0."""
    try:
        return int(value)
    except ValueError:
        logger.debug(f"Invalid size field '{value}', using 0")
        return 0

def split_header(line: str) -> tuple[str, str] | None:
    """Splits an unindented 'Key: value' line. Returns None for anything else."""
    if not line or line[0] in " \t":
        return None
    key, sep, value = line.partition(":")
    if not sep:
        return None
    return key, value.strip()

def scan_release_line(state: str, line: str) -> tuple[str, tuple[str, str] | None, FileDescriptor | None]:
    """
    One step of the Release file scanner.
    Returns (next_state, header, descriptor): header is set for 'Key: value' lines
    read in HEADER state, descriptor for well-formed rows of the SHA256 block.
    An unindented line ends the hash block and is read as a header in the same step.
    """
    if state == HASH_BLOCK:
        if line[:1] in (" ", "\t"):
            parts = line.split()
            if len(parts) != 3:
                logger.debug(f"Skipping malformed SHA256 line in Release file: '{line}'")
                return HASH_BLOCK, None, None
            sha256, size_str, filename = parts
            return HASH_BLOCK, None, FileDescriptor(filename, parse_size(size_str), sha256)
        state = HEADER

    header = split_header(line)
    if header and header[0] == "SHA256":
        return HASH_BLOCK, header, None
    return state, header, None

def _check_supported(kind: str, offered: list[str], required: Iterable[str]) -> None:
    for wanted in required:
        if wanted not in offered:
            raise CapabilityError(f"Repository doesn't support {kind} {wanted}")

def parse_release_file(lines: Iterable[str], archs: Iterable[str] = (), components: Iterable[str] = ()) -> FileTable:
    """
    Parses a distribution Release file into a table of the files it lists in its SHA256 block.
    Raises CapabilityError if a required architecture or component is missing from
    the Architectures/Components fields. Without those fields nothing is checked.
    """
    files: FileTable = {}
    state = HEADER
    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        state, header, descriptor = scan_release_line(state, line)
        if descriptor is not None:
            files[descriptor.path] = descriptor
            logger.debug(f" {descriptor.sha256} -> {descriptor.size} -> {descriptor.path}")
        elif header is not None:
            key, value = header
            if key == "Architectures":
                _check_supported("arch", value.split(), archs)
            elif key == "Components":
                _check_supported("component", value.split(), components)
            elif key == "SHA256":
                logger.debug("SHA256 Hashes:")
    return files

def parse_packages_file(lines: Iterable[str]) -> FileTable:
    """
    Parses a Packages index into Filename -> FileDescriptor.

    Stanzas are separated by blank lines; indented continuation lines are skipped.
    A stanza without a Filename field is stored under the empty key, so such
    records overwrite one another. Callers should ignore that key.
    """
    files: FileTable = {}
    filename, size, sha256 = "", 0, ""
    pending = False

    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            if not filename:
                logger.debug("Package record without Filename, stored under empty key")
            files[filename] = FileDescriptor(filename, size, sha256)
            filename, size, sha256 = "", 0, ""
            pending = False
            continue

        if line[0] in " \t": # Description continuation lines
            continue

        header = split_header(line)
        if header is None:
            continue
        key, value = header
        pending = True
        if key == "Filename":
            filename = value
        elif key == "Size":
            size = parse_size(value)
        elif key == "SHA256":
            sha256 = value

    # Last stanza when the file does not end with a blank line. Stanzas are
    # otherwise committed only on a blank line.
    if pending:
        files[filename] = FileDescriptor(filename, size, sha256)
    return files

def open_index(path: Path) -> TextIO:
    """Opens a plain or gzip-compressed index as text, chosen by suffix."""
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8", errors="replace")
    return open(path, "r", encoding="utf-8", errors="replace")
