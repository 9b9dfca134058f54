import pytest
from pathlib import Path
from aptsync.utils import ensure_dir, ensure_parent_dir, is_safe_path, format_file_size

def test_ensure_dir_creates_nested(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    ensure_dir(target)
    assert target.is_dir()

def test_ensure_dir_existing(tmp_path):
    ensure_dir(tmp_path)
    assert tmp_path.is_dir()

def test_ensure_parent_dir(tmp_path):
    target = tmp_path / "dists" / "jammy" / "Release"
    ensure_parent_dir(target)
    assert target.parent.is_dir()
    assert not target.exists()

@pytest.mark.parametrize("relative, expected", [
    ("pool/main/a/a.deb", True),
    ("pool/../pool/a.deb", True),
    ("../outside.deb", False),
    ("pool/../../outside.deb", False),
])
def test_is_safe_path(tmp_path, relative, expected):
    root = tmp_path / "mirror"
    assert is_safe_path(root, root / relative) is expected

def test_is_safe_path_absolute_escape(tmp_path):
    root = tmp_path / "mirror"
    assert is_safe_path(root, Path("/etc/passwd")) is False

@pytest.mark.parametrize("size, expected", [
    (0, "0.00 bytes"),
    (1023, "1023.00 bytes"),
    (1024, "1.00 KiB"),
    (1536, "1.50 KiB"),
    (1024 * 1024, "1.00 MiB"),
    (5 * 1024 * 1024 * 1024, "5.00 GiB"),
])
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected
