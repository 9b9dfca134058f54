import pytest
from pathlib import Path
from aptsync.config import RepoConfig, load_config, parse_config, MAX_WORKERS
from aptsync.exceptions import ConfigError

SAMPLE_CONFIG = """
skel = "/srv/mirror/skel"
dest = "/srv/mirror/dest"
download_workers = 4

[[repo]]
url = "archive.ubuntu.com/ubuntu/"
dist = "jammy"
components = ["main", "universe"]
archs = ["amd64", "arm64"]
disable_gpg = true

[[repo]]
url = "https://deb.debian.org/debian"
dist = "bookworm"
components = ["main"]
archs = ["amd64"]
disable = true
"""

@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(SAMPLE_CONFIG)
    return path

# --- Tests for RepoConfig normalisation ---

def test_repo_config_defaults():
    repo = RepoConfig(url="archive.ubuntu.com/ubuntu", dist="jammy")
    assert repo.proto == "http"
    assert repo.archs == []
    assert repo.components == []
    assert repo.disable_gpg is False
    assert repo.disable is False

def test_repo_config_strips_trailing_slash():
    assert RepoConfig(url="example.com/debian///", dist="x").url == "example.com/debian"

def test_repo_config_scheme_from_url():
    repo = RepoConfig(url="https://deb.debian.org/debian/", dist="bookworm")
    assert repo.proto == "https"
    assert repo.url == "deb.debian.org/debian"

def test_repo_config_explicit_proto_wins():
    repo = RepoConfig(url="https://deb.debian.org/debian", dist="bookworm", proto="http")
    assert repo.proto == "http"
    assert repo.url == "deb.debian.org/debian"

# --- Tests for load_config ---

def test_load_config(config_file):
    conf = load_config(config_file)

    assert conf.skel == Path("/srv/mirror/skel")
    assert conf.dest == Path("/srv/mirror/dest")
    assert conf.download_workers == 4
    assert conf.debug is False
    assert len(conf.repos) == 2

    ubuntu, debian = conf.repos
    assert ubuntu.url == "archive.ubuntu.com/ubuntu"
    assert ubuntu.proto == "http"
    assert ubuntu.components == ["main", "universe"]
    assert ubuntu.archs == ["amd64", "arm64"]
    assert ubuntu.disable_gpg is True
    assert debian.proto == "https"
    assert debian.disable is True

def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Cannot read"):
        load_config(tmp_path / "nope.toml")

def test_load_config_invalid_toml(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("skel = [unterminated")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(path)

# --- Tests for parse_config validation ---

def test_parse_config_defaults():
    conf = parse_config({"skel": "/tmp/skel"})
    assert conf.download_workers == MAX_WORKERS
    assert conf.dest is None
    assert conf.repos == []

def test_parse_config_missing_skel():
    with pytest.raises(ConfigError, match="skel"):
        parse_config({"download_workers": 2})

@pytest.mark.parametrize("workers", [0, -3])
def test_parse_config_non_positive_workers(workers):
    with pytest.raises(ConfigError, match="positive"):
        parse_config({"skel": "/tmp", "download_workers": workers})

def test_parse_config_bool_workers_rejected():
    with pytest.raises(ConfigError):
        parse_config({"skel": "/tmp", "download_workers": True})

def test_parse_config_repo_missing_dist():
    with pytest.raises(ConfigError, match="repo entry #0.*dist"):
        parse_config({"skel": "/tmp", "repo": [{"url": "example.com"}]})

def test_parse_config_repo_archs_wrong_type():
    with pytest.raises(ConfigError, match="archs"):
        parse_config({"skel": "/tmp", "repo": [{"url": "example.com", "dist": "x", "archs": "amd64"}]})

def test_parse_config_repo_archs_not_strings():
    with pytest.raises(ConfigError, match="list of strings"):
        parse_config({"skel": "/tmp", "repo": [{"url": "example.com", "dist": "x", "archs": [1, 2]}]})
