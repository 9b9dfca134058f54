import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_PROTO = "http"
MAX_WORKERS = 8 # Default concurrent downloads
CHUNK_SIZE = 1024 * 1024 # 1 MB chunks for download and hashing
CONNECT_TIMEOUT = 15 # seconds
READ_TIMEOUT = 60 # seconds
IDLE_CONNECTIONS = 10 # Pooled keep-alive connections per host
USER_AGENT = "Python-APT-Repo-Sync/1.0"

@dataclass
class RepoConfig:
    """One repository to mirror."""
    url: str
    dist: str
    archs: list[str] = field(default_factory=list)
    components: list[str] = field(default_factory=list)
    proto: str = ""
    disable_gpg: bool = False
    gpg_key_file: str = ""
    disable: bool = False

    def __post_init__(self):
        # A scheme embedded in the URL is only used when proto is not given
        if "://" in self.url:
            scheme, _, rest = self.url.partition("://")
            if not self.proto:
                self.proto = scheme
            self.url = rest
        if not self.proto:
            self.proto = DEFAULT_PROTO
        self.url = self.url.rstrip("/")

@dataclass
class MirrorConfig:
    """Top level settings shared by every repository in a run."""
    skel: Path
    dest: Path | None = None
    download_workers: int = MAX_WORKERS
    debug: bool = False
    repos: list[RepoConfig] = field(default_factory=list)

def _expect(table: dict, key: str, kind, default=None, required: bool = False):
    if key not in table:
        if required:
            raise ConfigError(f"Missing required setting '{key}'")
        return default
    value = table[key]
    if kind is int and isinstance(value, bool):
        raise ConfigError(f"Setting '{key}' must be int, got bool")
    if not isinstance(value, kind):
        raise ConfigError(f"Setting '{key}' must be {kind.__name__}, got {type(value).__name__}")
    return value

def _string_list(table: dict, key: str) -> list[str]:
    values = _expect(table, key, list, default=[])
    if not all(isinstance(v, str) for v in values):
        raise ConfigError(f"Setting '{key}' must be a list of strings")
    return list(values)

def parse_repo(table: dict) -> RepoConfig:
    return RepoConfig(
        url=_expect(table, "url", str, required=True),
        dist=_expect(table, "dist", str, required=True),
        archs=_string_list(table, "archs"),
        components=_string_list(table, "components"),
        proto=_expect(table, "proto", str, default=""),
        disable_gpg=_expect(table, "disable_gpg", bool, default=False),
        gpg_key_file=_expect(table, "gpg_key_file", str, default=""),
        disable=_expect(table, "disable", bool, default=False),
    )

def parse_config(data: dict) -> MirrorConfig:
    """Builds a MirrorConfig from an already decoded TOML document."""
    skel = _expect(data, "skel", str, required=True)
    dest = _expect(data, "dest", str, default=None)
    workers = _expect(data, "download_workers", int, default=MAX_WORKERS)
    if workers < 1:
        raise ConfigError(f"download_workers must be positive, got {workers}")

    repo_tables = _expect(data, "repo", list, default=[])
    repos = []
    for index, table in enumerate(repo_tables):
        if not isinstance(table, dict):
            raise ConfigError(f"repo entry #{index} is not a table")
        try:
            repos.append(parse_repo(table))
        except ConfigError as e:
            raise ConfigError(f"repo entry #{index}: {e}") from e

    return MirrorConfig(
        skel=Path(skel),
        dest=Path(dest) if dest else None,
        download_workers=workers,
        debug=_expect(data, "debug", bool, default=False),
        repos=repos,
    )

def load_config(path: Path | str) -> MirrorConfig:
    """Reads and validates the TOML configuration file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    config = parse_config(data)
    logger.debug(f"Loaded {len(config.repos)} repositories from {path}")
    return config
