import logging
import time
import zlib
from pathlib import Path

import requests

from .config import RepoConfig
from .downloader import build_remote_url, fetch_remote_file, run_download_pool
from .exceptions import IndexNotFoundError, RemoteFetchError
from .models import DownloadJob, FileDescriptor, FileTable, PoolStats, merge_file_tables
from .repo_parser import open_index, parse_packages_file, parse_release_file
from .utils import format_file_size
from .verify import verify_gzip_file, verify_sha256_file

DIST_INDEX_FILES = ["InRelease", "Release", "Release.gpg"]
PACKAGES_FILE = "Packages"
COMPONENT_INDEX_VARIANTS = [PACKAGES_FILE, PACKAGES_FILE + ".gz", PACKAGES_FILE + ".xz", "Release"]


class Repository:
    """
    Mirrors one APT repository into `download_root`.

    Local files mirror the remote layout: <root>/<url>/dists/<dist>/... for metadata
    and <root>/<url>/<Filename> for packages.
    """

    def __init__(self, conf: RepoConfig, download_root: Path, session: requests.Session,
                 logger: logging.Logger | None = None, show_progress: bool = True):
        self.conf = conf
        self.download_root = Path(download_root)
        self.session = session
        self.logger = logger or logging.getLogger(__name__)
        self.show_progress = show_progress
        # Component dirs whose plain Packages fetch failed in this run
        self.unfetched_plain_indices: set[str] = set()

    @property
    def dist_path(self) -> str:
        return f"{self.conf.url}/dists/{self.conf.dist}"

    def local_path(self, remote_path: str) -> Path:
        return self.download_root / remote_path

    def fetch(self, remote_path: str) -> int:
        """Downloads <url-path> to the same relative path under the download root."""
        url = build_remote_url(self.conf.proto, remote_path)
        return fetch_remote_file(url, self.local_path(remote_path), self.session)

    def component_dirs(self) -> list[str]:
        return [f"{component}/binary-{arch}"
                for component in self.conf.components
                for arch in self.conf.archs]

    def sync(self, workers: int) -> PoolStats:
        """
        Runs the full sync. Any error before the package download stage is raised;
        failures inside the download stage are only logged.
        """
        self.logger.info(f"Downloading distribution index for {self.conf.url} {self.conf.dist}")
        self.download_dist_release()

        self.logger.info("Processing distribution index")
        dist_files = self.process_dist_release()

        self.logger.info("Downloading component files")
        self.download_component_files(dist_files)

        self.logger.info("Processing component files")
        archive_files = self.process_packages()

        total_size = sum(meta.size for meta in archive_files.values())
        self.logger.info(f"Total Packages to Download: {len(archive_files)} ({format_file_size(total_size)})")

        self.logger.info("Downloading packages")
        start = time.monotonic()
        stats = self.download_packages(archive_files, workers, total_size)
        self.logger.info(f"Download took {time.monotonic() - start:.1f}s: {stats.fetched} fetched, "
                         f"{stats.failed} failed, {stats.size_mismatches} size and "
                         f"{stats.hash_mismatches} hash mismatches, {format_file_size(stats.bytes_written)} written")
        return stats

    def download_dist_release(self) -> None:
        for name in DIST_INDEX_FILES:
            self.fetch(f"{self.dist_path}/{name}")

        if not self.conf.disable_gpg:
            self.verify_release_signature()

    def verify_release_signature(self) -> None:
        # Signature checking is not implemented; this hook only records that it was skipped.
        self.logger.debug(f"Skipping signature verification for {self.dist_path}")

    def process_dist_release(self) -> FileTable:
        path = self.local_path(f"{self.dist_path}/Release")
        with open(path, "r", encoding="utf-8", errors="replace") as release:
            return parse_release_file(release, self.conf.archs, self.conf.components)

    def select_component_files(self, dist_files: FileTable) -> FileTable:
        """Picks the Packages variants and Release file of every component/arch listed in the index."""
        selected: FileTable = {}
        for component_dir in self.component_dirs():
            for variant in COMPONENT_INDEX_VARIANTS:
                name = f"{component_dir}/{variant}"
                if name in dist_files:
                    selected[name] = dist_files[name]
        return selected

    def download_component_files(self, dist_files: FileTable) -> None:
        """
        Fetches component indices and checks them against the distribution index.
        Compressed variants may fail to download. A failed plain Packages file is
        checked through its already downloaded .gz sibling instead. Other failures are fatal.
        """
        check_compressed: FileTable = {}
        for name, meta in self.select_component_files(dist_files).items():
            remote_path = f"{self.dist_path}/{name}"
            try:
                size = self.fetch(remote_path)
            except (RemoteFetchError, requests.RequestException) as e:
                if name.endswith(PACKAGES_FILE):
                    self.unfetched_plain_indices.add(name.rsplit("/", 1)[0])
                    check_compressed[remote_path] = meta
                    continue
                if name.endswith((".gz", ".xz")):
                    self.logger.warning(f"Could not fetch compressed index {name}: {e}")
                    continue
                raise

            if size != meta.size:
                self.logger.warning(f"Package file not correct size: {name} ({meta.size} != {size})")
            if not verify_sha256_file(self.local_path(remote_path), meta.sha256):
                self.logger.warning(f"SHA256 mismatch {name}")

        for remote_path, meta in check_compressed.items():
            self.logger.info(f"Processing special file {remote_path}")
            self.check_compressed_file(remote_path, meta)

    def check_compressed_file(self, remote_path: str, meta: FileDescriptor) -> None:
        """Verifies the uncompressed hash of <remote_path>.gz already on disk."""
        gz_path = self.local_path(remote_path + ".gz")
        if not gz_path.exists():
            raise IndexNotFoundError(f"Failed to check {remote_path}: {gz_path.name} not found")
        if not verify_gzip_file(gz_path, meta.sha256):
            self.logger.warning(f"SHA256 mismatch {remote_path}")

    def find_package_index(self, component_dir: str) -> Path:
        """Plain Packages if present and not stale from an earlier run, else Packages.gz."""
        plain = self.local_path(f"{self.dist_path}/{component_dir}/{PACKAGES_FILE}")
        if plain.exists() and component_dir not in self.unfetched_plain_indices:
            return plain
        gz = plain.with_name(PACKAGES_FILE + ".gz")
        if gz.exists():
            return gz
        raise IndexNotFoundError(f"Cannot find Packages file for {component_dir}")

    def process_packages(self) -> FileTable:
        tables = []
        for component_dir in self.component_dirs():
            path = self.find_package_index(component_dir)
            self.logger.debug(f"Parsing {path}")
            try:
                with open_index(path) as lines:
                    tables.append(parse_packages_file(lines))
            except (OSError, EOFError, zlib.error) as e:
                raise IndexNotFoundError(f"Cannot read {path}: {e}") from e

        files = merge_file_tables(*tables)
        if "" in files:
            self.logger.warning("Ignoring package records without a Filename field")
            del files[""]
        return files

    def make_jobs(self, files: FileTable) -> list[DownloadJob]:
        return [DownloadJob(meta, self.download_root, self.conf.url, self.conf.proto)
                for meta in files.values()]

    def download_packages(self, files: FileTable, workers: int, total_size: int | None = None) -> PoolStats:
        return run_download_pool(self.make_jobs(files), workers, self.session,
                                 total_bytes=total_size, show_progress=self.show_progress)
