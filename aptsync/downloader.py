import logging
import queue
import threading
from pathlib import Path
from typing import Callable, Iterable

import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm

from .config import CHUNK_SIZE, CONNECT_TIMEOUT, READ_TIMEOUT, IDLE_CONNECTIONS, USER_AGENT
from .exceptions import RemoteFetchError
from .models import DownloadJob, PoolStats
from .utils import ensure_parent_dir, is_safe_path
from .verify import verify_sha256_file

logger = logging.getLogger(__name__)

def make_session(workers: int = 1) -> requests.Session:
    """Session shared by all workers. Retries are disabled: a failed request is reported, not repeated."""
    session = requests.Session()
    pool_size = max(IDLE_CONNECTIONS, workers)
    adapter = HTTPAdapter(pool_connections=IDLE_CONNECTIONS, pool_maxsize=pool_size, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({'User-Agent': USER_AGENT})
    return session

def build_remote_url(scheme: str, remote_path: str) -> str:
    """Prefixes 'scheme://' to a scheme-less path; anything not http(s) falls back to http."""
    remote = f"{scheme or 'http'}://{remote_path}"
    if not remote.startswith(("http://", "https://")):
        remote = "http://" + remote
    return remote

def fetch_remote_file(url: str, local_path: Path, session: requests.Session,
                      progress: Callable[[int], None] | None = None,
                      timeout: tuple = (CONNECT_TIMEOUT, READ_TIMEOUT)) -> int:
    """
    Downloads url into local_path (created or truncated) and returns the number of bytes written.
    Raises RemoteFetchError for HTTP status >= 400; transport errors propagate as
    requests exceptions. Nothing is retried.
    """
    ensure_parent_dir(local_path)
    logger.debug(f"Downloading {url}")

    with session.get(url, stream=True, timeout=timeout, allow_redirects=True) as response:
        if response.status_code >= 400:
            raise RemoteFetchError(url, f"{response.status_code} {response.reason}")

        written = 0
        with open(local_path, 'wb') as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                f.write(chunk)
                written += len(chunk)
                if progress:
                    progress(len(chunk))

    logger.debug(f"Downloaded {written} bytes to {local_path}")
    return written

def process_job(job: DownloadJob, session: requests.Session, stats: PoolStats,
                progress: Callable[[int], None] | None = None) -> None:
    """Fetches and checks one job. Every failure is logged, none is raised."""
    desc = job.descriptor
    if not is_safe_path(job.root / job.base, job.local_path):
        logger.error(f"Refusing to download outside the repository root: {desc.path}")
        stats.failed += 1
        return

    url = build_remote_url(job.scheme, job.remote_path)
    try:
        size = fetch_remote_file(url, job.local_path, session, progress)
    except Exception as e:
        logger.error(f"Failed to download {url}: {e}")
        stats.failed += 1
        return

    stats.fetched += 1
    stats.bytes_written += size
    if size != desc.size:
        logger.warning(f"Incorrect size: {desc.path} ({size} != {desc.size})")
        stats.size_mismatches += 1
    try:
        verified = verify_sha256_file(job.local_path, desc.sha256)
    except Exception as e:
        logger.error(f"Error verifying {job.local_path}: {e}")
        verified = False
    if not verified:
        logger.warning(f"Incorrect hash: {desc.path}")
        stats.hash_mismatches += 1

def download_worker(jobs: queue.Queue, session: requests.Session, stats: PoolStats,
                    progress: Callable[[int], None] | None = None) -> None:
    """Drains the queue until the None sentinel arrives."""
    while True:
        job = jobs.get()
        try:
            if job is None:
                return
            stats.jobs += 1
            process_job(job, session, stats, progress)
        finally:
            jobs.task_done()

def run_download_pool(jobs: Iterable[DownloadJob], workers: int, session: requests.Session,
                      total_bytes: int | None = None, show_progress: bool = True) -> PoolStats:
    """
    Runs exactly `workers` threads over a queue holding at most 2 * workers jobs.
    Returns once every job has been handled. Per-job failures are logged and
    counted in the returned stats; this function does not raise for them.
    """
    if workers < 1:
        raise ValueError(f"workers must be positive, got {workers}")

    job_queue: queue.Queue = queue.Queue(maxsize=workers * 2)
    worker_stats = [PoolStats() for _ in range(workers)]

    with tqdm(total=total_bytes, unit='B', unit_scale=True, desc="Downloading",
              smoothing=0.1, disable=not show_progress) as pbar:
        lock = threading.Lock()

        def progress(n: int) -> None:
            with lock:
                pbar.update(n)

        threads = [
            threading.Thread(target=download_worker, name=f"Download-{i}",
                             args=(job_queue, session, worker_stats[i], progress), daemon=True)
            for i in range(workers)
        ]
        for thread in threads:
            thread.start()

        try:
            for job in jobs:
                job_queue.put(job) # Blocks while the queue is full
        finally:
            for _ in threads:
                job_queue.put(None)
            for thread in threads:
                thread.join()

    total = PoolStats()
    for s in worker_stats:
        total.jobs += s.jobs
        total.fetched += s.fetched
        total.failed += s.failed
        total.size_mismatches += s.size_mismatches
        total.hash_mismatches += s.hash_mismatches
        total.bytes_written += s.bytes_written
    return total
