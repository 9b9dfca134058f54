import argparse
import logging
import sys
import traceback

import requests

from . import config
from .config import load_config
from .downloader import make_session
from .exceptions import SyncError
from .repo import Repository
from .utils import ensure_dir

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(threadName)s] %(message)s')
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled.")
    else:
        logging.getLogger().setLevel(logging.INFO)
        # Silence verbose logs from underlying libraries in info mode
        logging.getLogger("requests").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def run_sync_process(conf: config.MirrorConfig, workers: int, debug: bool) -> int:
    """Syncs every enabled repository in order. Returns the process exit status."""
    ensure_dir(conf.skel)
    if conf.dest:
        ensure_dir(conf.dest)

    logger.info(f"Download root: {conf.skel}")
    logger.info(f"Download workers: {workers}")
    logger.info("Downloading repos")

    session = make_session(workers)
    try:
        for repo_conf in conf.repos:
            if repo_conf.disable:
                logger.info(f"Skipping {repo_conf.url}, repo disabled")
                continue
            repo = Repository(repo_conf, conf.skel, session,
                              logger=logging.getLogger(f"{__name__}.{repo_conf.dist}"),
                              show_progress=not debug)
            repo.sync(workers)
    finally:
        session.close()

    logger.info("Finished downloading")
    return 0


def main(argv=None) -> int:
    """Parses arguments, loads the configuration and runs the sync."""
    parser = argparse.ArgumentParser(
        description="Mirror APT repositories described in a TOML configuration file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("-c", "--config", default=config.DEFAULT_CONFIG_FILE, help="Configuration file.")
    parser.add_argument("--workers", type=int, default=None, help="Override download_workers from the config file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging (very verbose).")
    args = parser.parse_args(argv)

    configure_logging(args.debug)

    try:
        conf = load_config(args.config)
        debug = args.debug or conf.debug
        if debug and not args.debug:
            configure_logging(True)
        workers = args.workers if args.workers is not None else conf.download_workers
        if workers < 1:
            logger.error(f"Worker count must be positive, got {workers}")
            return 1
        return run_sync_process(conf, workers, debug)
    except KeyboardInterrupt:
        logger.warning("Process interrupted by user.")
        return 1
    except (SyncError, requests.RequestException, OSError) as e:
        logger.error(f"Sync failed: {e}")
        logger.debug(traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
