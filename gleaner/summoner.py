"""Running a whole harvest: API sources, sitemap sources, and the run report."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import yaml

from gleaner.acquire import res_retrieve
from gleaner.api import retrieve_api_data
from gleaner.resources import resource_urls
from gleaner.settings import ConfigError, GleanerConfig
from gleaner.stats import Counter, RunStats
from gleaner.store import DirectoryStore, ObjectStore

log = logging.getLogger(__name__)

DEFAULT_LOG_DIR = "logs"
INTERRUPTED = "User Interrupt or Fatal Error"
COMPLETE = "Complete"


def run_stats_to_file(run_stats: RunStats, log_dir: str | Path = DEFAULT_LOG_DIR) -> Path:
    """Print the run report and append it to a time-stamped file in ``log_dir``."""
    print(run_stats.output(), end="")
    return run_stats.output_to_file(log_dir)


def _log_errors(errors: list[Exception], what: str) -> None:
    for error in errors:
        log.error("Error getting urls that %s: %s", what, error)


def _report_headless(headless_urls: dict[str, list[str]], run_stats: RunStats) -> None:
    for source_name, urls in headless_urls.items():
        stats = run_stats.add(source_name)
        stats.set(Counter.COUNT, len(urls))
        stats.set(Counter.HEADLESS_ERROR, len(urls))
        log.warning(
            "Headless rendering is not available; %d URLs of %s were not harvested",
            len(urls),
            source_name,
        )


def summon_sitemaps(
    config: GleanerConfig, store: ObjectStore, log_dir: str | Path = DEFAULT_LOG_DIR
) -> RunStats:
    """Harvest every active source into ``store`` and write the run report to ``log_dir``.

    Failures of single sources are logged and do not stop the run. If the run is
    interrupted the report is still written, with the stop reason recorded, and
    the interruption is re-raised.
    """
    started = time.monotonic()
    log.info("Summoner start time: %s", datetime.now())
    run_stats = RunStats()

    try:
        if config.api_sources():
            retrieve_api_data(config, store, run_stats)
        else:
            log.warning("no API sources found; this is ok if you're not using API sources")

        domain_urls, errors = resource_urls(config, False)
        _log_errors(errors, "do not require headless processing")
        if domain_urls:
            res_retrieve(config, store, domain_urls, run_stats)

        headless_urls, errors = resource_urls(config, True)
        _log_errors(errors, "require headless processing")
        if headless_urls:
            _report_headless(headless_urls, run_stats)
    except KeyboardInterrupt:
        run_stats.stop_reason = INTERRUPTED
        run_stats.output_to_file(log_dir)
        raise

    log.info("Summoner run time: %.2f minutes", (time.monotonic() - started) / 60)
    run_stats.stop_reason = COMPLETE
    run_stats.output_to_file(log_dir)
    return run_stats


def _load_config(path: str) -> GleanerConfig:
    with open(path, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        data = {}
    return GleanerConfig.from_dict(data)


def _interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point: harvest the sources of a configuration file."""
    parser = argparse.ArgumentParser(
        prog="gleaner", description="Harvest JSON-LD from the sources of a configuration file."
    )
    parser.add_argument("--cfg", required=True, help="path to the YAML configuration file")
    parser.add_argument(
        "--store", default="gleaner-store", help="directory that holds the object store buckets"
    )
    parser.add_argument("--log-dir", default=DEFAULT_LOG_DIR, help="directory for run reports")
    parser.add_argument("--rude", action="store_true", help="ignore robots.txt")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    try:
        config = _load_config(args.cfg)
    except (OSError, yaml.YAMLError, ConfigError) as exc:
        print(f"error reading configuration {args.cfg}: {exc}", file=sys.stderr)
        return 1
    if args.rude:
        config.rude = True

    try:
        signal.signal(signal.SIGTERM, _interrupt)
    except ValueError:
        pass

    try:
        summon_sitemaps(config, DirectoryStore(args.store), args.log_dir)
    except KeyboardInterrupt:
        return 1
    return 0