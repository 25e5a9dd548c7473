"""Harvesting JSON-LD from paged API endpoints."""

from __future__ import annotations

import logging
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor

import requests

from gleaner.acquire import find_json_in_response, upload_with_logs
from gleaner.settings import (
    EARTHCUBE_AGENT,
    ConfigError,
    GleanerConfig,
    RetrievalConfig,
    Source,
    get_config,
)
from gleaner.stats import Counter, RepoStats, RunStats
from gleaner.store import ObjectStore

log = logging.getLogger(__name__)

_TIMEOUT = 60
_PAGE_VERB = re.compile(r"%[dv]")


def _page_url(template: str, page: int) -> str:
    return _PAGE_VERB.sub(str(page), template, count=1)


def _process_page(
    config: GleanerConfig,
    store: ObjectStore,
    cfg: RetrievalConfig,
    source: Source,
    url: str,
    response: requests.Response,
    stats: RepoStats,
) -> None:
    try:
        jsonlds = find_json_in_response(url, response.headers.get("Content-Type"), response.content)
    except ValueError as exc:
        log.error("error on %s: %s", url, exc)
        stats.inc(Counter.ISSUES)
        return

    if not jsonlds:
        log.info("No JSON-LD found at %s", url)
    else:
        log.debug("Indexed %s", url)
        stats.inc(Counter.SUMMONED)

    upload_with_logs(store, config, cfg.bucket_name, source.name, url, jsonlds, stats)
    time.sleep(cfg.delay / 1000)


def get_api_source(
    config: GleanerConfig, store: ObjectStore, source: Source, stats: RepoStats
) -> None:
    """Walk the pages of an API source until a request fails or the page limit is reached.

    The source URL holds a ``%d`` that is replaced by the page number, starting at 0.
    """
    try:
        cfg = get_config(config, source.name)
    except ConfigError as exc:
        log.error("Error reading config file %s", exc)
        return

    headers = {"User-Agent": EARTHCUBE_AGENT, "Accept": cfg.accept_content}
    pending: list[Future[None]] = []
    with requests.Session() as session, ThreadPoolExecutor(max_workers=cfg.thread_count) as pool:
        page = 0
        while source.api_page_limit == 0 or page < source.api_page_limit:
            url = _page_url(source.url, page)
            log.debug("Indexing %s", url)
            try:
                response = session.get(url, headers=headers, timeout=_TIMEOUT)
            except requests.RequestException as exc:
                log.error("#%d error on %s: %s", page, url, exc)
                break
            if response.status_code != 200:
                log.error("#%d response status %d from %s", page, response.status_code, url)
                break
            pending.append(
                pool.submit(_process_page, config, store, cfg, source, url, response, stats)
            )
            page += 1
        for future in pending:
            future.result()
    log.info("%s", stats.output())


def retrieve_api_data(config: GleanerConfig, store: ObjectStore, run_stats: RunStats) -> None:
    """Harvest every active API source concurrently."""
    threads = []
    for source in config.api_sources():
        stats = run_stats.add(source.name)
        stats.set(Counter.HTTP_ERROR, 0)
        stats.set(Counter.ISSUES, 0)
        stats.set(Counter.SUMMONED, 0)
        log.info("Queuing API calls for %s", source.name)
        thread = threading.Thread(
            target=get_api_source, args=(config, store, source, stats), name=f"api-{source.name}"
        )
        thread.start()
        threads.append(thread)

    for thread in threads:
        thread.join()