"""Fetching pages listed in sitemaps and pulling the JSON-LD out of them."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlsplit

import requests
from bs4 import BeautifulSoup

from gleaner.jsonld import InvalidJsonLDError, add_to_json_list_if_valid
from gleaner.settings import (
    EARTHCUBE_AGENT,
    JSON_CONTENT_TYPE,
    ConfigError,
    GleanerConfig,
    RetrievalConfig,
    get_config,
)
from gleaner.stats import Counter, RepoStats, RunStats
from gleaner.store import ObjectStore, upload

log = logging.getLogger(__name__)

_TIMEOUT = 60
_JSON_TYPES = (JSON_CONTENT_TYPE, "application/json")


def _is_json_url(url: str) -> bool:
    path = urlsplit(url).path
    return path.endswith(".json") or path.endswith(".jsonld")


def _is_ld_script_type(value: str | None) -> bool:
    return bool(value) and value.startswith(JSON_CONTENT_TYPE)


def _add(jsonlds: list[str], text: str, url: str, what: str) -> list[str]:
    try:
        return add_to_json_list_if_valid(jsonlds, text)
    except InvalidJsonLDError as exc:
        log.error("Error processing %s from %s: %s", what, url, exc)
        return jsonlds


def find_json_in_response(
    url: str, content_type: str | None, body: bytes | str | None
) -> list[str]:
    """Return the valid JSON-LD documents found in a response.

    A response served as JSON (by content type or by a ``.json``/``.jsonld``
    path) is read whole; anything else is searched for
    ``<script type="application/ld+json">`` elements.
    """
    if body is None:
        raise ValueError("body not found on response")
    document = BeautifulSoup(body, "html.parser")
    jsonlds: list[str] = []

    header = content_type or ""
    if any(kind in header for kind in _JSON_TYPES) or _is_json_url(url):
        log.debug("%s as %s", url, header)
        return _add(jsonlds, document.get_text(), url, "json response")

    for script in document.find_all("script", attrs={"type": _is_ld_script_type}):
        jsonlds = _add(jsonlds, script.get_text(), url, "script tag")
    return jsonlds


def upload_with_logs(
    store: ObjectStore,
    config: GleanerConfig,
    bucket: str,
    source_name: str,
    urlloc: str,
    jsonlds: list[str],
    stats: RepoStats,
) -> None:
    """Upload each non-empty document, counting stored documents and store errors."""
    for jsonld in jsonlds:
        if not jsonld:
            log.info("Empty JSON-LD document found at %s. Continuing.", urlloc)
            continue
        try:
            sha = upload(store, config, bucket, source_name, urlloc, jsonld)
        except (OSError, ValueError) as exc:
            log.error("Error uploading jsonld to object store: %s %s", urlloc, exc)
            stats.inc(Counter.STORE_ERROR)
        else:
            log.debug("Successfully put %s in summoned bucket for %s", sha, urlloc)
            stats.inc(Counter.STORED)


def _fetch_one(
    config: GleanerConfig,
    store: ObjectStore,
    cfg: RetrievalConfig,
    url: str,
    source_name: str,
    stats: RepoStats,
    session: requests.Session,
) -> None:
    log.debug("Indexing %s", url)
    try:
        response = session.get(
            url,
            headers={"User-Agent": EARTHCUBE_AGENT, "Accept": cfg.accept_content},
            timeout=_TIMEOUT,
        )
    except requests.RequestException as exc:
        log.error("error on %s: %s", url, exc)
        return

    log.debug("Got status code %d when fetching URL: %s", response.status_code, url)
    try:
        jsonlds = find_json_in_response(url, response.headers.get("Content-Type"), response.content)
    except ValueError as exc:
        log.error("error on %s: %s", url, exc)
        stats.inc(Counter.ISSUES)
        return

    if not jsonlds:
        log.info("No JSON-LD found by direct access at %s", url)
    else:
        log.debug("Direct access worked for %s", url)
        stats.inc(Counter.SUMMONED)

    upload_with_logs(store, config, cfg.bucket_name, source_name, url, jsonlds, stats)
    time.sleep(cfg.delay / 1000)


def get_domain(
    config: GleanerConfig,
    store: ObjectStore,
    urls: list[str],
    source_name: str,
    stats: RepoStats,
) -> None:
    """Fetch every URL of one source, at most ``thread_count`` at a time, and store what is found."""
    try:
        cfg = get_config(config, source_name)
    except ConfigError as exc:
        log.error("Error reading config file %s", exc)
        return

    with requests.Session() as session, ThreadPoolExecutor(max_workers=cfg.thread_count) as pool:
        futures = [
            pool.submit(_fetch_one, config, store, cfg, url, source_name, stats, session)
            for url in urls
        ]
        for future in futures:
            future.result()
    log.info("%s", stats.output())


def res_retrieve(
    config: GleanerConfig,
    store: ObjectStore,
    domain_to_urls: dict[str, list[str]],
    run_stats: RunStats,
) -> None:
    """Harvest every source concurrently, one worker thread per source."""
    threads = []
    for domain, urls in domain_to_urls.items():
        stats = run_stats.add(domain)
        stats.set(Counter.COUNT, len(urls))
        stats.set(Counter.HTTP_ERROR, 0)
        stats.set(Counter.ISSUES, 0)
        stats.set(Counter.SUMMONED, 0)
        log.info("Queuing %d URLs for domain: '%s'", len(urls), domain)
        thread = threading.Thread(
            target=get_domain, args=(config, store, urls, domain, stats), name=f"summon-{domain}"
        )
        thread.start()
        threads.append(thread)

    for thread in threads:
        thread.join()
    log.info("Completed acquire for %d domains", len(domain_to_urls))