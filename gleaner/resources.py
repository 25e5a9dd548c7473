"""Gathering the resource URLs to harvest from sitemaps and robots.txt files."""

from __future__ import annotations

import logging

import requests

from gleaner.robots import Robots, get_robots_for_domain, get_robots_txt, override_crawl_delay
from gleaner.settings import GleanerConfig
from gleaner.sitemaps import SitemapUrl, get_sitemaps_from_index, parse_sitemap

log = logging.getLogger(__name__)

_FETCH_ERRORS = (requests.RequestException, ValueError)


def get_sitemap_url_list(sitemap_url: str, robots: Robots | None = None) -> list[str]:
    """Return the page URLs of a sitemap or sitemap index that robots.txt allows."""
    index = get_sitemaps_from_index(sitemap_url)
    entries: list[SitemapUrl] = []
    if not index:
        entries = parse_sitemap(sitemap_url)
        log.info("%s was parsed as a sitemap", sitemap_url)
    else:
        log.info("Walking the sitemap index for sitemaps")
        for location in index:
            entries.extend(parse_sitemap(location))

    urls = []
    for entry in entries:
        if not entry.loc:
            continue
        loc = entry.loc.strip().replace(" ", "").replace("\n", "")
        if robots is not None and not robots.allows(loc):
            log.error("Declining to index %s because it is disallowed by robots.txt", loc)
            continue
        urls.append(loc)
    return urls


def _collect(
    source_name: str,
    sitemap_urls: list[str],
    robots: Robots | None,
    errors: list[Exception],
) -> list[str]:
    urls: list[str] = []
    for sitemap_url in sitemap_urls:
        try:
            urls.extend(get_sitemap_url_list(sitemap_url, robots))
        except _FETCH_ERRORS as exc:
            log.error("Error getting sitemap urls for: %s %s", source_name, exc)
            errors.append(exc)
    return urls


def resource_urls(
    config: GleanerConfig, headless: bool
) -> tuple[dict[str, list[str]], list[Exception]]:
    """Map each active sitemap or robots source to the URLs it lists.

    Sources that fail still appear (with the URLs that could be read); the
    failures are returned alongside so one broken source does not stop the rest.
    """
    domain_urls: dict[str, list[str]] = {}
    errors: list[Exception] = []
    mode = config.summoner.mode
    delay = config.summoner.delay

    for source in config.filter_sources(headless, "sitemap"):
        robots: Robots | None = None
        if config.rude:
            log.info("Rude indexing mode enabled; ignoring robots.txt.")
        else:
            try:
                robots = get_robots_for_domain(source.domain)
            except requests.RequestException:
                log.info("Error getting robots.txt for %s, continuing without it.", source.name)
        urls = _collect(source.name, [source.url], robots, errors)
        if mode == "diff":
            log.error("Mode diff is not currently supported")
        override_crawl_delay(config, source.name, delay, robots)
        domain_urls[source.name] = urls
        log.debug("%s sitemap size is: %d mode: %s", source.name, len(urls), mode)

    for source in config.filter_sources(headless, "robots"):
        robots = None
        sitemap_urls: list[str] = []
        try:
            robots = get_robots_txt(source.url)
            sitemap_urls = robots.sitemaps
        except requests.RequestException as exc:
            log.error("Error getting sitemap location from robots.txt for: %s %s", source.name, exc)
            errors.append(exc)
        urls = _collect(source.name, sitemap_urls, robots, errors)
        if mode == "diff":
            log.error("Mode diff is not currently supported")
        override_crawl_delay(config, source.name, delay, robots)
        domain_urls[source.name] = urls
        log.debug("%s sitemap size from robots.txt is: %d mode: %s", source.name, len(urls), mode)

    return domain_urls, errors