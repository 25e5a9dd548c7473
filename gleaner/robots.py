"""robots.txt fetching, rule matching and crawl-delay handling."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import requests

from gleaner.settings import EARTHCUBE_AGENT, GleanerConfig

log = logging.getLogger(__name__)

_TIMEOUT = 60


@dataclass(frozen=True)
class _Rule:
    allow: bool
    path: str
    pattern: re.Pattern[str] | None = None

    def matches(self, path: str) -> bool:
        if self.pattern is not None:
            return self.pattern.match(path) is not None
        return path.startswith(self.path)


def _make_rule(allow: bool, path: str) -> _Rule:
    if "*" not in path and not path.endswith("$"):
        return _Rule(allow, path)
    anchored = path.endswith("$")
    body = path[:-1] if anchored else path
    regex = ".*".join(re.escape(part) for part in body.split("*"))
    return _Rule(allow, path, re.compile(regex + ("$" if anchored else "")))


@dataclass
class _Group:
    rules: list[_Rule] = field(default_factory=list)
    crawl_delay: float = 0.0


def _parse(text: str) -> tuple[dict[str, _Group], list[str]]:
    groups: dict[str, _Group] = {}
    sitemaps: list[str] = []
    current: list[_Group] = []
    in_rules = False
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if ":" not in line:
            continue
        key, value = (part.strip() for part in line.split(":", 1))
        key = key.lower()
        if key == "sitemap":
            if value:
                sitemaps.append(value)
            continue
        if key in ("user-agent", "useragent"):
            if in_rules:
                current = []
                in_rules = False
            current.append(groups.setdefault(value.lower(), _Group()))
            continue
        if not current:
            continue
        in_rules = True
        if key in ("disallow", "allow"):
            if value:
                rule = _make_rule(key == "allow", value)
                for group in current:
                    group.rules.append(rule)
        elif key in ("crawl-delay", "crawldelay"):
            try:
                delay = float(value)
            except ValueError:
                continue
            for group in current:
                group.crawl_delay = delay
    return groups, sitemaps


@dataclass
class Robots:
    """The robots.txt rules that apply to one user agent."""

    agent: str
    rules: list[_Rule] = field(default_factory=list)
    crawl_delay: float = 0.0
    sitemaps: list[str] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, agent: str = EARTHCUBE_AGENT) -> Robots:
        """Parse robots.txt and keep the group that best matches ``agent``."""
        groups, sitemaps = _parse(text)
        wanted = agent.lower()
        chosen = groups.get("*")
        best_len = 1 if chosen is not None else 0
        for name, group in groups.items():
            if name != "*" and wanted.startswith(name) and len(name) > best_len:
                chosen, best_len = group, len(name)
        chosen = chosen or _Group()
        return cls(
            agent=agent,
            rules=list(chosen.rules),
            crawl_delay=chosen.crawl_delay,
            sitemaps=sitemaps,
        )

    def allows(self, url: str) -> bool:
        """Return whether the agent may fetch ``url`` (a full URL or a path)."""
        parts = urlsplit(url)
        path = parts.path or "/"
        if parts.query:
            path += "?" + parts.query
        best: _Rule | None = None
        for rule in self.rules:
            if rule.matches(path) and (best is None or len(rule.path) > len(best.path)):
                best = rule
        return True if best is None else best.allow


def get_robots_txt(url: str) -> Robots:
    """Fetch and parse the robots.txt at ``url``; raise on network errors or a 4xx/5xx status."""
    response = requests.get(
        url,
        headers={"User-Agent": EARTHCUBE_AGENT, "Accept": "text/plain, text/html"},
        timeout=_TIMEOUT,
    )
    if response.status_code >= 400:
        raise requests.HTTPError(f"robots.txt unavailable at {url}", response=response)
    return Robots.from_text(response.text)


def get_robots_for_domain(url: str) -> Robots:
    """Fetch the robots.txt at the root of the domain ``url``."""
    robots_url = url + "/robots.txt"
    log.info("Getting robots.txt from %s", robots_url)
    return get_robots_txt(robots_url)


def override_crawl_delay(
    config: GleanerConfig, source_name: str, delay: int, robots: Robots | None
) -> None:
    """Raise the source's delay (milliseconds) to the robots.txt crawl delay when that is longer."""
    if robots is None:
        log.warning("No robots.txt found for %s so no crawl delay will be set", source_name)
        return
    crawl_delay = int(robots.crawl_delay * 1000)
    log.debug("Crawl Delay specified by robots.txt for %s : %d", source_name, crawl_delay)
    if delay < crawl_delay:
        config.get_source(source_name).delay = crawl_delay