"""Gleaner configuration: sources, summoner settings and per-source retrieval settings."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from gleaner.jsonld import ContextOption

log = logging.getLogger(__name__)

EARTHCUBE_AGENT = "EarthCube_DataBot/1.0"
JSON_CONTENT_TYPE = "application/ld+json"

_TRUE = {"1", "t", "true"}
_FALSE = {"", "0", "f", "false"}


class ConfigError(ValueError):
    """Raised when the configuration is missing a value or holds an unusable one."""


def _lower_keys(mapping: Any, section: str) -> dict[str, Any]:
    if mapping is None:
        return {}
    if not isinstance(mapping, Mapping):
        raise ConfigError(f"{section} must be a mapping, got {type(mapping).__name__}")
    return {str(key).lower(): value for key, value in mapping.items()}


def _as_int(value: Any, name: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_context_option(value: Any) -> ContextOption:
    if value is None or value == "":
        return ContextOption.HTTPS
    if isinstance(value, ContextOption):
        return value
    text = str(value).strip().lower().replace("-", "_")
    try:
        return ContextOption(text)
    except ValueError as exc:
        raise ConfigError(f"unknown fixcontextoption {value!r}") from exc


@dataclass
class Source:
    """One data provider to harvest."""

    name: str
    source_type: str = "sitemap"
    url: str = ""
    headless: bool = False
    domain: str = ""
    pid: str = ""
    proper_name: str = ""
    logo: str = ""
    active: bool = True
    delay: int = 0
    headless_wait: int = 0
    accept_content_type: str = ""
    json_profile: str = ""
    api_page_limit: int = 0
    fix_context_option: ContextOption = ContextOption.HTTPS
    identifier_type: str = ""
    identifier_path: str = ""


def _source_from_mapping(raw: Any) -> Source:
    data = _lower_keys(raw, "source")
    name = _as_str(data.get("name"))
    if not name:
        raise ConfigError("every source needs a name")
    return Source(
        name=name,
        source_type=_as_str(data.get("sourcetype")) or "sitemap",
        url=_as_str(data.get("url")),
        headless=_as_bool(data.get("headless"), "headless"),
        domain=_as_str(data.get("domain")),
        pid=_as_str(data.get("pid")),
        proper_name=_as_str(data.get("propername")),
        logo=_as_str(data.get("logo")),
        active=_as_bool(data.get("active", True), "active"),
        delay=_as_int(data.get("delay"), "delay"),
        headless_wait=_as_int(data.get("headlesswait"), "headlesswait"),
        accept_content_type=_as_str(data.get("acceptcontenttype")),
        json_profile=_as_str(data.get("jsonprofile")),
        api_page_limit=_as_int(data.get("apipagelimit"), "apipagelimit"),
        fix_context_option=_as_context_option(data.get("fixcontextoption")),
        identifier_type=_as_str(data.get("identifiertype")),
        identifier_path=_as_str(data.get("identifierpath")),
    )


@dataclass
class SummonerSettings:
    """Global settings of the summoner step."""

    threads: int = 0
    delay: int = 0
    headless: str = ""
    mode: str = "full"
    after: str = ""


def _summoner_from_mapping(raw: Any) -> SummonerSettings:
    data = _lower_keys(raw, "summoner")
    return SummonerSettings(
        threads=_as_int(data.get("threads"), "summoner.threads"),
        delay=_as_int(data.get("delay"), "summoner.delay"),
        headless=_as_str(data.get("headless")),
        mode=_as_str(data.get("mode")) or "full",
        after=_as_str(data.get("after")),
    )


@dataclass
class GleanerConfig:
    """The whole harvesting configuration."""

    bucket: str | None = None
    summoner: SummonerSettings = field(default_factory=SummonerSettings)
    sources: list[Source] = field(default_factory=list)
    strict: bool = False
    rude: bool = False
    run_id: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GleanerConfig:
        """Build a configuration from parsed YAML; keys are matched case-insensitively."""
        top = _lower_keys(data, "config")
        minio = _lower_keys(top.get("minio"), "minio")
        raw_sources = top.get("sources") or []
        if not isinstance(raw_sources, (list, tuple)):
            raise ConfigError("sources must be a list")
        context = _lower_keys(top.get("context"), "context")
        gleaner = _lower_keys(top.get("gleaner"), "gleaner")
        bucket = minio.get("bucket")
        return cls(
            bucket=None if bucket is None else str(bucket),
            summoner=_summoner_from_mapping(top.get("summoner")),
            sources=[_source_from_mapping(item) for item in raw_sources],
            strict=_as_bool(context.get("strict"), "context.strict"),
            rude=_as_bool(top.get("rude"), "rude"),
            run_id=_as_str(gleaner.get("runid")),
        )

    def get_source(self, name: str) -> Source:
        """Return the source called ``name``; raise ConfigError when there is none."""
        for source in self.sources:
            if source.name == name:
                return source
        raise ConfigError(f"unable to find a source with name {name}")

    def api_sources(self) -> list[Source]:
        """Return the active sources whose type is ``api``."""
        return [s for s in self.sources if s.active and s.source_type == "api"]

    def filter_sources(self, headless: bool, source_type: str | None = None) -> list[Source]:
        """Return the active sources with the given headless flag and, if given, type."""
        return [
            s
            for s in self.sources
            if s.active
            and s.headless == headless
            and (source_type is None or s.source_type == source_type)
        ]


@dataclass(frozen=True)
class RetrievalConfig:
    """Everything needed to fetch JSON-LD for the URLs of one source."""

    bucket_name: str
    thread_count: int
    delay: int
    headless_wait: int
    accept_content: str
    json_profile: str


def get_config(config: GleanerConfig, source_name: str) -> RetrievalConfig:
    """Work out the retrieval settings for one source from the global and source settings."""
    if not config.bucket:
        raise ConfigError("no minio bucket configured")
    threads = config.summoner.threads
    delay = config.summoner.delay
    if delay != 0 or threads == 0:
        threads = 1

    source = config.get_source(source_name)
    accept_content = source.accept_content_type or JSON_CONTENT_TYPE

    if source.delay != 0 and source.delay > delay:
        delay = source.delay
        threads = 1
        log.info("Crawl delay set to %d for %s", delay, source_name)
    log.info("Thread count %d delay %d", threads, delay)

    return RetrievalConfig(
        bucket_name=config.bucket,
        thread_count=threads,
        delay=delay,
        headless_wait=source.headless_wait,
        accept_content=accept_content,
        json_profile=source.json_profile,
    )