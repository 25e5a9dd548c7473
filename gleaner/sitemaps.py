"""Reading XML sitemaps and sitemap indexes."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass

import requests

_TIMEOUT = 60


@dataclass(frozen=True)
class SitemapUrl:
    """One ``<url>`` entry of a sitemap."""

    loc: str
    lastmod: str = ""
    changefreq: str = ""
    priority: float = 0.0


def _local(tag: object) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _parse(text: str | bytes) -> ET.Element:
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"invalid sitemap XML: {exc}") from exc


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def _priority(text: str) -> float:
    try:
        return float(text) if text else 0.0
    except ValueError:
        return 0.0


def parse_sitemap_xml(text: str | bytes) -> list[SitemapUrl]:
    """Return the ``<url>`` entries of a sitemap document, ignoring namespaces."""
    root = _parse(text)
    return [
        SitemapUrl(
            loc=_child_text(element, "loc"),
            lastmod=_child_text(element, "lastmod"),
            changefreq=_child_text(element, "changefreq"),
            priority=_priority(_child_text(element, "priority")),
        )
        for element in root.iter()
        if _local(element.tag) == "url"
    ]


def parse_index_xml(text: str | bytes) -> list[str]:
    """Return the sitemap locations listed in a sitemap index; empty for other documents."""
    root = _parse(text)
    return [
        _child_text(element, "loc")
        for element in root.iter()
        if _local(element.tag) == "sitemap"
    ]


def _fetch(url: str) -> bytes:
    response = requests.get(url, timeout=_TIMEOUT)
    response.raise_for_status()
    return response.content


def parse_sitemap(url: str) -> list[SitemapUrl]:
    """Fetch and parse the sitemap at ``url``."""
    return parse_sitemap_xml(_fetch(url))


def get_sitemaps_from_index(url: str) -> list[str]:
    """Fetch the sitemap index at ``url`` and return the sitemaps it lists."""
    return parse_index_xml(_fetch(url))