"""Harvest schema.org JSON-LD from sitemaps, robots.txt and paged APIs into an object store."""

__version__ = "0.1.0"