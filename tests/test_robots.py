import pytest
import requests
import responses

from gleaner.robots import Robots, get_robots_for_domain, get_robots_txt, override_crawl_delay
from gleaner.settings import ConfigError, GleanerConfig

ROBOTS = """User-agent: *
        Disallow: /cgi-bin
        Disallow: /forms
        Disallow: /api/gi-cat
        Disallow: /rocs/archives-catalog
        Crawl-delay: 10"""

SERVER = "http://robots.example.com"


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(responses.GET, SERVER + "/robots.txt", body=ROBOTS)
        rsps.add(responses.GET, SERVER + "/404.txt", status=404)
        rsps.add(responses.GET, SERVER + "/bad-value/robots.txt", status=404)
        yield rsps


def test_get_robots_txt_parses_rules(mocked):
    robots = get_robots_txt(SERVER + "/robots.txt")
    assert robots.allows("/cgi-bin/exploit") is False
    assert robots.allows("/datasets/1") is True


def test_get_robots_txt_missing_raises(mocked):
    with pytest.raises(requests.HTTPError):
        get_robots_txt(SERVER + "/404.txt")


def test_get_robots_for_domain_crawl_delay(mocked):
    robots = get_robots_for_domain(SERVER)
    assert robots.crawl_delay == 10.0


def test_get_robots_for_domain_error(mocked):
    with pytest.raises(requests.HTTPError):
        get_robots_for_domain(SERVER + "/bad-value")


@pytest.fixture
def config():
    return GleanerConfig.from_dict({"sources": [{"name": "test", "domain": "http://test.com"}]})


def test_override_does_nothing_without_robots(config):
    override_crawl_delay(config, "test", 0, None)
    assert config.get_source("test").delay == 0


def test_override_unknown_source_raises(config):
    with pytest.raises(ConfigError):
        override_crawl_delay(config, "foo", 0, Robots.from_text(ROBOTS))


def test_override_sets_longer_crawl_delay_and_keeps_it(config):
    robots = Robots.from_text(ROBOTS)
    override_crawl_delay(config, "test", 9999, robots)
    assert config.get_source("test").delay == 10000
    override_crawl_delay(config, "test", 10001, robots)
    assert config.get_source("test").delay == 10000


def test_agent_specific_group_preferred():
    text = (
        "User-agent: EarthCube_DataBot\nDisallow: /private\n\n"
        "User-agent: *\nDisallow: /\n"
    )
    robots = Robots.from_text(text)
    assert robots.allows("/public") is True
    assert robots.allows("/private/x") is False
    assert Robots.from_text(text, "OtherBot").allows("/public") is False


def test_longest_rule_wins():
    robots = Robots.from_text("User-agent: *\nDisallow: /data\nAllow: /data/public\n")
    assert robots.allows("/data/public/1") is True
    assert robots.allows("/data/secret") is False


def test_wildcard_and_anchor():
    robots = Robots.from_text("User-agent: *\nDisallow: /*.pdf$\n")
    assert robots.allows("/docs/a.pdf") is False
    assert robots.allows("/docs/a.pdf?download=1") is True
    assert robots.allows("/docs/a.html") is True


def test_full_url_checked_by_path():
    robots = Robots.from_text(ROBOTS)
    assert robots.allows("https://example.com/cgi-bin/x") is False
    assert robots.allows("https://example.com/") is True


def test_sitemaps_and_empty_disallow():
    text = "Sitemap: https://example.com/sitemap.xml\nUser-agent: *\nDisallow:\n"
    robots = Robots.from_text(text)
    assert robots.sitemaps == ["https://example.com/sitemap.xml"]
    assert robots.allows("/anything") is True
    assert robots.crawl_delay == 0.0