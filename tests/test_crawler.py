# File: tests/test_crawler.py
# Crawler event stream and end-to-end sitemap generation against local aiohttp servers
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from aiohttp import web
from lxml import etree
from site_mapper.config import GeneratorConfig
from site_mapper.crawler.crawler import AsyncCrawler
from site_mapper.crawler.events import Completed, Discovered, Duplicate, FetchError, NotFound
from site_mapper.crawler.robots import RobotsPolicy
from site_mapper.engine import SiteNotFoundError, SitemapGenerator
from site_mapper.sitemap import SITEMAP_NS

NS = {"sm": SITEMAP_NS}


# --------------------------------------------------------------------------- #
#                               Helper utilities                              #
# --------------------------------------------------------------------------- #


def page(*links: str) -> web.Response:
    body = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return web.Response(text=f"<html><body>{body}</body></html>", content_type="text/html")


def make_config(base: str, tmp_path: Path, **kwargs) -> GeneratorConfig:
    params = dict(
        base_url=base,
        file_path=tmp_path,
        timeout=2.0,
        rate_limit=200.0,
        retry_times=0,
        retry_backoff=0,
    )
    params.update(kwargs)
    return GeneratorConfig(**params)


async def collect_events(config: GeneratorConfig, robots: RobotsPolicy | None = None) -> list:
    channel: asyncio.Queue = asyncio.Queue()
    async with AsyncCrawler(config, channel, robots=robots) as crawler:
        await asyncio.wait_for(crawler.crawl(), timeout=15)
    events = []
    while not channel.empty():
        events.append(channel.get_nowait())
    return events


def read_sitemap(path: Path) -> list[dict[str, str]]:
    root = etree.fromstring(path.read_bytes())
    return [
        {etree.QName(child).localname: child.text for child in url}
        for url in root.findall("sm:url", NS)
    ]


def site_routes() -> dict:
    async def root(_):
        return page(
            "/a", "/a#section", "/b", "/missing", "/style.css", "/logo.PNG",
            "http://external.example/x", "/private", "mailto:me@example.com",
        )

    async def page_a(_):
        return page("/", "/b")

    async def page_b(_):
        return page("/a")

    async def private(_):
        return page("/private/deeper")

    async def robots(_):
        return web.Response(text="User-agent: *\nDisallow: /private", content_type="text/plain")

    return {"/": root, "/a": page_a, "/b": page_b, "/private": private, "/robots.txt": robots}


# --------------------------------------------------------------------------- #
#                          Crawler unit behaviour                             #
# --------------------------------------------------------------------------- #


def test_extract_links_skips_non_http(basic_config, mock_page_data):
    crawler = AsyncCrawler(basic_config, asyncio.Queue())
    assert crawler.extract_links(mock_page_data) == [
        "http://example.com/link1",
        "http://external.com",
        "http://example.com/link1#top",
    ]


@pytest.mark.parametrize(
    "ignore,url,expected",
    [
        (True, "HTTP://Example.COM/Path?q=1#frag", "http://example.com/Path"),
        (False, "http://example.com/path?q=1#frag", "http://example.com/path?q=1"),
        (True, "http://example.com", "http://example.com/"),
        (True, "ftp://example.com/file", None),
    ],
)
def test_normalize_url(basic_config, ignore, url, expected):
    config = basic_config.model_copy(update={"ignore_query_strings": ignore})
    assert AsyncCrawler(config, asyncio.Queue()).normalize_url(url) == expected


@pytest.mark.parametrize(
    "url,expected",
    [
        ("http://example.com/page", True),
        ("http://example.com/docs/report.PDF", False),
        ("http://example.com/app.js", False),
        ("http://example.com/app.jsx", True),
        ("http://other.example/page", False),
    ],
)
def test_should_fetch(basic_config, url, expected):
    assert AsyncCrawler(basic_config, asyncio.Queue()).should_fetch(url) is expected


# --------------------------------------------------------------------------- #
#                              Event stream                                   #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_event_stream(serve, tmp_path):
    base = await serve(site_routes())
    policy = RobotsPolicy.from_text("User-agent: *\nDisallow: /private", f"{base}/robots.txt")
    events = await collect_events(make_config(base, tmp_path), robots=policy)

    assert events[0] == Discovered(f"{base}/")
    assert events[-1] == Completed()
    discovered = {e.url for e in events if isinstance(e, Discovered)}
    assert discovered == {f"{base}/", f"{base}/a", f"{base}/b", f"{base}/missing", f"{base}/private"}
    duplicates = sorted(e.url for e in events if isinstance(e, Duplicate))
    assert duplicates == sorted([f"{base}/", f"{base}/a", f"{base}/a", f"{base}/b"])
    assert [e for e in events if isinstance(e, NotFound)] == [NotFound(f"{base}/missing", 404)]
    # /private is announced but never fetched, so its link is never seen
    assert all("deeper" not in getattr(e, "url", "") for e in events)


@pytest.mark.asyncio()
async def test_retry_on_server_error(serve, tmp_path):
    call_count = {"n": 0}

    async def flaky(_):
        call_count["n"] += 1
        if call_count["n"] <= 2:
            return web.Response(status=500)
        return page()

    async def root(_):
        return page("/flaky")

    base = await serve({"/": root, "/flaky": flaky})
    events = await collect_events(make_config(base, tmp_path, retry_times=3))

    assert call_count["n"] == 3
    assert not [e for e in events if isinstance(e, FetchError)]


@pytest.mark.asyncio()
async def test_persistent_server_error_is_fetch_error(serve, tmp_path):
    async def broken(_):
        return web.Response(status=503)

    async def root(_):
        return page("/broken")

    base = await serve({"/": root, "/broken": broken})
    events = await collect_events(make_config(base, tmp_path, retry_times=1))

    failures = [e for e in events if isinstance(e, FetchError)]
    assert [e.url for e in failures] == [f"{base}/broken"]
    assert "503" in failures[0].reason


# --------------------------------------------------------------------------- #
#                         End-to-end generation                               #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_generate_sitemap_end_to_end(serve, tmp_path):
    base = await serve(site_routes())
    output = await SitemapGenerator(make_config(base, tmp_path)).run()

    assert output == tmp_path / "sitemap.xml"
    assert read_sitemap(output) == [
        {"loc": f"{base}/a", "priority": "1.00", "changefreq": "hourly"},
        {"loc": f"{base}/", "priority": "0.83", "changefreq": "daily"},
        {"loc": f"{base}/b", "priority": "0.83", "changefreq": "daily"},
    ]


@pytest.mark.asyncio()
async def test_generate_with_static_fields(serve, tmp_path):
    base = await serve(site_routes())
    config = make_config(
        base, tmp_path, file_name="map.xml", fields={"lastmod": "2024-05-01", "changefreq": "weekly"}
    )
    output = await SitemapGenerator(config).run()

    assert output.name == "map.xml"
    entries = read_sitemap(output)
    assert [list(e) for e in entries] == [["loc", "lastmod", "changefreq", "priority"]] * 3
    assert {e["changefreq"] for e in entries} == {"weekly"}


@pytest.mark.asyncio()
async def test_query_strings(serve, tmp_path):
    async def root(_):
        return page("/search?q=1", "/search?q=2")

    async def search(_):
        return page()

    base = await serve({"/": root, "/search": search})

    stripped = await SitemapGenerator(make_config(base, tmp_path)).run()
    assert [e["loc"] for e in read_sitemap(stripped)] == [f"{base}/search", f"{base}/"]

    kept = await SitemapGenerator(
        make_config(base, tmp_path, file_name="kept.xml", ignore_query_strings=False)
    ).run()
    assert [e["loc"] for e in read_sitemap(kept)] == [
        f"{base}/",
        f"{base}/search?q=1",
        f"{base}/search?q=2",
    ]


@pytest.mark.asyncio()
async def test_site_fully_disallowed_is_not_found(serve, tmp_path):
    async def root(_):
        return page("/a")

    async def robots(_):
        return web.Response(text="User-agent: *\nDisallow: /", content_type="text/plain")

    base = await serve({"/": root, "/robots.txt": robots})
    with pytest.raises(SiteNotFoundError):
        await SitemapGenerator(make_config(base, tmp_path)).run()
    assert not (tmp_path / "sitemap.xml").exists()


@pytest.mark.asyncio()
async def test_missing_root_is_not_found(serve, tmp_path):
    async def other(_):
        return page()

    base = await serve({"/other": other})
    with pytest.raises(SiteNotFoundError):
        await SitemapGenerator(make_config(base, tmp_path)).run()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio()
async def test_unreachable_host_is_not_found(unused_tcp_port, tmp_path):
    config = make_config(f"http://localhost:{unused_tcp_port}", tmp_path)
    with pytest.raises(SiteNotFoundError):
        await SitemapGenerator(config).run()
