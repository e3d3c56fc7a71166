# File: tests/conftest.py
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Dict

import pytest
import pytest_asyncio
from aiohttp import web

from site_mapper.config import GeneratorConfig
from site_mapper.crawler.robots import RobotsPolicy
from site_mapper.models import PageData
from site_mapper.registry import UrlRegistry


@pytest.fixture()
def basic_config(tmp_path: Path) -> GeneratorConfig:
    """
    Return a basic valid GeneratorConfig writing into tmp_path.
    """
    return GeneratorConfig(
        base_url="http://example.com",
        file_path=tmp_path,
        timeout=2.0,
        rate_limit=100.0,
        retry_times=0,
        retry_backoff=0,
    )


@pytest.fixture()
def registry() -> UrlRegistry:
    """Registry without robots.txt: everything is admitted."""
    return UrlRegistry()


@pytest.fixture()
def private_policy() -> RobotsPolicy:
    """robots.txt that closes /private for every agent."""
    return RobotsPolicy.from_text(
        "User-agent: *\nDisallow: /private\n", "http://example.com/robots.txt"
    )


@pytest.fixture()
def mock_page_data() -> PageData:
    """
    Provide a simple PageData instance with HTML content.
    """
    html = (
        '<html><body><a href="/link1">L1</a><a href="http://external.com">X</a>'
        '<a href="mailto:me@example.com">M</a><a href="/link1#top">L1 again</a></body></html>'
    )
    return PageData(url="http://example.com/", content=html)


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@pytest_asyncio.fixture
async def serve(unused_tcp_port: int) -> AsyncIterator[Callable[[Dict[str, Handler]], Awaitable[str]]]:
    """Factory: start an aiohttp app with the given GET routes, return its base URL."""
    runners: list[web.AppRunner] = []

    async def _serve(routes: Dict[str, Handler]) -> str:
        app = web.Application()
        for path, handler in routes.items():
            app.router.add_get(path, handler)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "localhost", unused_tcp_port)
        await site.start()
        runners.append(runner)
        return f"http://localhost:{unused_tcp_port}"

    try:
        yield _serve
    finally:
        for runner in runners:
            await runner.cleanup()
