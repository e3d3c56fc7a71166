# === FILE: site_mapper/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import logging
import random
import re
import time
from typing import List, Optional, Pattern, Sequence, Set
from urllib.parse import urljoin, urlsplit, urlunsplit

from aiohttp import ClientError, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from site_mapper.config import AGENT_NAME, GeneratorConfig
from site_mapper.crawler.events import (
    Completed,
    CrawlEvent,
    Discovered,
    Duplicate,
    FetchError,
    NotFound,
)
from site_mapper.crawler.robots import RobotsPolicy
from site_mapper.models import PageData

__all__ = ("AsyncCrawler", "create_session")


def create_session(config: GeneratorConfig) -> ClientSession:
    """HTTP-сессия с фиксированным User-Agent и таймаутом на запрос."""
    return ClientSession(
        timeout=ClientTimeout(total=config.timeout),
        headers={"User-Agent": AGENT_NAME},
        raise_for_status=False,
    )


class AsyncCrawler:
    """Асинхронный обход одного хоста, публикующий события в канал.

    Every queued URL is announced as :class:`Discovered`, every later
    sighting as :class:`Duplicate`; failed fetches produce :class:`NotFound`
    or :class:`FetchError`, and :class:`Completed` closes the stream.
    URLs disallowed by robots.txt are announced but never fetched.
    """
    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)
    _NOT_FOUND_STATUS: Sequence[int] = (404, 410)

    def __init__(
        self,
        config: GeneratorConfig,
        channel: asyncio.Queue[CrawlEvent],
        robots: Optional[RobotsPolicy] = None,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.config = config
        self.channel = channel
        self.robots = robots
        self.session = session
        self._owns_session = session is None
        self.queued: Set[str] = set()
        self.logger = logging.getLogger("SiteMapper")
        self._rate_lock = asyncio.Lock()
        self._last_request_ts = 0.0

        parsed = urlsplit(str(config.base_url))
        self.protocol = parsed.scheme.lower()
        self.host = parsed.netloc.lower()
        self._ignored_re = self._compile_ignored(config.ignored_file_types)

    async def __aenter__(self) -> AsyncCrawler:
        if self.session is None:
            self.session = create_session(self.config)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    @property
    def root_url(self) -> str:
        return f"{self.protocol}://{self.host}/"

    async def crawl(self) -> int:
        """Обходит хост до исчерпания очереди; возвращает число URL в очереди."""
        if self.session is None:
            raise RuntimeError("Session not initialized")
        self.logger.info("Старт обхода: %s", self.root_url)
        start = time.monotonic()
        queue: asyncio.Queue[str] = asyncio.Queue()

        root = self.root_url
        self.queued.add(root)
        await self._emit(Discovered(root))
        await queue.put(root)

        workers = [asyncio.create_task(self._worker(queue)) for _ in range(self.config.concurrency)]
        try:
            await queue.join()
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        duration = time.monotonic() - start
        self.logger.info("Завершено: %d URL за %.2f с", len(self.queued), duration)
        await self._emit(Completed())
        return len(self.queued)

    async def _worker(self, queue: asyncio.Queue[str]) -> None:
        while True:
            url = await queue.get()
            try:
                await self._process(url, queue)
            except Exception as exc:
                self.logger.exception("Unexpected error while processing %s", url)
                await self._emit(FetchError(url, f"{type(exc).__name__}: {exc}"))
            finally:
                queue.task_done()

    async def _process(self, url: str, queue: asyncio.Queue[str]) -> None:
        if not self._is_allowed(url):
            self.logger.debug("Blocked by robots.txt, not fetching: %s", url)
            return
        page = await self._fetch(url)
        if page is None:
            return
        for link in self.extract_links(page):
            await self._enqueue(link, queue)

    async def _enqueue(self, link: str, queue: asyncio.Queue[str]) -> None:
        try:
            url = self.normalize_url(link)
        except ValueError:
            return
        if url is None or not self.should_fetch(url):
            return
        if url in self.queued:
            parts = urlsplit(url)
            path = f"{parts.path}?{parts.query}" if parts.query else parts.path
            await self._emit(Duplicate(parts.scheme, parts.netloc, path))
            return
        self.queued.add(url)
        await self._emit(Discovered(url))
        await queue.put(url)

    async def _fetch(self, url: str) -> Optional[PageData]:
        assert self.session is not None
        attempts = 0
        delay = self.robots.crawl_delay(AGENT_NAME) if self.robots else None
        while True:
            await self._wait_for_rate_limit(delay)
            try:
                async with self.session.get(url) as resp:
                    status = resp.status
                    if status in self._NOT_FOUND_STATUS:
                        await self._emit(NotFound(url, status))
                        return None
                    if status in self._RETRY_STATUS:
                        raise ClientError(f"retryable status {status}")
                    mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                    if status == 200 and mime == "text/html":
                        text = await resp.text(errors="replace")
                        return PageData(url, text)
                    self.logger.debug("Not following %s: HTTP %s, %s", url, status, mime or "no type")
                    return None
            except (ClientError, asyncio.TimeoutError) as e:
                attempts += 1
                if attempts > self.config.retry_times:
                    self.logger.warning("Failed %s: %s", url, e)
                    await self._emit(FetchError(url, str(e) or type(e).__name__))
                    return None
                base = self.config.retry_backoff
                backoff = min(60.0, base * 2 ** (attempts - 1) + random.random() * base)
                self.logger.debug("Retry %d/%d for %s after %.2f s", attempts, self.config.retry_times, url, backoff)
                await asyncio.sleep(backoff)

    def extract_links(self, page: PageData) -> List[str]:
        """Absolute targets of every ``<a href>`` on the page."""
        soup = BeautifulSoup(page.content, "html.parser")
        links: List[str] = []
        for a in soup.find_all("a", href=True):
            href = a["href"]
            if not isinstance(href, str):
                continue
            href = href.strip()
            if not href or href.startswith(("mailto:", "javascript:", "tel:")):
                continue
            try:
                links.append(urljoin(page.url, href))
            except ValueError:
                self.logger.debug("Skipping malformed link %r on %s", href, page.url)
        return links

    def normalize_url(self, url: str) -> Optional[str]:
        """Lowercase scheme and host, drop the fragment and, if configured, the query."""
        parsed = urlsplit(url)
        scheme = parsed.scheme.lower()
        if scheme not in ("http", "https"):
            return None
        query = "" if self.config.ignore_query_strings else parsed.query
        return urlunsplit((scheme, parsed.netloc.lower(), parsed.path or "/", query, ""))

    def should_fetch(self, url: str) -> bool:
        """Same host only, and no ignored file extension at the end of the path."""
        parsed = urlsplit(url)
        if parsed.netloc != self.host:
            return False
        return self._ignored_re is None or not self._ignored_re.search(parsed.path)

    async def _emit(self, event: CrawlEvent) -> None:
        await self.channel.put(event)

    async def _wait_for_rate_limit(self, crawl_delay: Optional[float]) -> None:
        interval = max(1 / self.config.rate_limit, crawl_delay or 0)
        async with self._rate_lock:
            now = time.monotonic()
            wait = interval - (now - self._last_request_ts)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_ts = time.monotonic()

    def _is_allowed(self, url: str) -> bool:
        return True if self.robots is None else self.robots.is_allowed(url, AGENT_NAME)

    @staticmethod
    def _compile_ignored(extensions: Sequence[str]) -> Optional[Pattern[str]]:
        if not extensions:
            return None
        alternatives = "|".join(re.escape(ext) for ext in extensions)
        return re.compile(rf"\.({alternatives})$", re.IGNORECASE)
