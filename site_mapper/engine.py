# File: site_mapper/engine.py
"""site_mapper.engine: Orchestration layer: robots.txt, обход, агрегация и запись sitemap."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from site_mapper.adapter import CrawlEventAdapter
from site_mapper.config import GeneratorConfig
from site_mapper.crawler.crawler import AsyncCrawler, create_session
from site_mapper.crawler.events import CrawlEvent
from site_mapper.crawler.robots import resolve_robots
from site_mapper.logger import logger
from site_mapper.priority import SiteNotFoundError, calculate_entries
from site_mapper.registry import UrlRegistry
from site_mapper.sitemap import write_sitemap

__all__ = ["SitemapGenerator", "SiteNotFoundError", "generate_sitemap"]


class SitemapGenerator:
    """Фасад для CLI и тестов: один запуск генерации sitemap для одного хоста."""

    def __init__(self, config: GeneratorConfig) -> None:
        self.config = config
        self.registry: Optional[UrlRegistry] = None

    async def run(self) -> Path:
        """Полный цикл: robots.txt → обход → расчёт priority → запись файла."""
        base_url = str(self.config.base_url)
        logger.info("Generating sitemap for %s", base_url)

        async with create_session(self.config) as session:
            robots = await resolve_robots(session, base_url)
            self.registry = UrlRegistry(robots)
            channel: asyncio.Queue[CrawlEvent] = asyncio.Queue()
            crawler = AsyncCrawler(self.config, channel, robots=robots, session=session)
            adapter = CrawlEventAdapter(self.registry)
            await self._drive(crawler, adapter, channel)

        records = self.registry.snapshot()
        if not records:
            logger.error("Site not found: no URLs admitted for %s", base_url)
            raise SiteNotFoundError()

        entries = calculate_entries(records, self.config.fields)
        return write_sitemap(entries, self.config.output_path)

    @staticmethod
    async def _drive(
        crawler: AsyncCrawler,
        adapter: CrawlEventAdapter,
        channel: asyncio.Queue[CrawlEvent],
    ) -> UrlRegistry:
        """Runs the crawler and the adapter side by side on one channel.

        A traversal failure cancels the consumer and propagates.
        """
        producer = asyncio.create_task(crawler.crawl())
        consumer = asyncio.create_task(adapter.consume(channel))
        done, pending = await asyncio.wait({producer, consumer}, return_when=asyncio.FIRST_EXCEPTION)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()
        return consumer.result()


async def generate_sitemap(cfg: GeneratorConfig) -> Path:
    """Запускает генерацию в текущем event loop и возвращает путь к sitemap."""
    return await SitemapGenerator(cfg).run()
