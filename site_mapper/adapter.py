# File: site_mapper/adapter.py
"""site_mapper.adapter: Translates crawler events into registry operations."""

from __future__ import annotations

import asyncio

from site_mapper.crawler.events import (
    Completed,
    CrawlEvent,
    Discovered,
    Duplicate,
    FetchError,
    NotFound,
)
from site_mapper.logger import logger
from site_mapper.registry import UrlRegistry

__all__ = ["CrawlEventAdapter"]


class CrawlEventAdapter:
    """Single consumer of the crawl event channel.

    The reaction to each event depends only on the registry state and the
    event itself, so tests can feed synthesized events to :meth:`handle`.
    """

    def __init__(self, registry: UrlRegistry) -> None:
        self.registry = registry
        self.completed = False

    def handle(self, event: CrawlEvent) -> bool:
        """Apply one event; returns True once the crawl is complete."""
        if isinstance(event, (Discovered, Duplicate)):
            self.registry.admit_or_increment(event.url)
        elif isinstance(event, NotFound):
            self.registry.mark_excluded(event.url)
            logger.info("Not found: %s", event.url)
        elif isinstance(event, FetchError):
            self.registry.mark_excluded(event.url)
            logger.info("Fetch error: %s (%s)", event.url, event.reason)
        elif isinstance(event, Completed):
            self.completed = True
        else:
            raise TypeError(f"Unknown crawl event: {event!r}")
        return self.completed

    async def consume(self, channel: asyncio.Queue[CrawlEvent]) -> UrlRegistry:
        """Drain *channel* until :class:`Completed` and return the registry."""
        while not self.completed:
            event = await channel.get()
            try:
                self.handle(event)
            finally:
                channel.task_done()
        logger.info("Crawl complete: %d URLs known", len(self.registry))
        return self.registry
