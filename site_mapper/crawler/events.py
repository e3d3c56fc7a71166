# site_mapper/crawler/events.py
"""
Typed events emitted by :class:`~site_mapper.crawler.crawler.AsyncCrawler`.

The crawler pushes them onto a single :class:`asyncio.Queue`; the
:class:`~site_mapper.adapter.CrawlEventAdapter` is the only consumer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Discovered:
    """A new link was queued for fetching."""

    url: str


@dataclass(frozen=True, slots=True)
class Duplicate:
    """A link was found again after it had already been queued.

    Carries the structured parts of the link rather than a ready-made URL;
    ``host`` keeps an explicit port when the link had one.
    """

    protocol: str
    host: str
    path: str

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}{self.path}"


@dataclass(frozen=True, slots=True)
class NotFound:
    """The fetch returned 404/410."""

    url: str
    status: int


@dataclass(frozen=True, slots=True)
class FetchError:
    """Transport failure, or a retryable status that outlived every retry."""

    url: str
    reason: str


@dataclass(frozen=True, slots=True)
class Completed:
    """The crawl queue is exhausted."""


CrawlEvent = Union[Discovered, Duplicate, NotFound, FetchError, Completed]

__all__ = ("CrawlEvent", "Completed", "Discovered", "Duplicate", "FetchError", "NotFound")
