# File: site_mapper/crawler/__init__.py
"""site_mapper.crawler: Обход сайта, события обхода и правила robots.txt."""

from .crawler import AsyncCrawler, create_session
from .events import Completed, CrawlEvent, Discovered, Duplicate, FetchError, NotFound
from .robots import RobotsPolicy, RobotsTxtRules, resolve_robots

__all__ = [
    "AsyncCrawler",
    "create_session",
    "CrawlEvent",
    "Completed",
    "Discovered",
    "Duplicate",
    "FetchError",
    "NotFound",
    "RobotsPolicy",
    "RobotsTxtRules",
    "resolve_robots",
]
