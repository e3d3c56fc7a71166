# File: site_mapper/registry.py
"""site_mapper.registry: Реестр найденных URL со счётчиком посещений и флагом исключения."""

from __future__ import annotations

from typing import Dict, List, Optional

from site_mapper.config import AGENT_NAME
from site_mapper.crawler.robots import RobotsPolicy
from site_mapper.logger import logger
from site_mapper.models import UrlRecord

__all__ = ["UrlRegistry"]


class UrlRegistry:
    """Deduplicated, counted record of every URL admitted during one run.

    Records are kept in discovery order; a URL gets at most one record for
    the lifetime of the registry and the record is only mutated in place.
    """

    def __init__(self, robots: Optional[RobotsPolicy] = None, agent: str = AGENT_NAME) -> None:
        self.robots = robots
        self.agent = agent
        self._records: Dict[str, UrlRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, url: object) -> bool:
        return url in self._records

    def get(self, url: str) -> Optional[UrlRecord]:
        return self._records.get(url)

    def admit_or_increment(self, url: str) -> bool:
        """Admit an unseen URL (subject to robots.txt) or bump a known one.

        Returns True when the URL has a record afterwards. Known URLs are
        never re-checked against robots.txt.
        """
        record = self._records.get(url)
        if record is not None:
            record.visit_count += 1
            logger.info("Already known: %s", url)
            return True

        if self.robots is not None and not self.robots.is_allowed(url, self.agent):
            logger.info("Ignored: %s", url)
            return False

        self._records[url] = UrlRecord(url)
        logger.info("Found: %s", url)
        return True

    def mark_excluded(self, url: str) -> None:
        """Flag an admitted URL so it never reaches the sitemap; no-op otherwise."""
        record = self._records.get(url)
        if record is not None:
            record.excluded = True

    def snapshot(self) -> List[UrlRecord]:
        """Non-excluded records, most visited first; ties keep discovery order."""
        kept = [record for record in self._records.values() if not record.excluded]
        return sorted(kept, key=lambda record: record.visit_count, reverse=True)
