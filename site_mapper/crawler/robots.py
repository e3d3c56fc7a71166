# === FILE: site_mapper/crawler/robots.py ===
"""
robots.txt support: rule matching (RFC 9309 product tokens), the per-run policy and its resolver.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern
from urllib.parse import urlsplit, urlunsplit

from aiohttp import ClientError, ClientSession

__all__ = ("RobotsTxtRules", "RobotsPolicy", "product_token", "resolve_robots", "robots_url_for")

logger = logging.getLogger("SiteMapper")


def product_token(user_agent: str) -> str:
    """``"Site-Mapper/1.2 (+http://...)"`` → ``"site-mapper"``."""
    return user_agent.split("/", 1)[0].strip().lower()


@dataclass(slots=True)
class _Rule:
    allow: bool
    pattern: str
    regex: Pattern[str]

    @classmethod
    def compile(cls, allow: bool, pattern: str) -> _Rule:
        anchored = pattern.endswith("$")
        body = re.escape(pattern[:-1] if anchored else pattern).replace(r"\*", ".*")
        return cls(allow, pattern, re.compile(body + ("$" if anchored else "")))


@dataclass(slots=True)
class _Group:
    rules: List[_Rule] = field(default_factory=list)
    crawl_delay: Optional[float] = None


class RobotsTxtRules:
    """
    Правила robots.txt, сгруппированные по product token агента.

    Агент выбирает группу по точному совпадению токена без учёта регистра
    (``Site`` не подходит для ``Site-Mapper``), иначе группу ``*``. Группы
    одного агента, встречающиеся несколько раз, объединяются. Из подходящих
    правил побеждает самый длинный шаблон, при равной длине ``Allow``.
    Пустое ``Disallow`` ничего не запрещает; правила до первого
    ``User-agent`` игнорируются.
    """

    def __init__(self, text: str) -> None:
        self._groups: Dict[str, _Group] = {}
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        group = self._group_for(user_agent)
        if group is None:
            return True
        best: Optional[_Rule] = None
        for rule in group.rules:
            if not rule.regex.match(path):
                continue
            if (
                best is None
                or len(rule.pattern) > len(best.pattern)
                or (len(rule.pattern) == len(best.pattern) and rule.allow and not best.allow)
            ):
                best = rule
        return True if best is None else best.allow

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._group_for(user_agent)
        return None if group is None else group.crawl_delay

    def _group_for(self, user_agent: str) -> Optional[_Group]:
        group = self._groups.get(product_token(user_agent))
        return group if group is not None else self._groups.get("*")

    def _parse(self, text: str) -> None:
        agents: List[str] = []
        collecting_agents = False
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip().lower()
            value = value.strip()

            if key == "user-agent":
                if not collecting_agents:
                    agents = []
                    collecting_agents = True
                token = product_token(value)
                agents.append(token)
                self._groups.setdefault(token, _Group())
                continue
            collecting_agents = False

            if not agents:
                continue
            if key in ("allow", "disallow"):
                if not value:
                    continue
                rule = _Rule.compile(key == "allow", value)
                for agent in agents:
                    self._groups[agent].rules.append(rule)
            elif key == "crawl-delay":
                try:
                    delay = float(value)
                except ValueError:
                    logger.debug("Ignoring malformed Crawl-delay: %r", value)
                    continue
                for agent in agents:
                    self._groups[agent].crawl_delay = delay


class RobotsPolicy:
    """Compiled robots.txt of the crawled host.

    :meth:`is_allowed` never raises: a rule that cannot be evaluated is
    reported as *allowed* (fail-open) and logged at WARNING.
    """

    def __init__(self, rules: RobotsTxtRules, source_url: str) -> None:
        self.rules = rules
        self.source_url = source_url

    @classmethod
    def from_text(cls, text: str, source_url: str) -> RobotsPolicy:
        return cls(RobotsTxtRules(text), source_url)

    def is_allowed(self, url: str, agent: str) -> bool:
        try:
            parts = urlsplit(url)
            target = parts.path or "/"
            if parts.query:
                target = f"{target}?{parts.query}"
            return self.rules.can_fetch(agent, target)
        except (re.error, ValueError) as exc:
            logger.warning("robots.txt rule evaluation failed for %s, allowing: %s", url, exc)
            return True

    def crawl_delay(self, agent: str) -> Optional[float]:
        return self.rules.crawl_delay(agent)


def robots_url_for(base_url: str) -> str:
    """``{scheme}://{host}/robots.txt`` for the host of *base_url*."""
    parsed = urlsplit(base_url)
    return urlunsplit((parsed.scheme, parsed.netloc, "/robots.txt", "", ""))


async def resolve_robots(session: ClientSession, base_url: str) -> Optional[RobotsPolicy]:
    """Загружает robots.txt хоста; None означает «разрешено всё».

    Любая ошибка (не-200, сетевая, таймаут) не фатальна и только логируется.
    """
    robots_url = robots_url_for(base_url)
    try:
        async with session.get(robots_url) as resp:
            if resp.status != 200:
                logger.debug("robots.txt %s -> HTTP %s, allowing everything", robots_url, resp.status)
                return None
            text = await resp.text()
    except (ClientError, asyncio.TimeoutError, UnicodeDecodeError) as exc:
        logger.warning("Error loading robots.txt %s: %s", robots_url, exc)
        return None

    logger.info("Loaded robots.txt from %s", robots_url)
    return RobotsPolicy.from_text(text, robots_url)
