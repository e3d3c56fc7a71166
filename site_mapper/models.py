# site_mapper/models.py
"""
Data models shared by the registry, the priority calculator and the serializer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Tuple, Union

#: Text of a leaf element, or a mapping expanded into child elements.
FieldValue = Union[str, Dict[str, "FieldValue"]]


@dataclass(slots=True)
class UrlRecord:
    """One unique URL seen during a run, with its popularity counter."""

    url: str
    visit_count: int = 1
    excluded: bool = False


@dataclass(slots=True)
class SitemapEntry:
    """A single ``<url>`` element of the output document.

    ``fields`` keeps insertion order: configured static fields first, then
    derived ``priority`` and ``changefreq`` when they were not configured.
    A mapping value becomes a nested element with one child per key.
    """

    loc: str
    fields: Dict[str, FieldValue] = field(default_factory=dict)

    def items(self) -> Iterator[Tuple[str, FieldValue]]:
        """Yield ``(tag, value)`` pairs in output order, ``loc`` first."""
        yield "loc", self.loc
        yield from self.fields.items()


@dataclass(slots=True)
class PageData:
    """Результат загрузки: URL и содержание HTML-страницы."""

    url: str
    content: str
