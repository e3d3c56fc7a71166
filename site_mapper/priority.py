# File: site_mapper/priority.py
"""site_mapper.priority: Расчёт priority и changefreq по счётчикам посещений.

Самый посещаемый URL получает priority 1.00, остальные масштабируются
линейно в интервал (0.5, 1.0]. changefreq выводится из priority по
фиксированным порогам, если не задан в конфигурации.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Sequence

from site_mapper.logger import logger
from site_mapper.models import FieldValue, SitemapEntry, UrlRecord

__all__ = [
    "SiteNotFoundError",
    "calculate_entries",
    "derive_changefreq",
    "format_priority",
    "render_field",
    "round2",
]

_CENT = Decimal("0.01")

# (exclusive lower bound, changefreq); first match wins
_CHANGEFREQ_THRESHOLDS = (
    (Decimal("0.90"), "hourly"),
    (Decimal("0.70"), "daily"),
    (Decimal("0.60"), "weekly"),
)


class SiteNotFoundError(RuntimeError):
    """Обход завершился, но ни один URL не попал в sitemap."""

    def __init__(self, message: str = "Site not found") -> None:
        super().__init__(message)


def round2(value: Any) -> Decimal:
    """Round to two decimals, halves away from zero (``0.625 -> 0.63``).

    Floats are converted exactly, so the result matches rounding the binary
    value rather than its shortest repr.
    """
    number = Decimal(value) if isinstance(value, (int, float)) else Decimal(str(value))
    return number.quantize(_CENT, rounding=ROUND_HALF_UP)


def format_priority(value: Any) -> str:
    return str(round2(value))


def render_field(value: Any) -> FieldValue:
    """Element text for a configured value; mappings are rendered key by key."""
    if isinstance(value, Mapping):
        return {key: render_field(item) for key, item in value.items()}
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def derive_changefreq(priority: Any) -> str:
    """Map a priority to ``hourly``/``daily``/``weekly``/``monthly``."""
    value = round2(priority)
    for bound, changefreq in _CHANGEFREQ_THRESHOLDS:
        if value > bound:
            return changefreq
    return "monthly"


def calculate_entries(
    records: Sequence[UrlRecord], fields: Mapping[str, Any] | None = None
) -> List[SitemapEntry]:
    """Build sitemap entries from registry records (most visited first).

    Configured *fields* are merged first and always win over derived
    ``priority``/``changefreq``. Raises :class:`SiteNotFoundError` if
    *records* is empty.
    """
    if not records:
        raise SiteNotFoundError()

    static: Dict[str, FieldValue] = {}
    for key, value in (fields or {}).items():
        static[key] = format_priority(value) if key == "priority" else render_field(value)

    highest = max(record.visit_count for record in records)
    lowest = min(record.visit_count for record in records)
    step = 0.5 / highest
    logger.debug("Visit counts range %d..%d, step %.4f", lowest, highest, step)

    entries: List[SitemapEntry] = []
    for record in records:
        entry = SitemapEntry(loc=record.url, fields=dict(static))
        if "priority" not in entry.fields:
            entry.fields["priority"] = format_priority(record.visit_count * step + 0.5)
        if "changefreq" not in entry.fields:
            entry.fields["changefreq"] = derive_changefreq(entry.fields["priority"])
        entries.append(entry)
    return entries
