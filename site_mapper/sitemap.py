# File: site_mapper/sitemap.py
"""site_mapper.sitemap: Сериализация записей в sitemap.xml (протокол sitemaps.org 0.9)."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

from lxml import etree

from site_mapper.logger import logger
from site_mapper.models import FieldValue, SitemapEntry

__all__ = ["SITEMAP_NS", "build_sitemap", "write_sitemap"]

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = f"{SITEMAP_NS} {SITEMAP_NS}/sitemap.xsd"


def _append(parent: etree._Element, tag: str, value: FieldValue) -> None:
    child = etree.SubElement(parent, f"{{{SITEMAP_NS}}}{tag}")
    if isinstance(value, dict):
        for sub_tag, sub_value in value.items():
            _append(child, sub_tag, sub_value)
    else:
        child.text = value


def build_sitemap(entries: Iterable[SitemapEntry]) -> bytes:
    """Собирает документ ``<urlset>`` в UTF-8 с отступом в 4 пробела.

    Порядок ``<url>`` совпадает с порядком *entries*, порядок дочерних
    элементов совпадает с :meth:`SitemapEntry.items`; значение-mapping
    разворачивается во вложенные элементы.
    """
    urlset = etree.Element(f"{{{SITEMAP_NS}}}urlset", nsmap={None: SITEMAP_NS, "xsi": XSI_NS})
    urlset.set(f"{{{XSI_NS}}}schemaLocation", SCHEMA_LOCATION)

    for entry in entries:
        url_el = etree.SubElement(urlset, f"{{{SITEMAP_NS}}}url")
        for tag, value in entry.items():
            _append(url_el, tag, value)

    etree.indent(urlset, space="    ")
    return etree.tostring(urlset, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def write_sitemap(entries: Iterable[SitemapEntry], output_path: Union[str, Path]) -> Path:
    """Атомарно записывает sitemap по указанному пути и возвращает Path.

    Документ пишется в уникальный временный файл рядом с целевым и
    переименовывается через :func:`os.replace`, так что параллельные запуски
    не портят чужой файл; при ошибке временный файл удаляется, а OSError
    пробрасывается вызывающему.
    """
    output = Path(output_path)
    document = build_sitemap(entries)
    tmp: Optional[Path] = None
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=output.parent, prefix=f".{output.name}.", suffix=".tmp", delete=False
        ) as fh:
            tmp = Path(fh.name)
            fh.write(document)
        # mkstemp создаёт файл с правами 0600
        os.chmod(tmp, 0o644)
        os.replace(tmp, output)
    except OSError:
        if tmp is not None:
            tmp.unlink(missing_ok=True)
        logger.error("Could not write sitemap to %s", output)
        raise

    logger.info("Sitemap written: %s (%d bytes)", output, len(document))
    return output
