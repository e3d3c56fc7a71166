# === FILE: site_mapper/logger.py ===
"""Логирование SiteMapper.

Консоль предназначена оператору: записи INFO (``Found: ...``,
``Ignored: ...``, ``Already known: ...``) печатаются как есть, остальные
уровни получают префикс ``LEVEL:``. Файл логов (``--log-file``) получает
полный формат с временем и именем логгера.

    from site_mapper.logger import logger
    logger.info("Found: %s", url)
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Final, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteMapper"


class ConsoleFormatter(logging.Formatter):
    """INFO → bare message, anything else → ``LEVEL: message``."""

    def __init__(self) -> None:
        super().__init__("%(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno == logging.INFO:
            return text
        return f"{record.levelname}: {text}"


def init_logging(
    level: Union[int, str] = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Заменяет обработчики логгера ``SiteMapper`` и применяет *level*.

    *log_format* относится только к файлу логов.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    for handler in list(lg.handlers):
        lg.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ConsoleFormatter())
    lg.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(logging.Formatter(log_format))
        lg.addHandler(fh)

    lg.propagate = False
    return lg


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "ConsoleFormatter", "LOGGER_NAME", "DEFAULT_FORMAT"]
