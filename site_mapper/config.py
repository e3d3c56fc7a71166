# === FILE: site_mapper/config.py ===
"""
Модуль для загрузки и валидации конфигурации генератора SiteMapper.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
)

#: Единственное имя агента: User-Agent краулера и агент для robots.txt.
AGENT_NAME = "Site-Mapper"

CHANGEFREQ_VALUES = ("always", "hourly", "daily", "weekly", "monthly", "yearly", "never")

DEFAULT_IGNORED_FILE_TYPES: List[str] = [
    "7z", "atom", "bmp", "css", "exe", "gif", "gz", "gzip", "ico", "jpeg", "jpg", "js",
    "json", "mp3", "mp4", "ogg", "pdf", "png", "rar", "rss", "ttf", "webm", "webp",
    "woff", "zip",
]

# Имя элемента XML без префикса пространства имён.
_ELEMENT_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]*")
_SCALAR_TYPES = (str, int, float, date)


def _check_field_tree(tree: Dict[str, Any], where: str) -> None:
    """Проверяет, что ключи являются именами элементов XML, а значения скалярами или mapping."""
    for key, value in tree.items():
        if not isinstance(key, str) or not _ELEMENT_NAME_RE.fullmatch(key) or key.lower().startswith("xml"):
            raise ValueError(f"{where}: {key!r} не является допустимым именем элемента XML")
        if isinstance(value, dict):
            if not value:
                raise ValueError(f"{where}.{key}: пустой mapping")
            _check_field_tree(value, f"{where}.{key}")
        elif value is None or not isinstance(value, _SCALAR_TYPES):
            raise ValueError(
                f"{where}.{key}: ожидается строка, число, дата или mapping, получено {type(value).__name__}"
            )


class GeneratorConfig(BaseModel):
    """Конфигурация для одного запуска генерации sitemap."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(
        ...,
        validation_alias=AliasChoices("base_url", "url"),
        description="Корневой URL сайта.",
    )
    file_name: str = Field(
        "sitemap.xml",
        min_length=1,
        validation_alias=AliasChoices("file_name", "fileName"),
        description="Имя выходного файла.",
    )
    file_path: Path = Field(
        Path("."),
        validation_alias=AliasChoices("file_path", "filePath"),
        description="Каталог для выходного файла.",
    )
    ignore_query_strings: bool = Field(
        True,
        validation_alias=AliasChoices("ignore_query_strings", "ignoreQueryStrings"),
        description="Отбрасывать query string перед дедупликацией.",
    )
    ignored_file_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORED_FILE_TYPES),
        validation_alias=AliasChoices("ignored_file_types", "ignoredFileTypes"),
        description="Расширения, которые краулер не загружает.",
    )
    fields: Dict[str, Any] = Field(
        default_factory=dict,
        description="Статические поля, добавляемые в каждую запись sitemap.",
    )

    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    rate_limit: float = Field(5.0, gt=0, description="Лимит запросов в секунду.")
    retry_times: int = Field(2, ge=0, description="Число повторных попыток при 5xx.")
    retry_backoff: float = Field(1.0, ge=0, description="Базовая пауза перед повтором (секунд), удваивается.")
    concurrency: int = Field(4, ge=1, description="Число параллельных воркеров.")

    @field_validator("base_url", mode="before")
    def _default_scheme(cls, v: Any) -> Any:
        if isinstance(v, str) and "://" not in v:
            return f"http://{v}"
        return v

    @field_validator("ignored_file_types")
    def _normalize_extensions(cls, v: List[str]) -> List[str]:
        return [ext.strip().lstrip(".").lower() for ext in v if ext.strip()]

    @field_validator("fields")
    def _check_fields(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if "loc" in v:
            raise ValueError("'loc' задаётся краулером и не может быть переопределён")
        _check_field_tree(v, "fields")
        if "changefreq" in v and v["changefreq"] not in CHANGEFREQ_VALUES:
            raise ValueError(f"changefreq должен быть одним из {', '.join(CHANGEFREQ_VALUES)}")
        if "priority" in v:
            try:
                priority = float(v["priority"])
            except (TypeError, ValueError):
                raise ValueError(f"priority должен быть числом, получено {v['priority']!r}") from None
            if not 0.0 <= priority <= 1.0:
                raise ValueError(f"priority должен быть в диапазоне [0, 1], получено {priority}")
        return v

    @property
    def output_path(self) -> Path:
        """Полный путь к выходному файлу."""
        return self.file_path / self.file_name


_ALIASES: Dict[str, str] = {
    "url": "base_url",
    "fileName": "file_name",
    "filePath": "file_path",
    "ignoreQueryStrings": "ignore_query_strings",
    "ignoredFileTypes": "ignored_file_types",
}


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def read_config_file(path: Union[str, Path]) -> dict[str, Any]:
    """Читает YAML или JSON файл конфигурации и возвращает сырой mapping."""
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def load_config(path: Union[str, Path, None] = None, **overrides: Any) -> GeneratorConfig:
    """
    Собирает GeneratorConfig из файла (если указан) и явных переопределений.

    Ключи файла в camelCase приводятся к именам полей, затем применяются
    переопределения: со значением None игнорируются, остальные имеют приоритет
    над значениями из файла. Ошибки схемы пробрасываются как ValidationError.
    """
    raw = read_config_file(path) if path is not None else {}
    data: dict[str, Any] = {_ALIASES.get(key, key): value for key, value in raw.items()}
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return GeneratorConfig(**data)
    except ValidationError:
        raise
