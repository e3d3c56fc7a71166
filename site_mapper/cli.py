# === FILE: site_mapper/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска генератора SiteMapper через командную строку.

Команды:
  generate URL   Обойти сайт и записать sitemap.xml
  config URL     Показать итоговую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (необязательно)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат записей в файле логов (e.g. "%(asctime)s %(levelname)s %(message)s")

Команда generate опции:
  --file-name NAME        Имя выходного файла (default: sitemap.xml)
  --file-path DIR         Каталог для выходного файла (default: .)
  --keep-query-strings    Не отбрасывать query string у найденных URL
  --field KEY=VALUE       Статическое поле для каждой записи (можно повторять)

Дополнительно:
  --version, -v       Показать версию SiteMapper

Пример:
  site-mapper generate https://example.com --file-path public/ --field changefreq=weekly
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Tuple

import click
from pydantic import ValidationError

from site_mapper import __version__
from site_mapper.config import GeneratorConfig, load_config
from site_mapper.engine import SiteNotFoundError, generate_sitemap
from site_mapper.logger import DEFAULT_FORMAT, init_logging

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def parse_fields(values: Tuple[str, ...]) -> Dict[str, Any]:
    """Разбирает повторяемую опцию ``--field KEY=VALUE`` в упорядоченный dict."""
    fields: Dict[str, Any] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"ожидается KEY=VALUE, получено {item!r}", param_hint="--field")
        fields[key.strip()] = value.strip()
    return fields


def build_config(ctx: click.Context, url: str, **overrides: Any) -> GeneratorConfig:
    try:
        return load_config(ctx.obj['config_path'], base_url=url, **overrides)
    except (ValidationError, ValueError, TypeError, OSError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMapper, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для файла логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteMapper CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command('generate', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option(
    '--file-name', 'file_name',
    default=None,
    help='Имя выходного файла [sitemap.xml]'
)
@click.option(
    '--file-path', 'file_path',
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help='Каталог для выходного файла [.]'
)
@click.option(
    '--keep-query-strings', 'keep_query_strings', is_flag=True, default=None,
    help='Не отбрасывать query string у найденных URL'
)
@click.option(
    '--field', 'field_values', multiple=True, metavar='KEY=VALUE',
    help='Статическое поле для каждой записи (priority, changefreq, ...)'
)
@click.pass_context
def generate(ctx, url, file_name, file_path, keep_query_strings, field_values):
    """Обойти сайт URL и записать sitemap."""
    cfg = build_config(
        ctx,
        url,
        file_name=file_name,
        file_path=file_path,
        ignore_query_strings=False if keep_query_strings else None,
        fields=parse_fields(field_values) or None,
    )
    click.echo(f'Starting crawl: {cfg.base_url}')
    try:
        output = asyncio.run(generate_sitemap(cfg))
    except SiteNotFoundError:
        print_error('Site not found')
    except OSError as e:
        print_error(f'Ошибка при записи sitemap: {e}')
    except Exception as e:
        print_error(f'Ошибка при обходе сайта: {e}')

    click.echo(f'Sitemap created: {output}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.pass_context
def show_config(ctx, url):
    """Показать итоговую конфигурацию в JSON."""
    cfg = build_config(ctx, url)
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
