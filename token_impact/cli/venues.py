"""交易所健康检查子命令。"""

from __future__ import annotations

import asyncio
import json

import click

from ..clients import build_adapters
from ..config import Settings
from ..services.health import check_health
from ..services.symbols import SymbolNormalizer
from . import main
from .common import catalog, close_adapters, print_health


@main.command("health")
@click.option("--json", "as_json", is_flag=True, help="输出 JSON 而不是表格。")
def health(as_json: bool) -> None:
    """探测各交易所连通性与延迟。"""

    async def _show() -> None:
        settings = Settings.load()
        adapters = build_adapters(settings, SymbolNormalizer(catalog.snapshot()))
        try:
            report = await check_health(
                adapters,
                degraded_after_ms=settings.health_degraded_ms,
                timeout=settings.health_timeout,
            )
        finally:
            await close_adapters(adapters)
        if as_json:
            click.echo(json.dumps(report.to_dict(), indent=2))
        else:
            print_health(report)

    asyncio.run(_show())


__all__ = ["health"]
