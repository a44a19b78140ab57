"""CLI 通用工具与共享对象。

本模块提供：

- 统一的 Rich `console` 实例与日志初始化；
- 报价服务与适配器的构建/关闭辅助函数；
- 各子命令复用的表格渲染函数。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..clients import build_adapters
from ..clients.base import VenueAdapter
from ..config import Settings
from ..services.aggregator import Aggregator
from ..services.assembler import QuoteAssembler
from ..services.quote import QuoteService
from ..services.symbols import SymbolCatalog, SymbolNormalizer
from ..types import AggregatedQuoteResponse, HealthReport, NormalizedSymbol, Side, VenueId, format_decimal

console = Console()
err_console = Console(stderr=True)

catalog = SymbolCatalog()


def setup_logging(level: str) -> None:
    """安装 RichHandler；日志输出到 stderr，避免污染 ``--json`` 输出。"""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def build_quote_service(
    settings: Settings, venues: Optional[Iterable[VenueId]] = None
) -> tuple[QuoteService, dict]:
    """根据配置构建报价服务。

    Args:
        settings: 全局配置对象。
        venues: 本次请求的交易所子集，缺省为 ``settings.default_venues``。

    Returns:
        二元组 (QuoteService, adapters)，调用方负责在结束时关闭 adapters。
    """
    normalizer = SymbolNormalizer(catalog.snapshot())
    adapters = build_adapters(settings, normalizer, venues)
    aggregator = Aggregator(adapters, normalizer, depth_hint=settings.depth_hint)
    assembler = QuoteAssembler(settings.affiliate_urls(), stale_threshold_ms=settings.stale_threshold_ms)
    return QuoteService(aggregator, assembler), adapters


async def close_adapters(adapters: Mapping[object, VenueAdapter]) -> None:
    await asyncio.gather(*(a.close() for a in adapters.values()))


def _fmt(value, places: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:,.{places}f}"


def print_quote(response: AggregatedQuoteResponse) -> None:
    """以 Rich 表格形式渲染各交易所报价，最优交易所加 ★ 标记。

    Args:
        response: 组装后的报价响应。
    """
    verb = "cost" if response.side == Side.BUY else "proceeds"
    table = Table(
        title=f"{response.side.value} {format_decimal(response.quantity)} {response.symbol}",
        header_style="bold cyan",
        show_lines=False,
        row_styles=["dim", ""],
    )
    table.add_column("Venue", style="magenta")
    table.add_column("Status")
    table.add_column("Mid", justify="right")
    table.add_column("Avg Fill", justify="right")
    table.add_column(f"Total {verb}", justify="right")
    table.add_column("Impact %", justify="right")
    table.add_column("Vol %", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column("Note", overflow="fold")

    for record in response.results:
        name = record.venue.value
        if record.venue == response.best_venue:
            name = f"★ {name}"
        impact = record.impact
        if impact is None:
            table.add_row(name, f"[red]{record.status}[/red]", "-", "-", "-", "-", "-", "-", record.message or "")
            continue
        # BUY 高于中间价不利，SELL 低于中间价不利
        adverse = impact.price_impact_pct is not None and (
            (response.side == Side.BUY and impact.price_impact_pct > 0)
            or (response.side == Side.SELL and impact.price_impact_pct < 0)
        )
        impact_style = "red" if adverse else "green"
        notes = []
        if not impact.fillable:
            notes.append(f"short {format_decimal(impact.shortfall)}")
        if record.stale:
            notes.append("stale")
        table.add_row(
            name,
            "[green]ok[/green]",
            _fmt(impact.mid_price),
            _fmt(impact.avg_fill_price, 4),
            _fmt(impact.total_cost),
            f"[{impact_style}]{_fmt(impact.price_impact_pct, 3)}[/{impact_style}]",
            _fmt(impact.volume_pct, 4),
            str(impact.depth_consumed),
            ", ".join(notes),
        )
    console.print(table)
    if response.best_venue is None:
        console.print("[yellow]No venue can fill the full quantity[/yellow]")


def print_health(report: HealthReport) -> None:
    styles = {"ok": "green", "degraded": "yellow", "offline": "red"}
    table = Table(title=f"Venue health: {report.status}", header_style="bold cyan")
    table.add_column("Venue", style="magenta")
    table.add_column("Status")
    table.add_column("Latency (ms)", justify="right")
    table.add_column("Error", overflow="fold")
    for h in report.venues:
        style = styles.get(h.status, "white")
        table.add_row(h.venue.value, f"[{style}]{h.status}[/{style}]", str(h.latency_ms), h.error or "")
    console.print(table)


def print_symbols(rows: list[NormalizedSymbol], title: Optional[str] = None) -> None:
    table = Table(title=title or "Symbols", header_style="bold cyan")
    table.add_column("Symbol")
    table.add_column("Base")
    table.add_column("Quote")
    table.add_column("Venues")
    for row in rows:
        venues = ", ".join(v.value for v in VenueId if v in row.availability)
        table.add_row(row.symbol, row.base, row.quote, venues)
    console.print(table)


__all__ = [
    "console",
    "err_console",
    "catalog",
    "setup_logging",
    "build_quote_service",
    "close_adapters",
    "print_quote",
    "print_health",
    "print_symbols",
]
