"""交易对目录与规范化子命令。"""

from __future__ import annotations

from typing import Optional

import click
from rich.table import Table

from ..exceptions import UnsupportedSymbol
from ..services.symbols import SymbolNormalizer
from ..types import VenueId
from . import main
from .common import catalog, console, print_symbols

_VENUE_CHOICE = click.Choice([v.value for v in VenueId], case_sensitive=False)


@main.command("symbols")
@click.option("--quote", default=None, help="按计价币过滤，如 USD。")
@click.option("--venue", type=_VENUE_CHOICE, default=None, help="只显示该交易所上架的交易对。")
@click.option("--search", default=None, help="按关键字过滤（匹配 base/quote）。")
@click.option("--limit", default=100, show_default=True, type=click.IntRange(1, 500))
def symbols(quote: Optional[str], venue: Optional[str], search: Optional[str], limit: int) -> None:
    """列出目录中的交易对及各交易所可用性。"""
    table = catalog.snapshot()
    rows = table.filter(quote=quote, venue=VenueId(venue.lower()) if venue else None, search=search)
    if not rows:
        console.print("[yellow]No symbols match the given filters[/yellow]")
        return
    print_symbols(rows[:limit], title=f"Symbols ({min(len(rows), limit)} of {len(rows)})")


@main.command("normalize")
@click.argument("venue_symbol", type=str)
@click.option("--venue", type=_VENUE_CHOICE, required=True, help="原生写法所属的交易所。")
def normalize(venue_symbol: str, venue: str) -> None:
    """把交易所原生写法（如 XXBTZUSD）转换为规范交易对，并显示各交易所写法。"""
    normalizer = SymbolNormalizer(catalog.snapshot())
    try:
        entry = normalizer.normalize(venue_symbol, VenueId(venue.lower()))
    except UnsupportedSymbol as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise SystemExit(1) from exc

    table = Table(title=f"{venue_symbol} -> {entry.symbol}", header_style="bold cyan")
    table.add_column("Venue", style="magenta")
    table.add_column("Native symbol")
    for v in VenueId:
        try:
            native = normalizer.denormalize(entry, v)
        except UnsupportedSymbol:
            native = "[dim]unavailable[/dim]"
        table.add_row(v.value, native)
    console.print(table)


__all__ = ["symbols", "normalize"]
