"""报价相关 CLI 子命令。"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import click

from ..config import Settings
from ..exceptions import TokenImpactError
from ..services.quote import QuoteRequest
from . import main
from .common import build_quote_service, close_adapters, err_console, print_quote

logger = logging.getLogger(__name__)


async def _run_quote(request: QuoteRequest, as_json: bool, deadline: Optional[float]) -> None:
    settings = Settings.load()
    service, adapters = build_quote_service(settings, request.venues)
    try:
        response = await service.quote(request, deadline=deadline)
    finally:
        await close_adapters(adapters)

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
    else:
        print_quote(response)


@main.command("quote")
@click.argument("symbol", type=str)
@click.argument("quantity", type=str)
@click.option(
    "--side",
    type=click.Choice(["buy", "sell"], case_sensitive=False),
    default="buy",
    show_default=True,
    help="买入遍历卖盘，卖出遍历买盘。",
)
@click.option("--venues", default=None, help="逗号分隔的交易所子集，如 binance,kraken。")
@click.option("--json", "as_json", is_flag=True, help="输出 JSON 而不是表格。")
@click.option("--deadline", type=float, default=None, help="整体最长等待秒数，超时的交易所记为 timeout。")
def quote(symbol: str, quantity: str, side: str, venues: Optional[str], as_json: bool, deadline: Optional[float]) -> None:
    """计算在各交易所成交 QUANTITY 个 SYMBOL（如 BTC-USD）的真实价格。"""
    try:
        request = QuoteRequest.parse(symbol, side, quantity, venues)
        asyncio.run(_run_quote(request, as_json, deadline))
    except TokenImpactError as exc:
        logger.error("quote failed: %s", exc.message)
        if as_json:
            click.echo(json.dumps(exc.to_dict(), indent=2))
        else:
            err_console.print(f"[red]{exc.message}[/red]")
            errors = exc.details.get("errors")
            if errors:
                err_console.print(f"[red]{errors}[/red]")
        raise SystemExit(1) from exc


__all__ = ["quote"]
