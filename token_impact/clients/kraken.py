"""Kraken 公共行情 REST 客户端。

Kraken 公共接口限频较严（约 1 req/s），所有请求都经过本实例的
`RequestPacer` 排队；节奏只作用于 Kraken 自身，不会拖慢其他交易所。
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Optional

import httpx

from ..config import Settings
from ..exceptions import UnsupportedSymbol, VenueError
from ..services.symbols import SymbolNormalizer
from ..types import NormalizedSymbol, Orderbook, VenueFetchResult, VenueId
from .base import RequestPacer, build_orderbook, get_json, guarded_fetch, to_decimal, unavailable

MAX_DEPTH = 500


class KrakenClient:
    """Kraken 订单簿与 24h 成交量读取。

    响应统一包在 ``{"error": [...], "result": {...}}`` 中，``result`` 以
    Kraken 自己的交易对名称（如 ``XXBTZUSD``）为键，与请求名称不一定一致，
    因此取第一个值。
    """

    venue = VenueId.KRAKEN

    def __init__(
        self,
        settings: Settings,
        normalizer: SymbolNormalizer,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.normalizer = normalizer
        self.timeout = settings.timeout(self.venue)
        self._http = http or httpx.AsyncClient(base_url=settings.base_url(self.venue), timeout=self.timeout)
        self._pacer = RequestPacer(settings.min_interval(self.venue))

    async def fetch_orderbook(self, symbol: NormalizedSymbol, depth_hint: int) -> VenueFetchResult:
        try:
            native = self.normalizer.denormalize(symbol, self.venue)
        except UnsupportedSymbol as exc:
            return unavailable(self.venue, exc)

        async def _fetch() -> tuple[Orderbook, Decimal]:
            book, volume = await asyncio.gather(
                self._depth(native, min(max(depth_hint, 1), MAX_DEPTH)),
                self._volume(native),
            )
            return book, volume

        return await guarded_fetch(self.venue, _fetch, self.timeout)

    async def ping(self) -> None:
        await self._public("/0/public/Time")

    async def close(self) -> None:
        await self._http.aclose()

    async def _public(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        data = await get_json(self._http, path, venue=self.venue, params=params, pacer=self._pacer)
        if not isinstance(data, dict):
            raise VenueError("Unexpected Kraken payload")
        errors = data.get("error") or []
        if errors:
            message = ", ".join(str(e) for e in errors)
            if "Rate limit" in message:
                raise VenueError(message, rate_limited=True)
            raise VenueError(f"Kraken API error: {message}")
        return data.get("result")

    async def _depth(self, native: str, count: int) -> Orderbook:
        result = await self._public("/0/public/Depth", {"pair": native, "count": count})
        pair_data = _first_value(result)
        if not isinstance(pair_data, dict):
            raise VenueError(f"No orderbook data returned for {native}")
        # Kraken 档位格式：[price, volume, timestamp]
        return build_orderbook(pair_data.get("bids"), pair_data.get("asks"))

    async def _volume(self, native: str) -> Decimal:
        result = await self._public("/0/public/Ticker", {"pair": native})
        ticker = _first_value(result)
        volume = ticker.get("v") if isinstance(ticker, dict) else None
        if not isinstance(volume, list) or len(volume) < 2:
            raise VenueError(f"No 24h volume in ticker for {native}")
        # v = [today, last 24 hours]
        return to_decimal(volume[1])


def _first_value(result: Any) -> Any:
    if not isinstance(result, dict) or not result:
        return None
    return next(iter(result.values()))
