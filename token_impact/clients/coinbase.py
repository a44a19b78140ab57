"""Coinbase Exchange 公共行情 REST 客户端。"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Optional

import httpx

from ..config import Settings
from ..exceptions import UnsupportedSymbol, VenueError
from ..services.symbols import SymbolNormalizer
from ..types import NormalizedSymbol, Orderbook, VenueFetchResult, VenueId
from .base import RequestPacer, build_orderbook, get_json, guarded_fetch, to_decimal, unavailable


class CoinbaseClient:
    """Coinbase 订单簿与 24h 统计读取。

    level=2 返回聚合后的价位（``[price, size, num_orders]``），
    不支持指定深度，因此忽略 ``depth_hint``。
    """

    venue = VenueId.COINBASE

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
            book, volume = await asyncio.gather(self._book(native), self._volume(native))
            return book, volume

        return await guarded_fetch(self.venue, _fetch, self.timeout)

    async def ping(self) -> None:
        await get_json(self._http, "/time", venue=self.venue)

    async def close(self) -> None:
        await self._http.aclose()

    async def _book(self, native: str) -> Orderbook:
        data = await get_json(
            self._http,
            f"/products/{native}/book",
            venue=self.venue,
            params={"level": 2},
            pacer=self._pacer,
        )
        if not isinstance(data, dict):
            raise VenueError(f"Unexpected book payload for {native}")
        if "message" in data and "bids" not in data:
            raise VenueError(f"Coinbase API error: {data['message']}")
        return build_orderbook(data.get("bids"), data.get("asks"))

    async def _volume(self, native: str) -> Decimal:
        data = await get_json(self._http, f"/products/{native}/stats", venue=self.venue, pacer=self._pacer)
        if not isinstance(data, dict) or "volume" not in data:
            raise VenueError(f"No 24h volume in stats for {native}")
        return to_decimal(data["volume"])
