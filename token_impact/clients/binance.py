"""Binance 公共行情 REST 客户端。"""

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

# Binance 对 418（IP 被封禁）与 429 都视为限频
RATE_LIMIT_STATUSES = (418, 429)
MAX_DEPTH = 5000


class BinanceClient:
    """Binance 现货订单簿与 24h 成交量读取。

    使用 ``/api/v3/depth`` 与 ``/api/v3/ticker/24hr``，均为无需鉴权的公共接口。
    """

    venue = VenueId.BINANCE

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
        """抓取订单簿与 24h 成交量，失败时返回类型化的失败结果。

        Args:
            symbol: 规范交易对。
            depth_hint: 期望的单侧档位数量，超过接口上限时截断。

        Returns:
            `VenueFetchSuccess` 或 `VenueFetchFailure`。
        """
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
        await get_json(self._http, "/api/v3/ping", venue=self.venue, rate_limit_statuses=RATE_LIMIT_STATUSES)

    async def close(self) -> None:
        await self._http.aclose()

    async def _depth(self, native: str, limit: int) -> Orderbook:
        data = await get_json(
            self._http,
            "/api/v3/depth",
            venue=self.venue,
            params={"symbol": native, "limit": limit},
            pacer=self._pacer,
            rate_limit_statuses=RATE_LIMIT_STATUSES,
        )
        if not isinstance(data, dict):
            raise VenueError(f"Unexpected depth payload for {native}")
        return build_orderbook(data.get("bids"), data.get("asks"))

    async def _volume(self, native: str) -> Decimal:
        data = await get_json(
            self._http,
            "/api/v3/ticker/24hr",
            venue=self.venue,
            params={"symbol": native},
            pacer=self._pacer,
            rate_limit_statuses=RATE_LIMIT_STATUSES,
        )
        if not isinstance(data, dict) or "volume" not in data:
            raise VenueError(f"No 24h volume in ticker for {native}")
        return to_decimal(data["volume"])
