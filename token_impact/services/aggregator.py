"""多交易所并发抓取与部分失败处理。"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Set
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from ..clients.base import VenueAdapter
from ..exceptions import UnsupportedSymbol
from ..types import (
    AggregatedBatch,
    FailureKind,
    NormalizedSymbol,
    Side,
    VenueFetchFailure,
    VenueFetchResult,
    VenueId,
    utcnow,
)
from .symbols import SymbolNormalizer

logger = logging.getLogger(__name__)

_VENUE_ORDER = {venue: index for index, venue in enumerate(VenueId)}


class Aggregator:
    """并发调度各交易所适配器并收集每个结果。

    每个交易所在独立任务中运行：慢或失败的交易所不会延迟或拖垮其他
    交易所的结果；本类等待全部任务结束（成功、类型化失败或超时）后返回，
    不会因为第一个失败而提前取消。

    Args:
        adapters: 以交易所为键的适配器。
        normalizer: 交易对转换器。
        depth_hint: 传给适配器的期望档位数量。
    """

    def __init__(
        self,
        adapters: Mapping[VenueId, VenueAdapter],
        normalizer: SymbolNormalizer,
        *,
        depth_hint: int = 500,
    ):
        self.adapters = dict(adapters)
        self.normalizer = normalizer
        self.depth_hint = depth_hint

    async def fetch_all(
        self,
        symbol: str,
        side: Side,
        quantity: Decimal,
        venues: Optional[Iterable[VenueId]] = None,
        *,
        deadline: Optional[float] = None,
    ) -> AggregatedBatch:
        """并发抓取所有请求的交易所。

        Args:
            symbol: ``BASE-QUOTE`` 规范交易对。
            side: 交易方向，原样记录在批次中。
            quantity: 下单数量，原样记录在批次中。
            venues: 交易所子集；None 表示全部已注册的交易所。
            deadline: 可选的调用方总等待时间（秒），到期后仍未完成的
                交易所记为 timeout，已完成的结果保留。

        Returns:
            `AggregatedBatch`，结果顺序与请求顺序一致，与完成顺序无关。

        Raises:
            ValueError: 请求了空的交易所集合或未注册的交易所。
        """
        started_at = utcnow()
        selected = self._select(venues)

        try:
            normalized = self.normalizer.resolve(symbol)
        except UnsupportedSymbol as exc:
            results = tuple(
                VenueFetchFailure(venue=v, kind=FailureKind.UNAVAILABLE, message=exc.message) for v in selected
            )
            return AggregatedBatch(symbol=symbol, side=side, quantity=quantity, timestamp=started_at, results=results)

        t0 = time.perf_counter()
        logger.debug("fan-out %s to %s", normalized.symbol, ", ".join(v.value for v in selected))
        tasks = {venue: asyncio.ensure_future(self._fetch_one(venue, normalized)) for venue in selected}
        _, pending = await asyncio.wait(tasks.values(), timeout=deadline)
        for task in pending:
            # 不等待被取消的任务，未完成的结果直接丢弃
            task.cancel()

        results = tuple(self._settle(venue, task, pending) for venue, task in tasks.items())
        logger.debug(
            "batch %s settled in %.3fs (%d/%d ok)",
            normalized.symbol,
            time.perf_counter() - t0,
            sum(1 for r in results if r.ok),
            len(results),
        )
        return AggregatedBatch(
            symbol=normalized.symbol,
            side=side,
            quantity=quantity,
            timestamp=started_at,
            results=results,
        )

    def _select(self, venues: Optional[Iterable[VenueId]]) -> list[VenueId]:
        if venues is None:
            selected = list(self.adapters)
        else:
            requested = [VenueId(v) for v in venues]
            if isinstance(venues, Set):
                requested.sort(key=_VENUE_ORDER.__getitem__)
            selected = list(dict.fromkeys(requested))
        if not selected:
            raise ValueError("At least one venue must be requested")
        unknown = [v.value for v in selected if v not in self.adapters]
        if unknown:
            raise ValueError(f"No adapter registered for: {', '.join(unknown)}")
        return selected

    async def _fetch_one(self, venue: VenueId, symbol: NormalizedSymbol) -> VenueFetchResult:
        return await self.adapters[venue].fetch_orderbook(symbol, self.depth_hint)

    @staticmethod
    def _settle(venue: VenueId, task: "asyncio.Future[VenueFetchResult]", pending: Set) -> VenueFetchResult:
        if task in pending:
            logger.warning("%s still pending at caller deadline", venue.value)
            return VenueFetchFailure(venue=venue, kind=FailureKind.TIMEOUT, message=f"Deadline exceeded waiting for {venue.value}")
        if task.cancelled():
            return VenueFetchFailure(venue=venue, kind=FailureKind.ERROR, message=f"{venue.value} request cancelled")
        exc = task.exception()
        if exc is not None:
            # 适配器本应自行转换异常，这里兜底，保证异常不越过聚合层
            logger.warning("%s raised %r", venue.value, exc)
            return VenueFetchFailure(venue=venue, kind=FailureKind.ERROR, message=str(exc) or type(exc).__name__)
        return task.result()


__all__ = ["Aggregator"]
