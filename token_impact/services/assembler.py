"""把聚合结果与价格冲击计算合并为最终报价，并选出最优交易所。"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Mapping, Optional, Union

from ..exceptions import AllVenuesUnreachable
from ..types import (
    AggregatedBatch,
    AggregatedQuoteResponse,
    QuoteRecord,
    Side,
    VenueFetchFailure,
    VenueFetchSuccess,
    VenueId,
    utcnow,
)
from .pricing import compute_impact

logger = logging.getLogger(__name__)

STALE_THRESHOLD_MS = 5000

AffiliateProvider = Union[Mapping[VenueId, str], Callable[[VenueId], Optional[str]]]


class QuoteAssembler:
    """报价组装器。

    Args:
        affiliate_urls: venue -> 推广链接的映射或查询函数，结果原样附加。
        stale_threshold_ms: 订单簿过期阈值（毫秒），严格大于才算过期。
        clock: 当前时间来源，便于测试注入。
    """

    def __init__(
        self,
        affiliate_urls: Optional[AffiliateProvider] = None,
        *,
        stale_threshold_ms: int = STALE_THRESHOLD_MS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._affiliate = affiliate_urls or {}
        self.stale_threshold = timedelta(milliseconds=stale_threshold_ms)
        self._clock = clock

    def assemble(self, batch: AggregatedBatch, now: Optional[datetime] = None) -> AggregatedQuoteResponse:
        """逐个交易所计算价格冲击、标记过期，并选出最优交易所。

        Args:
            batch: Aggregator 输出的原始批次。
            now: 过期判断使用的当前时间，缺省取 ``clock()``。

        Returns:
            `AggregatedQuoteResponse`，记录顺序与批次一致。

        Raises:
            AllVenuesUnreachable: 批次中所有交易所均失败。
        """
        failures = [r for r in batch.results if isinstance(r, VenueFetchFailure)]
        if batch.results and len(failures) == len(batch.results):
            logger.error("all venues failed for %s", batch.symbol)
            raise AllVenuesUnreachable(failures)

        now = now or self._clock()
        records = tuple(
            self._success(r, batch, now) if isinstance(r, VenueFetchSuccess) else self._failure(r)
            for r in batch.results
        )
        return AggregatedQuoteResponse(
            symbol=batch.symbol,
            side=batch.side,
            quantity=batch.quantity,
            timestamp=batch.timestamp,
            results=records,
            best_venue=select_best_venue(records, batch.side),
        )

    def is_stale(self, timestamp: datetime, now: datetime) -> bool:
        return now - timestamp > self.stale_threshold

    def affiliate_url(self, venue: VenueId) -> Optional[str]:
        if callable(self._affiliate):
            return self._affiliate(venue)
        return self._affiliate.get(venue)

    def _success(self, result: VenueFetchSuccess, batch: AggregatedBatch, now: datetime) -> QuoteRecord:
        impact = compute_impact(batch.side, batch.quantity, result.orderbook, result.volume_24h)
        stale = self.is_stale(result.orderbook.timestamp, now)
        if stale:
            logger.info("%s orderbook is stale (%s old)", result.venue.value, now - result.orderbook.timestamp)
        return QuoteRecord(
            venue=result.venue,
            status="ok",
            impact=impact,
            stale=stale,
            affiliate_url=self.affiliate_url(result.venue),
        )

    def _failure(self, result: VenueFetchFailure) -> QuoteRecord:
        return QuoteRecord(
            venue=result.venue,
            status=result.kind.value,
            message=result.message,
            affiliate_url=self.affiliate_url(result.venue),
        )


def select_best_venue(records: Iterable[QuoteRecord], side: Side) -> Optional[VenueId]:
    """在可完全成交的成功记录中选出最优交易所。

    BUY 取 total_cost 最小者，SELL 取 total_cost（所得）最大者；
    数值相同时保留顺序在前的记录。
    """
    best: Optional[QuoteRecord] = None
    for record in records:
        if not record.ok or record.impact is None or not record.impact.fillable:
            continue
        if best is None:
            best = record
            continue
        cost = record.impact.total_cost
        best_cost = best.impact.total_cost  # type: ignore[union-attr]
        if (side == Side.BUY and cost < best_cost) or (side == Side.SELL and cost > best_cost):
            best = record
    return best.venue if best else None


__all__ = ["QuoteAssembler", "select_best_venue", "STALE_THRESHOLD_MS"]
