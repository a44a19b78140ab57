"""报价请求的入口：校验输入，调度 Aggregator，交给 QuoteAssembler 组装。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from ..exceptions import InvalidQuoteRequest, UnsupportedSymbol
from ..types import AggregatedQuoteResponse, Side, VenueId
from .aggregator import Aggregator
from .assembler import QuoteAssembler
from .symbols import parse_symbol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteRequest:
    """已校验的报价请求。

    Attributes:
        symbol: ``BASE-QUOTE`` 规范交易对。
        side: 交易方向。
        quantity: 正的基础币数量。
        venues: 交易所子集，None 表示全部。
    """

    symbol: str
    side: Side
    quantity: Decimal
    venues: Optional[tuple[VenueId, ...]] = None

    @classmethod
    def parse(
        cls,
        symbol: str,
        side: str,
        quantity: Union[str, int, Decimal],
        venues: Optional[Union[str, Iterable[str]]] = None,
    ) -> "QuoteRequest":
        """按对外接口约定校验原始参数。

        Raises:
            InvalidQuoteRequest: 任一参数不合法。
        """
        issues: list[str] = []

        sym = (symbol or "").strip().upper()
        try:
            base, quote = parse_symbol(sym)
            sym = f"{base}-{quote}"
        except UnsupportedSymbol:
            issues.append("Symbol must be in format BASE-QUOTE (e.g., BTC-USD)")

        side_value: Optional[Side] = None
        try:
            side_value = Side((side or "").strip().upper())
        except ValueError:
            issues.append("Side must be BUY or SELL")

        qty: Optional[Decimal] = None
        try:
            qty = Decimal(str(quantity).strip())
        except (InvalidOperation, ValueError):
            issues.append("Enter a valid number")
        else:
            if not qty.is_finite():
                issues.append("Enter a valid number")
            elif qty <= 0:
                issues.append("Quantity must be greater than 0")

        venue_ids: Optional[tuple[VenueId, ...]] = None
        if venues:
            raw = venues.split(",") if isinstance(venues, str) else list(venues)
            names = [str(v).strip().lower() for v in raw if str(v).strip()]
            known = {v.value for v in VenueId}
            bad = [n for n in names if n not in known]
            if bad:
                issues.append(f"Unknown venue(s): {', '.join(bad)}")
            elif names:
                venue_ids = tuple(dict.fromkeys(VenueId(n) for n in names))

        if issues:
            raise InvalidQuoteRequest("; ".join(issues), details={"issues": issues})
        return cls(symbol=sym, side=side_value, quantity=qty, venues=venue_ids)  # type: ignore[arg-type]


class QuoteService:
    """组合 Aggregator 与 QuoteAssembler，对外提供一次完整报价。"""

    def __init__(self, aggregator: Aggregator, assembler: QuoteAssembler):
        self.aggregator = aggregator
        self.assembler = assembler

    async def quote(self, request: QuoteRequest, *, deadline: Optional[float] = None) -> AggregatedQuoteResponse:
        """执行报价。

        Args:
            request: 已校验的请求。
            deadline: 可选的总等待时间（秒）。

        Returns:
            含各交易所记录与最优交易所的响应。

        Raises:
            InvalidQuoteRequest: 请求了未配置适配器的交易所。
            AllVenuesUnreachable: 所有交易所均失败。
        """
        if request.venues:
            missing = [v.value for v in request.venues if v not in self.aggregator.adapters]
            if missing:
                raise InvalidQuoteRequest(
                    f"Venue(s) not configured: {', '.join(missing)}",
                    details={"issues": [f"Venue not configured: {name}" for name in missing]},
                )
        batch = await self.aggregator.fetch_all(
            request.symbol,
            request.side,
            request.quantity,
            request.venues,
            deadline=deadline,
        )
        response = self.assembler.assemble(batch)
        logger.info(
            "%s %s %s: %d/%d venues ok, best=%s",
            request.side.value,
            request.quantity,
            request.symbol,
            batch.success_count,
            len(batch.results),
            response.best_venue.value if response.best_venue else "-",
        )
        return response


__all__ = ["QuoteRequest", "QuoteService"]
