from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..exceptions import InvalidQuoteRequest
from ..types import Orderbook, PriceImpactResult, Side

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_TWO = Decimal("2")


def compute_impact(
    side: Side,
    quantity: Decimal,
    orderbook: Orderbook,
    volume_24h: Optional[Decimal] = None,
) -> PriceImpactResult:
    """
    Walk the book to compute average fill price, cost and impact for a given size.
    - BUY: consume asks from best to worst
    - SELL: consume bids from best to worst

    Pure and deterministic; Decimal arithmetic throughout so that
    total_cost equals the exact sum of price * consumed per level.
    """
    if quantity <= 0:
        raise InvalidQuoteRequest("Quantity must be greater than 0", details={"quantity": str(quantity)})

    best_bid_level = orderbook.best_bid()
    best_ask_level = orderbook.best_ask()
    best_bid = best_bid_level.price if best_bid_level else None
    best_ask = best_ask_level.price if best_ask_level else None
    mid_price = (best_bid + best_ask) / _TWO if best_bid is not None and best_ask is not None else None

    levels = orderbook.asks if side == Side.BUY else orderbook.bids
    remaining = quantity
    total_cost = _ZERO
    filled = _ZERO
    depth = 0

    for level in levels:
        if remaining <= 0:
            break
        take = min(remaining, level.quantity)
        total_cost += level.price * take
        filled += take
        remaining -= take
        depth += 1

    avg_fill_price = total_cost / filled if filled > 0 else None

    impact_pct: Optional[Decimal] = None
    if avg_fill_price is not None and mid_price is not None and mid_price > 0:
        # 统一符号：高于中间价为正；BUY 为正不利，SELL 为负不利
        impact_pct = (avg_fill_price - mid_price) / mid_price * _HUNDRED

    volume_pct = quantity / volume_24h * _HUNDRED if volume_24h is not None and volume_24h > 0 else None

    return PriceImpactResult(
        mid_price=mid_price,
        best_bid=best_bid,
        best_ask=best_ask,
        avg_fill_price=avg_fill_price,
        total_cost=total_cost,
        price_impact_pct=impact_pct,
        volume_pct=volume_pct,
        depth_consumed=depth,
        fillable=filled >= quantity,
        shortfall=max(_ZERO, quantity - filled),
        filled_quantity=filled,
    )


def visible_liquidity(orderbook: Orderbook, side: Side) -> Decimal:
    """Total quantity available on the side a given order would consume."""
    levels = orderbook.asks if side == Side.BUY else orderbook.bids
    return sum((level.quantity for level in levels), _ZERO)
