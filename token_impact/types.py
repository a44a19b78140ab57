from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class VenueId(str, Enum):
    """支持的交易所标识；声明顺序即默认的展示/遍历顺序。"""

    BINANCE = "binance"
    COINBASE = "coinbase"
    KRAKEN = "kraken"


class FailureKind(str, Enum):
    ERROR = "error"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class OrderbookLevel:
    """单个盘口档位。

    Attributes:
        price: 档位价格（报价币计价），必须大于 0。
        quantity: 该价位挂单数量（基础币计），必须大于 0。
    """

    price: Decimal
    quantity: Decimal

    def __post_init__(self) -> None:
        if self.price <= 0 or self.quantity <= 0:
            raise ValueError(f"orderbook level must be positive: {self.price} x {self.quantity}")


@dataclass(frozen=True)
class Orderbook:
    """某一时刻的订单簿快照。

    Attributes:
        bids: 买盘，按价格从高到低排列（最优买价在前）。
        asks: 卖盘，按价格从低到高排列（最优卖价在前）。
        timestamp: 快照时间（UTC）。用于判断数据是否过期。
    """

    bids: tuple[OrderbookLevel, ...]
    asks: tuple[OrderbookLevel, ...]
    timestamp: datetime

    def best_bid(self) -> Optional[OrderbookLevel]:
        return self.bids[0] if self.bids else None

    def best_ask(self) -> Optional[OrderbookLevel]:
        return self.asks[0] if self.asks else None

    def is_empty(self) -> bool:
        return not self.bids and not self.asks


@dataclass(frozen=True)
class NormalizedSymbol:
    """统一格式的交易对。

    Attributes:
        symbol: ``BASE-QUOTE`` 形式的规范名称，如 ``BTC-USD``。
        base: 基础资产。
        quote: 计价资产。
        availability: 上架该交易对的交易所集合。
    """

    symbol: str
    base: str
    quote: str
    availability: frozenset[VenueId] = field(default_factory=lambda: frozenset(VenueId))

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class VenueFetchSuccess:
    venue: VenueId
    orderbook: Orderbook
    volume_24h: Decimal

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class VenueFetchFailure:
    venue: VenueId
    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False


VenueFetchResult = Union[VenueFetchSuccess, VenueFetchFailure]


@dataclass(frozen=True)
class PriceImpactResult:
    """单个交易所的吃单模拟结果。

    价格相关字段在无法定义时为 None（例如一侧盘口为空时没有中间价），
    ``volume_pct`` 在 24h 成交量未知时为 None，而不是 0。

    Attributes:
        mid_price: 最优买卖价的中间价。
        best_bid: 最优买价。
        best_ask: 最优卖价。
        avg_fill_price: 加权平均成交价。
        total_cost: BUY 为花费金额，SELL 为所得金额，均为正数。
        price_impact_pct: 平均成交价相对中间价的偏离百分比，高于中间价为正。
        volume_pct: 下单数量占 24h 成交量的百分比。
        depth_consumed: 触及的档位数量（含部分成交的档位）。
        fillable: 可见深度是否足以完全成交。
        shortfall: 未能成交的数量。
        filled_quantity: 实际成交数量。
    """

    mid_price: Optional[Decimal]
    best_bid: Optional[Decimal]
    best_ask: Optional[Decimal]
    avg_fill_price: Optional[Decimal]
    total_cost: Decimal
    price_impact_pct: Optional[Decimal]
    volume_pct: Optional[Decimal]
    depth_consumed: int
    fillable: bool
    shortfall: Decimal
    filled_quantity: Decimal


@dataclass(frozen=True)
class QuoteRecord:
    """合并抓取结果与计算结果后的单交易所报价记录。

    Attributes:
        venue: 交易所标识。
        status: ``ok`` 或失败类型（error/timeout/unavailable）。
        message: 失败时的错误信息。
        impact: 成功时的价格冲击计算结果。
        stale: 订单簿是否超过新鲜度阈值。
        affiliate_url: 由外部提供的推广链接，原样透传。
    """

    venue: VenueId
    status: str
    message: Optional[str] = None
    impact: Optional[PriceImpactResult] = None
    stale: bool = False
    affiliate_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"venue": self.venue.value, "status": self.status}
        if self.message:
            payload["error"] = self.message
        impact = self.impact
        if impact is not None:
            _put_decimal(payload, "midPrice", impact.mid_price)
            _put_decimal(payload, "bestBid", impact.best_bid)
            _put_decimal(payload, "bestAsk", impact.best_ask)
            _put_decimal(payload, "avgFillPrice", impact.avg_fill_price)
            _put_decimal(payload, "totalCost", impact.total_cost)
            _put_decimal(payload, "priceImpactPct", impact.price_impact_pct)
            _put_decimal(payload, "volumePct", impact.volume_pct)
            payload["depthConsumed"] = impact.depth_consumed
            payload["fillable"] = impact.fillable
            _put_decimal(payload, "shortfall", impact.shortfall)
            payload["stale"] = self.stale
        if self.affiliate_url is not None:
            payload["affiliateUrl"] = self.affiliate_url
        return payload


@dataclass(frozen=True)
class AggregatedBatch:
    """Aggregator 一次并发抓取的原始结果集合。

    ``timestamp`` 为批次发起时刻；``results`` 顺序与请求的交易所顺序一致。
    """

    symbol: str
    side: Side
    quantity: Decimal
    timestamp: datetime
    results: tuple[VenueFetchResult, ...]

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count


@dataclass(frozen=True)
class AggregatedQuoteResponse:
    symbol: str
    side: Side
    quantity: Decimal
    timestamp: datetime
    results: tuple[QuoteRecord, ...]
    best_venue: Optional[VenueId] = None

    def record_for(self, venue: VenueId) -> Optional[QuoteRecord]:
        for record in self.results:
            if record.venue == venue:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        """转换为可直接 ``json.dumps`` 的结构，数值以十进制字符串输出。"""

        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": format_decimal(self.quantity),
            "timestamp": epoch_millis(self.timestamp),
            "results": [record.to_dict() for record in self.results],
            "bestVenue": self.best_venue.value if self.best_venue else None,
        }


@dataclass(frozen=True)
class VenueHealth:
    venue: VenueId
    status: str  # ok | degraded | offline
    latency_ms: int
    error: Optional[str] = None


@dataclass(frozen=True)
class HealthReport:
    status: str
    venues: tuple[VenueHealth, ...]
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "venues": {
                h.venue.value: {"status": h.status, "latency": h.latency_ms} for h in self.venues
            },
            "timestamp": epoch_millis(self.timestamp),
        }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def format_decimal(value: Decimal) -> str:
    """以定点形式输出 Decimal，避免 ``1E+2`` 之类的科学计数法。"""

    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _put_decimal(payload: dict[str, Any], key: str, value: Optional[Decimal]) -> None:
    if value is not None:
        payload[key] = format_decimal(value)
