"""交易所适配器的公共协议与辅助工具。

适配器之间不使用继承：每个交易所实现 `VenueAdapter` 协议，
并通过组合复用这里的限频节奏器、HTTP 请求与盘口解析函数。
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, runtime_checkable

import httpx

from ..exceptions import UnsupportedSymbol, VenueError, VenueTimeout
from ..types import (
    FailureKind,
    NormalizedSymbol,
    Orderbook,
    OrderbookLevel,
    VenueFetchFailure,
    VenueFetchResult,
    VenueFetchSuccess,
    VenueId,
    utcnow,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class VenueAdapter(Protocol):
    """单个交易所的行情能力接口。"""

    venue: VenueId

    async def fetch_orderbook(self, symbol: NormalizedSymbol, depth_hint: int) -> VenueFetchResult:
        ...

    async def ping(self) -> None:
        ...

    async def close(self) -> None:
        ...


class RequestPacer:
    """单交易所的请求节奏控制器。

    每次调用先在短锁内预约下一个可用时间槽，释放锁后再等待，
    因此不会在网络请求期间持有锁，也不会影响其他交易所的请求。

    Args:
        min_interval: 两次请求之间的最小间隔（秒），0 表示不限制。
    """

    def __init__(self, min_interval: float, clock: Callable[[], float] = time.monotonic):
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)


async def get_json(
    http: httpx.AsyncClient,
    path: str,
    *,
    venue: VenueId,
    params: Optional[dict[str, Any]] = None,
    pacer: Optional[RequestPacer] = None,
    rate_limit_statuses: Iterable[int] = (429,),
) -> Any:
    """执行一次 GET 请求并返回 JSON。

    Raises:
        VenueTimeout: httpx 超时。
        VenueError: 网络错误、非 2xx 状态码或响应不是合法 JSON。
    """
    if pacer is not None:
        await pacer.wait()
    try:
        resp = await http.get(path, params=params, headers={"Accept": "application/json"})
    except httpx.TimeoutException as exc:
        raise VenueTimeout(f"Timeout fetching from {venue.value}") from exc
    except httpx.HTTPError as exc:
        raise VenueError(f"{venue.value} request failed: {exc}") from exc

    if resp.status_code in set(rate_limit_statuses):
        raise VenueError(f"Rate limited: {resp.status_code}", status_code=resp.status_code, rate_limited=True)
    if resp.status_code >= 400:
        raise VenueError(f"HTTP {resp.status_code}: {resp.reason_phrase}", status_code=resp.status_code)
    try:
        return resp.json()
    except ValueError as exc:
        raise VenueError(f"{venue.value} returned invalid JSON") from exc


def to_decimal(value: Any) -> Decimal:
    """将交易所返回的字符串/数字转换为 Decimal。

    Raises:
        VenueError: 无法解析或不是有限数值。
    """
    try:
        # float 先转 str，避免二进制浮点误差进入 Decimal
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise VenueError(f"Malformed numeric value: {value!r}") from exc
    if not result.is_finite():
        raise VenueError(f"Malformed numeric value: {value!r}")
    return result


def parse_levels(entries: Any, *, descending: bool) -> tuple[OrderbookLevel, ...]:
    """把 ``[price, quantity, ...]`` 形式的原始档位转换为排序后的 `OrderbookLevel`。

    数量为 0 的档位会被丢弃；同一价格的多条记录合并为一个档位（数量相加），
    保证价格严格单调。价格或数量为负、字段缺失等视为协议错误。

    Args:
        entries: 原始档位列表。
        descending: True 表示按价格降序（买盘），否则升序（卖盘）。

    Returns:
        排好序的档位元组。
    """
    if entries is None:
        return ()
    if not isinstance(entries, (list, tuple)):
        raise VenueError(f"Malformed orderbook side: {type(entries).__name__}")
    merged: dict[Decimal, Decimal] = {}
    for entry in entries:
        if not isinstance(entry, (list, tuple)) or len(entry) < 2:
            raise VenueError(f"Malformed orderbook level: {entry!r}")
        price = to_decimal(entry[0])
        quantity = to_decimal(entry[1])
        if quantity == 0:
            continue
        if price <= 0 or quantity < 0:
            raise VenueError(f"Malformed orderbook level: {entry!r}")
        merged[price] = merged.get(price, Decimal(0)) + quantity
    return tuple(
        OrderbookLevel(price=price, quantity=merged[price]) for price in sorted(merged, reverse=descending)
    )


def build_orderbook(bids_raw: Any, asks_raw: Any) -> Orderbook:
    """构造订单簿并以接收时刻作为快照时间。"""
    return Orderbook(
        bids=parse_levels(bids_raw, descending=True),
        asks=parse_levels(asks_raw, descending=False),
        timestamp=utcnow(),
    )


async def guarded_fetch(
    venue: VenueId,
    fetch: Callable[[], Awaitable[tuple[Orderbook, Decimal]]],
    timeout: float,
) -> VenueFetchResult:
    """在超时保护下执行一次抓取，并把所有异常转换为类型化的失败结果。

    Args:
        venue: 交易所标识。
        fetch: 返回 ``(orderbook, volume_24h)`` 的协程工厂。
        timeout: 本次调用的总超时（秒）。

    Returns:
        `VenueFetchSuccess` 或 `VenueFetchFailure`，不会向外抛出异常。
    """
    try:
        orderbook, volume = await asyncio.wait_for(fetch(), timeout=timeout)
    except (asyncio.TimeoutError, VenueTimeout):
        logger.warning("%s timed out after %.1fs", venue.value, timeout)
        return VenueFetchFailure(venue=venue, kind=FailureKind.TIMEOUT, message=f"Timeout fetching from {venue.value}")
    except UnsupportedSymbol as exc:
        return VenueFetchFailure(venue=venue, kind=FailureKind.UNAVAILABLE, message=exc.message)
    except VenueError as exc:
        logger.warning("%s failed: %s", venue.value, exc.message)
        return VenueFetchFailure(venue=venue, kind=FailureKind.ERROR, message=exc.message)
    except Exception as exc:  # noqa: BLE001
        logger.warning("%s failed unexpectedly: %r", venue.value, exc)
        return VenueFetchFailure(venue=venue, kind=FailureKind.ERROR, message=str(exc) or type(exc).__name__)
    return VenueFetchSuccess(venue=venue, orderbook=orderbook, volume_24h=volume)


def unavailable(venue: VenueId, exc: UnsupportedSymbol) -> VenueFetchFailure:
    logger.debug("%s unavailable: %s", venue.value, exc.message)
    return VenueFetchFailure(venue=venue, kind=FailureKind.UNAVAILABLE, message=exc.message)


__all__ = [
    "VenueAdapter",
    "RequestPacer",
    "get_json",
    "to_decimal",
    "parse_levels",
    "build_orderbook",
    "guarded_fetch",
    "unavailable",
]
