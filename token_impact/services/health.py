"""交易所连通性与延迟探测。"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Mapping

from ..clients.base import VenueAdapter
from ..types import HealthReport, VenueHealth, VenueId, utcnow

logger = logging.getLogger(__name__)

DEGRADED_THRESHOLD_MS = 500


async def ping_venue(adapter: VenueAdapter, *, degraded_after_ms: int = DEGRADED_THRESHOLD_MS, timeout: float = 5.0) -> VenueHealth:
    """Ping a single venue: ok within the latency threshold, degraded above it, offline on failure."""
    start = time.perf_counter()
    try:
        await asyncio.wait_for(adapter.ping(), timeout=timeout)
    except Exception as exc:  # noqa: BLE001
        latency = round((time.perf_counter() - start) * 1000)
        logger.warning("%s ping failed: %r", adapter.venue.value, exc)
        return VenueHealth(venue=adapter.venue, status="offline", latency_ms=latency, error=str(exc) or type(exc).__name__)
    latency = round((time.perf_counter() - start) * 1000)
    status = "degraded" if latency > degraded_after_ms else "ok"
    return VenueHealth(venue=adapter.venue, status=status, latency_ms=latency)


def overall_status(venues: list[VenueHealth]) -> str:
    """全部离线为 offline；任一离线或降级为 degraded；否则 ok。"""
    statuses = [v.status for v in venues]
    if statuses and all(s == "offline" for s in statuses):
        return "offline"
    if any(s in ("offline", "degraded") for s in statuses):
        return "degraded"
    return "ok"


async def check_health(
    adapters: Mapping[VenueId, VenueAdapter],
    *,
    degraded_after_ms: int = DEGRADED_THRESHOLD_MS,
    timeout: float = 5.0,
) -> HealthReport:
    """并发探测所有交易所并汇总整体状态。"""
    venues = await asyncio.gather(
        *(ping_venue(a, degraded_after_ms=degraded_after_ms, timeout=timeout) for a in adapters.values())
    )
    return HealthReport(status=overall_status(list(venues)), venues=tuple(venues), timestamp=utcnow())


__all__ = ["check_health", "ping_venue", "overall_status", "DEGRADED_THRESHOLD_MS"]
