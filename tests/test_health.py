import asyncio
import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from token_impact.exceptions import VenueError
from token_impact.services.health import check_health, overall_status
from token_impact.types import VenueHealth, VenueId


class PingAdapter:
    def __init__(self, venue: VenueId, delay: float = 0.0, fail: bool = False):
        self.venue = venue
        self.delay = delay
        self.fail = fail

    async def fetch_orderbook(self, symbol, depth_hint):
        raise NotImplementedError

    async def ping(self):
        await asyncio.sleep(self.delay)
        if self.fail:
            raise VenueError("HTTP 503: Service Unavailable", status_code=503)

    async def close(self):
        return None


def _health(*statuses: str) -> list[VenueHealth]:
    return [VenueHealth(venue=v, status=s, latency_ms=10) for v, s in zip(VenueId, statuses)]


def test_overall_status_rules() -> None:
    assert overall_status(_health("ok", "ok", "ok")) == "ok"
    assert overall_status(_health("ok", "degraded", "ok")) == "degraded"
    assert overall_status(_health("ok", "offline", "ok")) == "degraded"
    assert overall_status(_health("offline", "offline", "offline")) == "offline"


def test_check_health_classifies_each_venue() -> None:
    adapters = {
        VenueId.BINANCE: PingAdapter(VenueId.BINANCE),
        VenueId.COINBASE: PingAdapter(VenueId.COINBASE, delay=0.2),
        VenueId.KRAKEN: PingAdapter(VenueId.KRAKEN, fail=True),
    }
    report = asyncio.run(check_health(adapters, degraded_after_ms=100, timeout=1.0))
    statuses = {h.venue: h.status for h in report.venues}
    assert statuses == {
        VenueId.BINANCE: "ok",
        VenueId.COINBASE: "degraded",
        VenueId.KRAKEN: "offline",
    }
    assert report.status == "degraded"
    kraken = report.venues[2]
    assert "503" in kraken.error

    payload = report.to_dict()
    assert payload["venues"]["coinbase"]["status"] == "degraded"
    assert isinstance(payload["venues"]["binance"]["latency"], int)


def test_ping_timeout_is_offline() -> None:
    adapters = {VenueId.BINANCE: PingAdapter(VenueId.BINANCE, delay=1.0)}
    report = asyncio.run(check_health(adapters, degraded_after_ms=500, timeout=0.05))
    assert report.status == "offline"
    assert report.venues[0].status == "offline"
