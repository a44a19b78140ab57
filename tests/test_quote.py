import asyncio
import pathlib
import sys
from decimal import Decimal

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from token_impact.exceptions import AllVenuesUnreachable, InvalidQuoteRequest
from token_impact.services.aggregator import Aggregator
from token_impact.services.assembler import QuoteAssembler
from token_impact.services.quote import QuoteRequest, QuoteService
from token_impact.services.symbols import SymbolNormalizer
from token_impact.types import (
    FailureKind,
    Orderbook,
    OrderbookLevel,
    Side,
    VenueFetchFailure,
    VenueFetchSuccess,
    VenueId,
    utcnow,
)

D = Decimal


class StaticAdapter:
    def __init__(self, venue: VenueId, ask: str | None):
        self.venue = venue
        self.ask = ask

    async def fetch_orderbook(self, symbol, depth_hint):
        if self.ask is None:
            return VenueFetchFailure(venue=self.venue, kind=FailureKind.ERROR, message="HTTP 502: Bad Gateway")
        book = Orderbook(
            bids=(OrderbookLevel(D("1"), D("100")),),
            asks=(OrderbookLevel(D(self.ask), D("100")),),
            timestamp=utcnow(),
        )
        return VenueFetchSuccess(venue=self.venue, orderbook=book, volume_24h=D("5000"))

    async def ping(self):
        return None

    async def close(self):
        return None


def _service(**asks) -> QuoteService:
    adapters = {VenueId(name): StaticAdapter(VenueId(name), ask) for name, ask in asks.items()}
    normalizer = SymbolNormalizer()
    return QuoteService(Aggregator(adapters, normalizer), QuoteAssembler())


def test_parse_normalizes_input() -> None:
    request = QuoteRequest.parse(" btc-usd ", "sell", "1.50", "Kraken, coinbase,kraken")
    assert request.symbol == "BTC-USD"
    assert request.side == Side.SELL
    assert request.quantity == D("1.5")
    assert request.venues == (VenueId.KRAKEN, VenueId.COINBASE)


def test_parse_without_venues_means_all() -> None:
    assert QuoteRequest.parse("ETH-USDT", "BUY", 2).venues is None


@pytest.mark.parametrize(
    "symbol,side,quantity,venues,issue",
    [
        ("BTCUSD", "BUY", "1", None, "BASE-QUOTE"),
        ("BTC-USD", "HOLD", "1", None, "BUY or SELL"),
        ("BTC-USD", "BUY", "abc", None, "valid number"),
        ("BTC-USD", "BUY", "NaN", None, "valid number"),
        ("BTC-USD", "BUY", "0", None, "greater than 0"),
        ("BTC-USD", "BUY", "-2", None, "greater than 0"),
        ("BTC-USD", "BUY", "1", "binance,ftx", "ftx"),
    ],
)
def test_parse_rejects_bad_input(symbol, side, quantity, venues, issue) -> None:
    with pytest.raises(InvalidQuoteRequest) as info:
        QuoteRequest.parse(symbol, side, quantity, venues)
    assert info.value.code == "E_VALIDATION"
    assert any(issue in text for text in info.value.details["issues"])


def test_parse_collects_every_issue() -> None:
    with pytest.raises(InvalidQuoteRequest) as info:
        QuoteRequest.parse("bad", "up", "-1")
    assert len(info.value.details["issues"]) == 3


def test_service_quotes_and_picks_best() -> None:
    service = _service(binance="101", coinbase=None, kraken="100.5")
    request = QuoteRequest.parse("BTC-USDT", "BUY", "2")
    response = asyncio.run(service.quote(request))
    assert [r.venue for r in response.results] == [VenueId.BINANCE, VenueId.COINBASE, VenueId.KRAKEN]
    assert response.record_for(VenueId.COINBASE).status == "error"
    assert response.best_venue == VenueId.KRAKEN
    assert response.record_for(VenueId.KRAKEN).impact.total_cost == D("201")


def test_service_respects_venue_subset() -> None:
    service = _service(binance="101", kraken="100.5")
    request = QuoteRequest.parse("BTC-USDT", "BUY", "1", ["binance"])
    response = asyncio.run(service.quote(request))
    assert [r.venue for r in response.results] == [VenueId.BINANCE]
    assert response.best_venue == VenueId.BINANCE


def test_service_raises_when_every_venue_fails() -> None:
    service = _service(binance=None, kraken=None)
    with pytest.raises(AllVenuesUnreachable):
        asyncio.run(service.quote(QuoteRequest.parse("BTC-USDT", "BUY", "1")))


def test_service_rejects_unconfigured_venue() -> None:
    service = _service(binance="101")
    request = QuoteRequest.parse("BTC-USDT", "BUY", "1", "kraken")
    with pytest.raises(InvalidQuoteRequest) as info:
        asyncio.run(service.quote(request))
    assert info.value.details["issues"] == ["Venue not configured: kraken"]
