import asyncio
import importlib
import json
import pathlib
import sys
from decimal import Decimal

from click.testing import CliRunner

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from token_impact.cli import main
from token_impact.cli.common import build_quote_service, close_adapters
from token_impact.config import Settings
from token_impact.services.aggregator import Aggregator
from token_impact.services.assembler import QuoteAssembler
from token_impact.services.quote import QuoteService
from token_impact.services.symbols import SymbolNormalizer
from token_impact.types import FailureKind, Orderbook, OrderbookLevel, VenueFetchFailure, VenueFetchSuccess, VenueId, utcnow

quote_cmd = importlib.import_module("token_impact.cli.quote")
venues_cmd = importlib.import_module("token_impact.cli.venues")

D = Decimal


class BookAdapter:
    def __init__(self, venue: VenueId, ask: str | None):
        self.venue = venue
        self.ask = ask
        self.closed = False

    async def fetch_orderbook(self, symbol, depth_hint):
        if self.ask is None:
            return VenueFetchFailure(venue=self.venue, kind=FailureKind.TIMEOUT, message=f"Timeout fetching from {self.venue.value}")
        book = Orderbook(
            bids=(OrderbookLevel(D("99"), D("10")),),
            asks=(OrderbookLevel(D(self.ask), D("10")),),
            timestamp=utcnow(),
        )
        return VenueFetchSuccess(venue=self.venue, orderbook=book, volume_24h=D("100"))

    async def ping(self):
        return None

    async def close(self):
        self.closed = True


def _patch_service(monkeypatch, **asks):
    adapters = {VenueId(name): BookAdapter(VenueId(name), ask) for name, ask in asks.items()}

    def fake_build(settings, venues=None):
        service = QuoteService(Aggregator(adapters, SymbolNormalizer()), QuoteAssembler({v: f"/go/{v.value}" for v in VenueId}))
        return service, adapters

    monkeypatch.setattr(quote_cmd, "build_quote_service", fake_build)
    return adapters


def test_quote_json_output(monkeypatch) -> None:
    adapters = _patch_service(monkeypatch, binance=None, coinbase="101", kraken="100")
    result = CliRunner().invoke(main, ["--log-level", "CRITICAL", "quote", "btc-usdt", "2", "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["symbol"] == "BTC-USDT"
    assert payload["bestVenue"] == "kraken"
    assert [r["status"] for r in payload["results"]] == ["timeout", "ok", "ok"]
    assert payload["results"][2]["totalCost"] == "200"
    assert all(a.closed for a in adapters.values())


def test_quote_table_output(monkeypatch) -> None:
    _patch_service(monkeypatch, coinbase="101", kraken="100")
    result = CliRunner().invoke(main, ["quote", "BTC-USDT", "1", "--side", "sell"], env={"COLUMNS": "200"})
    assert result.exit_code == 0, result.output
    assert "kraken" in result.output
    assert "coinbase" in result.output


def test_quote_validation_error_exits_nonzero() -> None:
    result = CliRunner().invoke(main, ["--log-level", "CRITICAL", "quote", "BTC-USD", "0", "--json"])
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "E_VALIDATION"


def test_quote_all_failed_exits_nonzero(monkeypatch) -> None:
    _patch_service(monkeypatch, binance=None, kraken=None)
    result = CliRunner().invoke(main, ["--log-level", "CRITICAL", "quote", "BTC-USDT", "1", "--json"])
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["message"] == "All venues failed to respond"


def test_symbols_filters() -> None:
    result = CliRunner().invoke(main, ["symbols", "--quote", "gbp"], env={"COLUMNS": "200"})
    assert result.exit_code == 0, result.output
    assert "BTC-GBP" in result.output
    assert "BTC-USDT" not in result.output


def test_symbols_no_match() -> None:
    result = CliRunner().invoke(main, ["symbols", "--search", "zzzz"])
    assert result.exit_code == 0
    assert "No symbols match" in result.output


def test_normalize_shows_native_spellings() -> None:
    result = CliRunner().invoke(main, ["normalize", "XXBTZUSD", "--venue", "kraken"], env={"COLUMNS": "200"})
    assert result.exit_code == 0, result.output
    assert "BTC-USD" in result.output
    assert "XBTUSD" in result.output
    assert "unavailable" in result.output


def test_normalize_unknown_spelling_fails() -> None:
    result = CliRunner().invoke(main, ["normalize", "BTC", "--venue", "binance"])
    assert result.exit_code == 1


def test_quote_unconfigured_venue_is_validation_error(monkeypatch) -> None:
    _patch_service(monkeypatch, binance="101")
    result = CliRunner().invoke(main, ["--log-level", "CRITICAL", "quote", "BTC-USDT", "1", "--venues", "kraken", "--json"])
    assert result.exit_code == 1
    assert not isinstance(result.exception, ValueError)
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "E_VALIDATION"
    assert "kraken" in payload["error"]["message"]


def test_build_quote_service_covers_requested_venues(monkeypatch) -> None:
    monkeypatch.setenv("TOKEN_IMPACT_DEFAULT_VENUES", "binance")
    service, adapters = build_quote_service(Settings.load(), (VenueId.KRAKEN,))
    try:
        assert list(adapters) == [VenueId.KRAKEN]
        assert VenueId.KRAKEN in service.aggregator.adapters
    finally:
        asyncio.run(close_adapters(adapters))


class PingOnlyAdapter(BookAdapter):
    def __init__(self, venue: VenueId, fail: bool = False):
        super().__init__(venue, None)
        self.fail = fail

    async def ping(self):
        if self.fail:
            raise RuntimeError("connection refused")


def test_health_json_output(monkeypatch) -> None:
    adapters = {
        VenueId.BINANCE: PingOnlyAdapter(VenueId.BINANCE),
        VenueId.KRAKEN: PingOnlyAdapter(VenueId.KRAKEN, fail=True),
    }
    monkeypatch.setattr(venues_cmd, "build_adapters", lambda settings, normalizer: adapters)
    result = CliRunner().invoke(main, ["--log-level", "CRITICAL", "health", "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["status"] == "degraded"
    assert payload["venues"]["binance"]["status"] == "ok"
    assert payload["venues"]["kraken"]["status"] == "offline"
    assert all(a.closed for a in adapters.values())


def test_health_table_output(monkeypatch) -> None:
    adapters = {VenueId.COINBASE: PingOnlyAdapter(VenueId.COINBASE)}
    monkeypatch.setattr(venues_cmd, "build_adapters", lambda settings, normalizer: adapters)
    result = CliRunner().invoke(main, ["health"], env={"COLUMNS": "200"})
    assert result.exit_code == 0, result.output
    assert "coinbase" in result.output
    assert "Venue health: ok" in result.output
