import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from token_impact.exceptions import UnsupportedSymbol
from token_impact.services.symbols import (
    SymbolCatalog,
    SymbolNormalizer,
    SymbolTable,
    parse_symbol,
)
from token_impact.types import NormalizedSymbol, VenueId


@pytest.mark.parametrize(
    "native,venue,expected",
    [
        ("XXBTZUSD", VenueId.KRAKEN, "BTC-USD"),
        ("XBTUSD", VenueId.KRAKEN, "BTC-USD"),
        ("XETHZEUR", VenueId.KRAKEN, "ETH-EUR"),
        ("XDGUSD", VenueId.KRAKEN, "DOGE-USD"),
        ("ETHXBT", VenueId.KRAKEN, "ETH-BTC"),
        ("BTCUSDT", VenueId.BINANCE, "BTC-USDT"),
        ("ethbtc", VenueId.BINANCE, "ETH-BTC"),
        ("SOL-USD", VenueId.COINBASE, "SOL-USD"),
    ],
)
def test_normalize_native_symbols(native: str, venue: VenueId, expected: str) -> None:
    assert SymbolNormalizer().normalize(native, venue).symbol == expected


def test_denormalize_per_venue() -> None:
    normalizer = SymbolNormalizer()
    btc_usdt = normalizer.resolve("BTC-USDT")
    assert normalizer.denormalize(btc_usdt, VenueId.BINANCE) == "BTCUSDT"
    assert normalizer.denormalize(btc_usdt, VenueId.COINBASE) == "BTC-USDT"
    assert normalizer.denormalize(btc_usdt, VenueId.KRAKEN) == "XBTUSDT"


def test_round_trip_for_every_available_venue() -> None:
    normalizer = SymbolNormalizer()
    for entry in normalizer.table.symbols():
        for venue in entry.availability:
            native = normalizer.denormalize(entry, venue)
            assert normalizer.normalize(native, venue) == entry


def test_unavailable_venue_raises() -> None:
    normalizer = SymbolNormalizer()
    btc_usd = normalizer.resolve("BTC-USD")
    assert VenueId.BINANCE not in btc_usd.availability
    with pytest.raises(UnsupportedSymbol):
        normalizer.denormalize(btc_usd, VenueId.BINANCE)
    with pytest.raises(UnsupportedSymbol):
        normalizer.normalize("BTCUSD", VenueId.BINANCE)


def test_unparseable_native_symbol() -> None:
    with pytest.raises(UnsupportedSymbol):
        SymbolNormalizer().normalize("BTC", VenueId.BINANCE)
    with pytest.raises(UnsupportedSymbol):
        SymbolNormalizer().normalize("BTCUSD", VenueId.COINBASE)


def test_unknown_symbol_assumed_available_everywhere() -> None:
    entry = SymbolNormalizer().resolve("foo-usd")
    assert entry.symbol == "FOO-USD"
    assert entry.availability == frozenset(VenueId)


def test_parse_symbol_rejects_bad_format() -> None:
    assert parse_symbol(" btc-usd ") == ("BTC", "USD")
    for bad in ("BTCUSD", "BTC/USD", "BTC-", "-USD", ""):
        with pytest.raises(UnsupportedSymbol):
            parse_symbol(bad)


def test_table_priority_and_filter() -> None:
    table = SymbolTable.default()
    ordered = table.symbols()
    assert ordered[0].symbol == "BTC-USD"
    assert ordered[1].symbol == "BTC-USDT"

    usdt_on_coinbase = table.filter(quote="usdt", venue=VenueId.COINBASE)
    assert usdt_on_coinbase
    assert all(s.quote == "USDT" and VenueId.COINBASE in s.availability for s in usdt_on_coinbase)
    assert "SHIB-USDT" not in {s.symbol for s in usdt_on_coinbase}

    assert {s.symbol for s in table.filter(search="link-e")} == {"LINK-ETH"}
    assert "btc-usd" in table
    assert table.get("nope-usd") is None


def test_catalog_replace_swaps_snapshot() -> None:
    catalog = SymbolCatalog()
    before = catalog.snapshot()
    after = catalog.replace([NormalizedSymbol("ABC-USD", "ABC", "USD", frozenset({VenueId.KRAKEN}))])
    assert catalog.snapshot() is after
    assert len(after) == 1
    # 旧快照不受影响
    assert "BTC-USD" in before
    assert "BTC-USD" not in after
