"""交易对规范化与静态交易对表。

本模块提供三部分：

1. `SymbolTable`：进程内只读的交易对快照（规范名 -> `NormalizedSymbol`）；
2. `SymbolCatalog`：持有当前快照，外部刷新任务通过 `replace` 整体替换；
3. `SymbolNormalizer`：各交易所原生写法与 ``BASE-QUOTE`` 之间的双向转换。

所有转换都是纯函数，无 I/O、无共享可变状态，可被任意数量的协程并发调用。
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from ..exceptions import UnsupportedSymbol
from ..types import NormalizedSymbol, VenueId

_ALL = frozenset(VenueId)
_NO_BINANCE = frozenset({VenueId.COINBASE, VenueId.KRAKEN})
_NO_COINBASE = frozenset({VenueId.BINANCE, VenueId.KRAKEN})

_SYMBOL_RE = re.compile(r"^[A-Z0-9]+-[A-Z0-9]+$")

# Binance 原生写法为直接拼接，按后缀长度优先匹配计价币。
BINANCE_QUOTES = ("FDUSD", "USDT", "USDC", "BUSD", "TUSD", "USD", "EUR", "GBP", "BTC", "ETH", "BNB", "DAI")

# Kraken 计价币：带 Z 前缀的法币写法优先。
KRAKEN_QUOTES = ("ZUSD", "ZEUR", "ZGBP", "ZCAD", "ZJPY", "ZAUD", "USDT", "USDC", "USD", "EUR", "GBP", "XXBT", "XBT", "BTC", "XETH", "ETH", "DAI")
KRAKEN_ASSET_ALIASES = {"XBT": "BTC", "XXBT": "BTC", "XDG": "DOGE", "XXDG": "DOGE"}
KRAKEN_REVERSE_ALIASES = {"BTC": "XBT"}
KRAKEN_FIAT = {"USD", "EUR", "GBP", "CAD", "JPY", "AUD"}

BASE_PRIORITY = {
    "BTC": 1, "ETH": 2, "SOL": 3, "XRP": 4, "DOGE": 5, "ADA": 6, "AVAX": 7, "DOT": 8,
    "LINK": 9, "MATIC": 10, "LTC": 11, "SHIB": 12, "UNI": 13, "ATOM": 14, "XLM": 15,
}


def _entries() -> list[NormalizedSymbol]:
    rows: list[tuple[str, frozenset[VenueId]]] = []
    usd_bases = "BTC ETH SOL XRP DOGE ADA AVAX DOT LINK MATIC LTC SHIB UNI ATOM XLM AAVE ALGO APE ARB OP"
    rows += [(f"{b}-USD", _NO_BINANCE) for b in usd_bases.split()]
    usdt_bases = "BTC ETH SOL XRP DOGE ADA AVAX DOT LINK MATIC LTC UNI ATOM XLM ALGO ARB OP NEAR SAND MANA CRV PEPE WIF"
    rows += [(f"{b}-USDT", _ALL) for b in usdt_bases.split()]
    rows += [(f"{b}-USDT", _NO_COINBASE) for b in "SHIB AAVE APE FTM".split()]
    rows += [(f"{b}-USDC", _ALL) for b in "BTC ETH SOL".split()]
    rows += [(f"{b}-EUR", _ALL) for b in "BTC ETH SOL XRP DOGE ADA".split()]
    rows += [(f"{b}-GBP", _ALL) for b in "BTC ETH".split()]
    rows += [(f"{b}-BTC", _ALL) for b in "ETH SOL XRP DOGE LINK LTC ADA DOT".split()]
    rows += [(f"{b}-ETH", _ALL) for b in "LINK UNI AAVE".split()]
    result = []
    for symbol, venues in rows:
        base, quote = symbol.split("-")
        result.append(NormalizedSymbol(symbol=symbol, base=base, quote=quote, availability=venues))
    return result


class SymbolTable:
    """不可变的交易对快照。构造后内容不再变化，可无锁并发读取。"""

    def __init__(self, entries: Iterable[NormalizedSymbol]):
        self._entries: Mapping[str, NormalizedSymbol] = MappingProxyType({e.symbol: e for e in entries})

    @classmethod
    def default(cls) -> "SymbolTable":
        return cls(_entries())

    def get(self, symbol: str) -> Optional[NormalizedSymbol]:
        return self._entries.get(symbol.upper())

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol.upper() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def symbols(self) -> list[NormalizedSymbol]:
        """按常用程度排序返回全部交易对（BTC、ETH 优先；USD 优先于 USDT）。"""

        return sorted(self._entries.values(), key=_priority)

    def filter(
        self,
        *,
        quote: Optional[str] = None,
        venue: Optional[VenueId] = None,
        search: Optional[str] = None,
    ) -> list[NormalizedSymbol]:
        """按计价币、交易所可用性与关键字过滤。"""
        rows = self.symbols()
        if quote:
            rows = [s for s in rows if s.quote == quote.upper()]
        if venue is not None:
            rows = [s for s in rows if venue in s.availability]
        if search:
            needle = search.upper()
            rows = [s for s in rows if needle in s.symbol]
        return rows


def _priority(entry: NormalizedSymbol) -> tuple[float, str]:
    boost = 0.0 if entry.quote == "USD" else 0.1 if entry.quote == "USDT" else 0.2
    return BASE_PRIORITY.get(entry.base, 100) + boost, entry.symbol


class SymbolCatalog:
    """持有当前交易对快照。

    快照由外部的目录刷新任务（约每小时一次）生成，通过 `replace` 一次性
    替换引用；读取方拿到的快照在其生命周期内保持不变。
    """

    def __init__(self, table: Optional[SymbolTable] = None):
        self._table = table or SymbolTable.default()

    def snapshot(self) -> SymbolTable:
        return self._table

    def replace(self, entries: Iterable[NormalizedSymbol]) -> SymbolTable:
        table = SymbolTable(entries)
        self._table = table
        return table


def parse_symbol(symbol: str) -> tuple[str, str]:
    """解析 ``BASE-QUOTE``。

    Raises:
        UnsupportedSymbol: 格式不合法时抛出。
    """
    text = (symbol or "").strip().upper()
    if not _SYMBOL_RE.match(text):
        raise UnsupportedSymbol(f"Symbol must be in format BASE-QUOTE (e.g., BTC-USD): {symbol!r}")
    base, quote = text.split("-")
    return base, quote


class SymbolNormalizer:
    """交易所原生写法与规范写法之间的转换器。

    Args:
        table: 交易对快照；未收录的交易对视为所有交易所都可能上架，
            由交易所接口自行给出结果。
    """

    def __init__(self, table: Optional[SymbolTable] = None):
        self.table = table or SymbolTable.default()

    def resolve(self, symbol: str) -> NormalizedSymbol:
        """将 ``BASE-QUOTE`` 字符串解析为 `NormalizedSymbol`（带可用性）。"""
        base, quote = parse_symbol(symbol)
        entry = self.table.get(f"{base}-{quote}")
        if entry is not None:
            return entry
        return NormalizedSymbol(symbol=f"{base}-{quote}", base=base, quote=quote, availability=_ALL)

    def normalize(self, venue_symbol: str, venue: VenueId) -> NormalizedSymbol:
        """将交易所原生写法转换为规范交易对。

        Args:
            venue_symbol: 原生写法，如 ``BTCUSDT``、``BTC-USD``、``XXBTZUSD``。
            venue: 来源交易所。

        Returns:
            对应的 `NormalizedSymbol`。

        Raises:
            UnsupportedSymbol: 无法识别该写法，或该交易所未上架此交易对。
        """
        text = (venue_symbol or "").strip().upper()
        if venue == VenueId.BINANCE:
            pair = _split_binance(text)
        elif venue == VenueId.COINBASE:
            pair = _split_coinbase(text)
        else:
            pair = _split_kraken(text)
        if pair is None:
            raise UnsupportedSymbol(f"Cannot normalize {venue_symbol!r} for {venue.value}")
        entry = self.resolve(f"{pair[0]}-{pair[1]}")
        if venue not in entry.availability:
            raise UnsupportedSymbol(f"Symbol {entry.symbol} not supported on {venue.value}")
        return entry

    def denormalize(self, symbol: NormalizedSymbol, venue: VenueId) -> str:
        """将规范交易对转换为交易所原生写法。

        Raises:
            UnsupportedSymbol: 该交易所未上架此交易对。
        """
        if venue not in symbol.availability:
            raise UnsupportedSymbol(f"Symbol {symbol.symbol} not supported on {venue.value}")
        base, quote = symbol.base.upper(), symbol.quote.upper()
        if venue == VenueId.BINANCE:
            return f"{base}{quote}"
        if venue == VenueId.COINBASE:
            return f"{base}-{quote}"
        # Kraken 请求接口接受不带前缀的简写，如 XBTUSD
        return f"{KRAKEN_REVERSE_ALIASES.get(base, base)}{KRAKEN_REVERSE_ALIASES.get(quote, quote)}"


def _split_binance(text: str) -> Optional[tuple[str, str]]:
    for quote in BINANCE_QUOTES:
        if text.endswith(quote) and len(text) > len(quote):
            return text[: -len(quote)], quote
    return None


def _split_coinbase(text: str) -> Optional[tuple[str, str]]:
    parts = text.split("-")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def _split_kraken(text: str) -> Optional[tuple[str, str]]:
    for quote in KRAKEN_QUOTES:
        if text.endswith(quote) and len(text) > len(quote):
            base = _kraken_asset(text[: -len(quote)])
            return base, _kraken_asset(quote)
    return None


def _kraken_asset(code: str) -> str:
    """去掉 Kraken 的 X/Z 资产前缀并处理 XBT 等别名。"""
    if code in KRAKEN_ASSET_ALIASES:
        return KRAKEN_ASSET_ALIASES[code]
    if len(code) == 4 and code[0] == "Z" and code[1:] in KRAKEN_FIAT:
        return code[1:]
    if len(code) == 4 and code[0] == "X":
        stripped = code[1:]
        return KRAKEN_ASSET_ALIASES.get(stripped, stripped)
    return code


__all__ = [
    "SymbolTable",
    "SymbolCatalog",
    "SymbolNormalizer",
    "parse_symbol",
]
