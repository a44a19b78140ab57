"""Client wrappers for external venues."""

from __future__ import annotations

from typing import Iterable, Optional

from ..config import Settings
from ..services.symbols import SymbolNormalizer
from ..types import VenueId
from .base import RequestPacer, VenueAdapter
from .binance import BinanceClient
from .coinbase import CoinbaseClient
from .kraken import KrakenClient

ADAPTER_CLASSES = {
    VenueId.BINANCE: BinanceClient,
    VenueId.COINBASE: CoinbaseClient,
    VenueId.KRAKEN: KrakenClient,
}


def build_adapters(
    settings: Settings,
    normalizer: SymbolNormalizer,
    venues: Optional[Iterable[VenueId]] = None,
) -> dict[VenueId, VenueAdapter]:
    """按配置为每个交易所构建一个适配器实例。

    Args:
        settings: 全局配置。
        normalizer: 共享的只读交易对转换器。
        venues: 需要构建的交易所，缺省为 ``settings.default_venues``。

    Returns:
        以 `VenueId` 为键、保持声明顺序的适配器字典。
    """
    selected = list(venues) if venues is not None else settings.venue_list()
    return {venue: ADAPTER_CLASSES[venue](settings, normalizer) for venue in selected}


__all__ = [
    "VenueAdapter",
    "RequestPacer",
    "BinanceClient",
    "CoinbaseClient",
    "KrakenClient",
    "ADAPTER_CLASSES",
    "build_adapters",
]
