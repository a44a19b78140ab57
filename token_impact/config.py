from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import VenueId


class Settings(BaseSettings):
    """运行时配置模型，从环境变量或 .env 加载。

    集中管理各交易所 REST 端点、单交易所超时与限频节奏、
    订单簿深度、过期阈值、推广链接以及日志级别等参数。
    """

    binance_base_url: str = "https://api.binance.com"
    coinbase_base_url: str = "https://api.exchange.coinbase.com"
    kraken_base_url: str = "https://api.kraken.com"

    # 单交易所调用超时（秒），超时记为 timeout 失败，不影响其他交易所
    binance_timeout: float = 5.0
    coinbase_timeout: float = 5.0
    kraken_timeout: float = 5.0

    # Kraken 公共接口约 1 req/s，这里留一点余量
    kraken_min_interval: float = 1.1
    binance_min_interval: float = 0.0
    coinbase_min_interval: float = 0.0

    depth_hint: int = 500
    stale_threshold_ms: int = 5000

    health_degraded_ms: int = 500
    health_timeout: float = 5.0

    # 推广链接由外部跳转服务维护，这里只保存路径
    binance_affiliate_url: str = "/go/binance"
    coinbase_affiliate_url: str = "/go/coinbase"
    kraken_affiliate_url: str = "/go/kraken"

    default_venues: str = "binance,coinbase,kraken"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TOKEN_IMPACT_", extra="ignore")

    @classmethod
    def load(cls, env_file: Optional[str | Path] = None, overrides: Optional[dict[str, Any]] = None) -> "Settings":
        """Load settings, allowing an optional .env override and programmatic overrides."""
        kwargs: dict[str, Any] = {}
        if env_file:
            kwargs["_env_file"] = env_file
        if overrides:
            kwargs.update(overrides)
        return cls(**kwargs)

    def base_url(self, venue: VenueId) -> str:
        return getattr(self, f"{venue.value}_base_url")

    def timeout(self, venue: VenueId) -> float:
        return getattr(self, f"{venue.value}_timeout")

    def min_interval(self, venue: VenueId) -> float:
        return getattr(self, f"{venue.value}_min_interval")

    def affiliate_urls(self) -> dict[VenueId, str]:
        """返回 venue -> 推广链接映射，供 QuoteAssembler 原样附加。"""

        return {venue: getattr(self, f"{venue.value}_affiliate_url") for venue in VenueId}

    def venue_list(self) -> list[VenueId]:
        """解析 ``default_venues``，忽略未知名称。"""

        known = {v.value: v for v in VenueId}
        venues: list[VenueId] = []
        for raw in self.default_venues.split(","):
            venue = known.get(raw.strip().lower())
            if venue is not None and venue not in venues:
                venues.append(venue)
        return venues
