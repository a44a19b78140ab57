"""报价引擎的异常层级。

所有异常均派生自 :class:`TokenImpactError`，并携带稳定的 ``code``，
便于调用方（CLI 或上层服务）统一映射为错误响应。
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class TokenImpactError(Exception):
    """Base class for token_impact errors."""

    code = "E_UNKNOWN"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """按对外错误响应格式输出：``{"error": {code, message, details}}``。"""

        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


class InvalidQuoteRequest(TokenImpactError):
    """Raised when a quote request fails input validation."""

    code = "E_VALIDATION"


class UnsupportedSymbol(TokenImpactError):
    """交易所没有该交易对的映射。只影响单个交易所，不影响整个请求。"""

    code = "E_SYMBOL_NOT_FOUND"


class VenueError(TokenImpactError):
    """交易所网络/协议错误。

    Attributes:
        status_code: HTTP 状态码（若有）。
        rate_limited: 是否为交易所限频（HTTP 429/418 或 Kraken 限频错误）。
    """

    code = "E_EXCHANGE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        rate_limited: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.rate_limited = rate_limited
        if rate_limited:
            self.code = "E_EXCHANGE_RATE_LIMIT"


class VenueTimeout(TokenImpactError):
    """Raised when a venue call exceeds its timeout."""

    code = "E_EXCHANGE_TIMEOUT"


class AllVenuesUnreachable(TokenImpactError):
    """所有被请求的交易所都返回失败时抛出，区别于正常的空结果。"""

    code = "E_EXCHANGE_ERROR"

    def __init__(self, failures: Sequence[Any]) -> None:
        self.failures = tuple(failures)
        summary = "; ".join(f"{f.venue.value}: {f.message}" for f in self.failures)
        super().__init__("All venues failed to respond", details={"errors": summary})


__all__ = [
    "TokenImpactError",
    "InvalidQuoteRequest",
    "UnsupportedSymbol",
    "VenueError",
    "VenueTimeout",
    "AllVenuesUnreachable",
]
