from __future__ import annotations

from typing import Optional


class MarketDataError(RuntimeError):
    """Base for every recoverable market-data failure. Never fatal."""

    def __init__(self, message: str, *, source: Optional[str] = None):
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        message = super().__str__()
        return f"{self.source}: {message}" if self.source else message


class MalformedEndpoint(MarketDataError):
    pass


class TransportFailure(MarketDataError):
    pass


class BadStatus(MarketDataError):
    def __init__(self, status_code: int, *, source: Optional[str] = None):
        super().__init__(f"unexpected HTTP status {status_code}", source=source)
        self.status_code = status_code


class DecodeFailure(MarketDataError):
    pass


class RaceTimeout(MarketDataError):
    def __init__(self, timeout_s: float, *, source: Optional[str] = None):
        super().__init__(f"no response within {timeout_s:g}s", source=source)
        self.timeout_s = timeout_s


class CacheCorrupt(MarketDataError):
    pass
