"""HTTP adapters for stocksync.

This package provides the bearer-token client for the AutoTrader stock API.
"""

from .client import (
    AccessToken,
    ApiCredentials,
    AuthenticationError,
    AutoTraderClient,
    MalformedPageError,
    RemoteRequestError,
    StockPage,
)

__all__ = [
    "AccessToken",
    "ApiCredentials",
    "AuthenticationError",
    "AutoTraderClient",
    "MalformedPageError",
    "RemoteRequestError",
    "StockPage",
]
