"""HTTP client for the AutoTrader stock API.

This module centralises access to the remote inventory. It keeps a
:class:`requests.Session`, exchanges the API key and secret for a bearer
token, caches that token until it expires and renews it once when the API
answers ``401`` mid-session. It does not retry anything else: callers decide
what a failed page means.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from requests import Response, Session

DEFAULT_AUTH_URL = "https://api-sandbox.autotrader.co.uk/authenticate"
DEFAULT_STOCK_URL = "https://api-sandbox.autotrader.co.uk/stock"
DEFAULT_TOKEN_LIFETIME_SECONDS = 15 * 60

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when the API rejects the credentials or returns no token."""


class RemoteRequestError(Exception):
    """Raised for transport failures and non-auth HTTP error statuses."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedPageError(Exception):
    """Raised when a stock page is not a JSON object with a ``results`` list."""


@dataclass
class ApiCredentials:
    """API key/secret pair, read from the environment when not given."""

    key: str | None = None
    secret: str | None = None

    @classmethod
    def from_env(cls) -> "ApiCredentials":
        return cls(
            key=os.environ.get("AUTOTRADER_API_KEY"),
            secret=os.environ.get("AUTOTRADER_API_SECRET"),
        )


@dataclass
class AccessToken:
    value: str
    obtained_at: float
    lifetime_seconds: float = DEFAULT_TOKEN_LIFETIME_SECONDS

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        # Renew a little early so a token never expires mid-request.
        return (now - self.obtained_at) >= max(0.0, self.lifetime_seconds - 30)


@dataclass
class StockPage:
    """One page of remote stock items plus whatever pagination the API declared."""

    items: list[dict[str, Any]] = field(default_factory=list)
    page: int = 1
    total_pages: int | None = None
    total_results: int | None = None


class AutoTraderClient:
    """Bearer-token client for the stock endpoint."""

    def __init__(
        self,
        *,
        credentials: ApiCredentials | None = None,
        auth_url: str = DEFAULT_AUTH_URL,
        stock_url: str = DEFAULT_STOCK_URL,
        timeout: float = 30.0,
        session: Session | None = None,
    ) -> None:
        self.credentials = credentials or ApiCredentials.from_env()
        self.auth_url = auth_url
        self.stock_url = stock_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token: AccessToken | None = None

    # -------------------- auth workflow --------------------
    def authenticate(self, *, force: bool = False) -> str:
        """Return a valid bearer token, fetching a new one when needed.

        Raises:
            AuthenticationError: If credentials are missing or rejected.
        """
        if not force and self.token is not None and not self.token.is_expired():
            return self.token.value

        if not self.credentials.key or not self.credentials.secret:
            logger.error("AutoTrader API key/secret are not configured.")
            raise AuthenticationError("AutoTrader API key/secret are not configured.")

        try:
            response = self.session.post(
                self.auth_url,
                data={"key": self.credentials.key, "secret": self.credentials.secret},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Authentication request failed: %s", exc)
            raise AuthenticationError(f"Authentication request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Authentication failed with status %s: %s",
                response.status_code,
                response.text[:200],
            )
            raise AuthenticationError(
                f"Authentication failed with status {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationError(f"Failed to parse authentication response: {exc}") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError("No access token in authentication response")

        lifetime = DEFAULT_TOKEN_LIFETIME_SECONDS
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            lifetime = float(expires_in)
        self.token = AccessToken(value=str(token), obtained_at=time.time(), lifetime_seconds=lifetime)
        logger.debug("Obtained AutoTrader access token (lifetime %ss)", lifetime)
        return self.token.value

    # -------------------- request helpers --------------------
    def _prepare_headers(self, token: str) -> dict[str, str]:
        from stocksync import __version__

        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": f"stocksync/{__version__}",
        }

    def _get_stock(self, params: dict[str, Any], token: str) -> Response:
        try:
            return self.session.get(
                self.stock_url,
                params=params,
                headers=self._prepare_headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Stock request failed: %s", exc)
            raise RemoteRequestError(f"Stock request failed: {exc}") from exc

    def get_page(self, target_id: str, page: int, page_size: int) -> StockPage:
        """Fetch one page of stock for ``target_id``.

        Raises:
            AuthenticationError: If no token can be obtained or renewal fails.
            RemoteRequestError: For transport errors and HTTP error statuses.
            MalformedPageError: If the body lacks a ``results`` list.
        """
        params = {"advertiserId": target_id, "page": page, "pageSize": page_size}
        response = self._get_stock(params, self.authenticate())
        if response.status_code == 401:
            logger.info("Access token rejected; renewing once")
            response = self._get_stock(params, self.authenticate(force=True))
            if response.status_code == 401:
                raise AuthenticationError("Access token rejected after renewal")
        if response.status_code >= 400:
            logger.error(
                "Stock page %s failed with status %s: %s",
                page,
                response.status_code,
                response.text[:200],
            )
            raise RemoteRequestError(
                f"Stock page {page} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return self._parse_page(response, page)

    @staticmethod
    def _parse_page(response: Response, page: int) -> StockPage:
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedPageError(f"Stock page {page} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise MalformedPageError(f"Stock page {page} has no results list")

        items = payload["results"]
        for position, item in enumerate(items):
            if not isinstance(item, dict):
                raise MalformedPageError(
                    f"Stock page {page} result {position} is {type(item).__name__}, not an object"
                )
        total_pages: int | None = None
        total_results: int | None = None
        pagination = payload.get("pagination")
        if isinstance(pagination, dict):
            if isinstance(pagination.get("totalPages"), int):
                total_pages = pagination["totalPages"]
            if isinstance(pagination.get("totalResults"), int):
                total_results = pagination["totalResults"]
        if total_results is None and isinstance(payload.get("totalResults"), int):
            total_results = payload["totalResults"]
        return StockPage(
            items=items, page=page, total_pages=total_pages, total_results=total_results
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
