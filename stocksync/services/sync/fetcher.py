"""Paginated retrieval of the complete remote stock list."""

from __future__ import annotations

import time
from typing import Any, Callable, Protocol

from stocksync.infrastructure.http import (AuthenticationError,
                                           MalformedPageError,
                                           RemoteRequestError, StockPage)
from stocksync.infrastructure.observability.logging import get_logger

from .errors import FetchFailure

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_DELAY_SECONDS = 0.5


class RemoteClient(Protocol):
    def get_page(self, target_id: str, page: int, page_size: int) -> StockPage: ...


class PageFetcher:
    """Drives a :class:`RemoteClient` across pages.

    Fetching is fail-closed: if any page fails, the whole fetch raises
    :class:`FetchFailure` and the items gathered so far are discarded.
    Reconciling against partial stock would delete listings that still
    exist remotely.
    """

    def __init__(
        self,
        client: RemoteClient,
        *,
        page_delay: float = DEFAULT_PAGE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.page_delay = page_delay
        self._sleep = sleep

    def fetch_all(
        self,
        target_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return every stock item for ``target_id``.

        Stops when the declared page count is reached, when a page without
        pagination metadata comes back short, or after ``max_pages`` pages.

        Raises:
            FetchFailure: With ``reason`` ``"auth"``, ``"http"`` or ``"malformed"``.
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            result = self._get_page(target_id, page, page_size)
            if any(not isinstance(item, dict) for item in result.items):
                logger.error("Malformed stock page %s: non-object result entry", page)
                raise FetchFailure(
                    "malformed", "Malformed stock page: result entries must be objects", page=page
                )
            items.extend(result.items)
            logger.debug(
                "Fetched page %s (%s items, total_pages=%s)",
                page,
                len(result.items),
                result.total_pages,
            )

            if result.total_pages is not None:
                if page >= result.total_pages:
                    break
            elif len(result.items) < page_size:
                break
            if max_pages is not None and page >= max_pages:
                break

            page += 1
            if self.page_delay > 0:
                self._sleep(self.page_delay)

        logger.info("Fetched %s stock items across %s page(s)", len(items), page)
        return items

    def _get_page(self, target_id: str, page: int, page_size: int) -> StockPage:
        try:
            return self.client.get_page(target_id, page, page_size)
        except AuthenticationError as exc:
            logger.error("Authentication failed fetching page %s: %s", page, exc)
            raise FetchFailure("auth", f"Authentication failed: {exc}", page=page) from exc
        except RemoteRequestError as exc:
            logger.error("Request failed fetching page %s: %s", page, exc)
            raise FetchFailure("http", f"Failed to fetch stock page: {exc}", page=page) from exc
        except MalformedPageError as exc:
            logger.error("Malformed stock page %s: %s", page, exc)
            raise FetchFailure("malformed", f"Malformed stock page: {exc}", page=page) from exc
