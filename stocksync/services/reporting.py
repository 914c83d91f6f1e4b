"""Human-readable sync reports delivered through a notification sink."""

from __future__ import annotations

from datetime import datetime
from html import escape

from stocksync.domain.models import SyncLogEntry
from stocksync.infrastructure.notifications import NotificationSink
from stocksync.infrastructure.observability import get_logger


def format_sync_time(sync_time: str) -> str:
    try:
        parsed = datetime.fromisoformat(sync_time.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return sync_time
    return parsed.strftime("%Y-%m-%d %H:%M")


class Reporter:
    """Formats a :class:`SyncLogEntry` as an HTML email and sends it.

    Delivery problems are logged and reported as ``False``; they never fail
    the run that produced the entry.
    """

    def __init__(self, sink: NotificationSink, recipient: str, site_name: str = "Stock Sync") -> None:
        self.sink = sink
        self.recipient = recipient
        self.site_name = site_name
        self._logger = get_logger(__name__)

    def subject(self, entry: SyncLogEntry) -> str:
        return f"[{self.site_name}] AutoTrader Sync Report - {format_sync_time(entry.sync_time)}"

    def render(self, entry: SyncLogEntry) -> str:
        parts = [
            "<h2>AutoTrader Sync Report</h2>",
            f"<p><strong>Date/Time:</strong> {escape(format_sync_time(entry.sync_time))}</p>",
            f"<p><strong>Sync Type:</strong> {escape(entry.sync_type.capitalize())}</p>",
            f"<p><strong>Advertiser ID:</strong> {escape(entry.target_id)}</p>",
            f"<p><strong>Status:</strong> {escape(entry.status.capitalize())}</p>",
            f"<p><strong>Duration:</strong> {entry.duration:.2f} seconds</p>",
            "<h3>Results:</h3>",
            "<ul>",
            f"<li><strong>Created:</strong> {entry.created_count} listings</li>",
            f"<li><strong>Updated:</strong> {entry.updated_count} listings</li>",
            f"<li><strong>Deleted:</strong> {entry.deleted_count} listings</li>",
            f"<li><strong>Skipped:</strong> {entry.skipped_count} listings</li>",
            "</ul>",
        ]
        if entry.error_message:
            parts.append("<h3>Error:</h3>")
            parts.append(f"<p style='color: red;'>{escape(entry.error_message)}</p>")

        skipped = entry.skipped_listings
        if skipped:
            parts.append("<h3>Skipped Listings:</h3>")
            parts.append("<ul>")
            for natural_key, reasons in skipped.items():
                for reason in reasons:
                    parts.append(f"<li><strong>{escape(str(natural_key))}:</strong> {escape(str(reason))}</li>")
            parts.append("</ul>")

        media_errors = entry.media_errors
        if media_errors:
            parts.append("<h3>Image Errors:</h3>")
            parts.append("<ul>")
            for natural_key, messages in media_errors.items():
                for message in messages:
                    parts.append(f"<li><strong>{escape(str(natural_key))}:</strong> {escape(str(message))}</li>")
            parts.append("</ul>")

        parts.append("<p>The full sync history is available with <code>stocksync history</code>.</p>")
        return "".join(parts)

    def report(self, entry: SyncLogEntry) -> bool:
        if not self.recipient:
            self._logger.debug("No report recipient configured; skipping report")
            return False
        try:
            self.sink.send(self.recipient, self.subject(entry), self.render(entry))
        except Exception as exc:
            self._logger.error("Failed to send sync report to %s: %s", self.recipient, exc)
            return False
        return True
