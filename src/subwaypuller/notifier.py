"""Google Chat webhook notifier for cycle summaries."""

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests

from .exceptions import ConfigurationError
from .models import RunSummary

logger = logging.getLogger(__name__)


class GChatNotifier:
    """Posts a run-summary card to a Google Chat webhook. Sending never raises."""

    def __init__(self, webhook_url: Optional[str], timezone: str = "America/New_York", timeout: float = 10):
        self.webhook_url = webhook_url
        try:
            self.timezone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown notifier timezone {timezone!r}") from e
        self.timeout = timeout

    @staticmethod
    def _make_widget(text: str) -> dict:
        return {"textParagraph": {"text": text}}

    def build_card(self, summary: RunSummary) -> dict:
        """Build the Chat card for a run summary."""
        header = {
            "title": "Run Summary",
            "subtitle": datetime.now(self.timezone).strftime("%Y-%m-%d %H:%M:%S"),
        }
        text = (
            f"Total unprocessed items: {summary.total_unprocessed_or_failed_items}\n"
            f"Total stops uploaded: {summary.total_items_written}\n"
            f"Average Batch Size: {summary.average_batch_size:.2f}\n"
            f"Error Count: {summary.error_count}"
        )
        return {"header": header, "sections": [{"widgets": [self._make_widget(text)]}]}

    def send_summary(self, summary: RunSummary) -> bool:
        """
        Post the summary card.

        Returns:
            True if the webhook accepted it; False if no webhook is configured or the post failed.
        """
        if not self.webhook_url:
            logger.debug("Skipping summary notification: webhook URL not configured")
            return False

        try:
            response = requests.post(
                self.webhook_url,
                json={"cards": [self.build_card(summary)]},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except Exception:
            logger.exception("Failed to send summary notification")
            return False

        logger.info("Sent summary notification")
        return True
