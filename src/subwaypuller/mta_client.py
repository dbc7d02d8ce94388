"""MTA GTFS-Realtime feed fetcher and decoder."""

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence, Tuple

import requests
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from .exceptions import FeedDecodeError, SourceUnavailableError
from .models import StopTimeUpdate

logger = logging.getLogger(__name__)

# MTA GTFS-Realtime feed URLs (subway only)
MTA_FEEDS = {
    "ace": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-ace",
    "bdfm": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-bdfm",
    "g": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-g",
    "jz": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-jz",
    "nqrw": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-nqrw",
    "l": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-l",
    "1234567": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs",  # 1-7, S
    "si": "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-si",
}


class MTAClient:
    """Fetches and decodes MTA GTFS-Realtime feeds."""

    def __init__(
        self,
        feed_urls: Optional[Sequence[str]] = None,
        timeout: float = 10,
        api_key: Optional[str] = None,
    ):
        """
        Initialize the MTA client.

        Args:
            feed_urls: Feeds to pull each cycle. Defaults to every subway feed.
            timeout: Per-request timeout in seconds.
            api_key: Optional key sent as the x-api-key header.
        """
        self.feed_urls = list(feed_urls) if feed_urls else list(MTA_FEEDS.values())
        self.timeout = timeout
        self._headers: Dict[str, str] = {"x-api-key": api_key} if api_key else {}

    def fetch_feed(self, feed_url: str) -> bytes:
        """
        Fetch one GTFS-Realtime feed.

        Args:
            feed_url: Full URL to the feed.

        Returns:
            Raw protobuf bytes.

        Raises:
            SourceUnavailableError: On any transport or HTTP error.
        """
        logger.debug(f"Fetching {feed_url}")
        try:
            response = requests.get(feed_url, headers=self._headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {feed_url}: {e}")
            raise SourceUnavailableError(feed_url, e) from e
        return response.content

    def fetch_all(self, feed_urls: Optional[Sequence[str]] = None) -> List[Tuple[str, bytes]]:
        """
        Fetch every feed concurrently, failing fast.

        Args:
            feed_urls: Feeds to fetch. Defaults to the client's configured feeds.

        Returns:
            (url, bytes) pairs in the order the URLs were given.

        Raises:
            SourceUnavailableError: If any feed fails; no partial set is returned.
        """
        urls = list(feed_urls) if feed_urls is not None else self.feed_urls
        if not urls:
            return []

        executor = ThreadPoolExecutor(max_workers=len(urls))
        try:
            futures = [executor.submit(self.fetch_feed, url) for url in urls]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for url, future in zip(urls, futures):
                if future in done and future.exception() is not None:
                    error = future.exception()
                    if isinstance(error, SourceUnavailableError):
                        raise error
                    raise SourceUnavailableError(url, error) from error
            payloads = [(url, future.result()) for url, future in zip(urls, futures)]
        finally:
            # Requests already in flight finish in the background and are discarded
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(f"Fetched {len(payloads)} feeds ({sum(len(p) for _, p in payloads)} bytes)")
        return payloads

    def decode_feed(self, feed_data: bytes) -> List[StopTimeUpdate]:
        """
        Decode stop-time updates from a GTFS-Realtime feed.

        Args:
            feed_data: Raw protobuf bytes.

        Returns:
            One StopTimeUpdate per stop-time update in every trip update.

        Raises:
            FeedDecodeError: If the bytes are not a FeedMessage.
        """
        feed = gtfs_realtime_pb2.FeedMessage()
        try:
            feed.ParseFromString(feed_data)
        except DecodeError as e:
            raise FeedDecodeError(f"Failed to parse feed: {e}") from e

        updates: List[StopTimeUpdate] = []
        for entity in feed.entity:
            if not entity.HasField("trip_update"):
                continue

            trip_update = entity.trip_update
            stop_time_updates = trip_update.stop_time_update
            if not stop_time_updates:
                continue

            # The trip's last listed stop names its destination
            terminal_stop_id = stop_time_updates[-1].stop_id or None

            for stop_time_update in stop_time_updates:
                updates.append(
                    StopTimeUpdate(
                        raw_stop_id=stop_time_update.stop_id,
                        timestamp=self._event_time(stop_time_update),
                        trip_id=trip_update.trip.trip_id,
                        route_id=trip_update.trip.route_id,
                        terminal_stop_id=terminal_stop_id,
                    )
                )

        logger.debug(f"Decoded {len(updates)} stop-time updates from {len(feed.entity)} entities")
        return updates

    @staticmethod
    def _event_time(stop_time_update) -> Optional[int]:
        """Arrival time, falling back to departure time; None when neither is set."""
        if stop_time_update.HasField("arrival") and stop_time_update.arrival.time:
            return int(stop_time_update.arrival.time)
        if stop_time_update.HasField("departure") and stop_time_update.departure.time:
            return int(stop_time_update.departure.time)
        return None
