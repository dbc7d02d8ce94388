"""Environment configuration, with .env support via python-dotenv."""

import os
from typing import List

from dotenv import load_dotenv

from .arrival_list import DEFAULT_CAPACITY
from .exceptions import ConfigurationError
from .gtfs_loader import MTA_GTFS_URL
from .mta_client import MTA_FEEDS
from .sinks.dynamodb import DEFAULT_TTL_SECONDS, MAX_BATCH_ITEMS, MAX_ITEM_BYTES
from .sinks.postgres import DEFAULT_BATCH_SIZE
from .sinks.s3 import DEFAULT_STATIONS_PER_OBJECT

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class FeedConfig():
    def __init__(self):
        self.urls: List[str] = _as_list(os.getenv("FEED_URLS", "")) or list(MTA_FEEDS.values())
        self.timeout: float = float(os.getenv("FEED_TIMEOUT", "10"))
        self.api_key: str = os.getenv("MTA_API_KEY", "")


class ScheduleConfig():
    def __init__(self):
        self.capacity: int = int(os.getenv("ARRIVALS_PER_DIRECTION", str(DEFAULT_CAPACITY)))
        if self.capacity < 1:
            raise ConfigurationError(f"ARRIVALS_PER_DIRECTION must be at least 1, got {self.capacity}")
        self.filter_past: bool = _as_bool(os.getenv("FILTER_PAST_ARRIVALS", "true"))
        self.stops_path: str = os.getenv("STOPS_PATH", "")
        self.gtfs_static_url: str = os.getenv("GTFS_STATIC_URL", MTA_GTFS_URL)


class DynamoDBConfig():
    def __init__(self):
        self.table_name: str = os.getenv("DYNAMODB_TABLE", "")
        self.region: str = os.getenv("AWS_REGION", "us-east-1")
        self.batch_size: int = int(os.getenv("DYNAMODB_BATCH_SIZE", str(MAX_BATCH_ITEMS)))
        self.max_item_bytes: int = int(os.getenv("DYNAMODB_MAX_ITEM_BYTES", str(MAX_ITEM_BYTES)))
        self.ttl_seconds: int = int(os.getenv("DYNAMODB_TTL_SECONDS", str(DEFAULT_TTL_SECONDS)))

    @property
    def enabled(self) -> bool:
        return bool(self.table_name)


class PostgresConfig():
    def __init__(self):
        self.connection_string: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
        self.tables: List[str] = _as_list(os.getenv("POSTGRES_TABLES", "arrivals"))
        self.batch_size: int = int(os.getenv("POSTGRES_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)))

    @property
    def enabled(self) -> bool:
        return bool(self.connection_string)


class S3Config():
    def __init__(self):
        self.bucket: str = os.getenv("S3_BUCKET", "")
        self.prefix: str = os.getenv("S3_PREFIX", "arrivals")
        self.region: str = os.getenv("AWS_REGION", "us-east-1")
        self.stations_per_object: int = int(
            os.getenv("S3_STATIONS_PER_OBJECT", str(DEFAULT_STATIONS_PER_OBJECT))
        )

    @property
    def enabled(self) -> bool:
        return bool(self.bucket)


class NotifierConfig():
    def __init__(self):
        self.webhook_url: str = os.getenv("WEBHOOK_URL", "")
        self.timezone: str = os.getenv("NOTIFIER_TIMEZONE", "America/New_York")


class Settings():
    """All configuration groups, read from the environment when constructed."""

    def __init__(self):
        self.feeds = FeedConfig()
        self.schedule = ScheduleConfig()
        self.dynamodb = DynamoDBConfig()
        self.postgres = PostgresConfig()
        self.s3 = S3Config()
        self.notifier = NotifierConfig()
