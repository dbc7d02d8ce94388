"""
Command-line entry point: run one ingestion cycle.

Usage:
    python -m subwaypuller
    python -m subwaypuller --dry-run --station L06
    python -m subwaypuller --capacity 5 --dump out/schedule.json
"""

import argparse
import logging
import sys
from typing import List, Optional

import boto3

from .config import Settings
from .cycle import IngestionCycle
from .db import ConnectionBroker
from .gtfs_loader import StationDirectory
from .mta_client import MTAClient
from .notifier import GChatNotifier
from .sinks import (
    BatchedSinkWriter,
    DynamoDBSinkWriter,
    PostgresSinkWriter,
    S3SinkWriter,
)

logger = logging.getLogger(__name__)


def build_station_directory(settings: Settings) -> StationDirectory:
    """Load station names from a local stops file, else from the static GTFS zip."""
    directory = StationDirectory()
    try:
        if settings.schedule.stops_path:
            directory.load_from_file(settings.schedule.stops_path)
        else:
            directory.load_from_url(settings.schedule.gtfs_static_url)
    except Exception as e:
        logger.warning(f"Station names unavailable, destinations will be empty: {e}")
    return directory


def build_sinks(settings: Settings) -> List[BatchedSinkWriter]:
    """Create a writer for every backend enabled in the configuration."""
    sinks: List[BatchedSinkWriter] = []

    if settings.dynamodb.enabled:
        sinks.append(
            DynamoDBSinkWriter(
                boto3.client("dynamodb", region_name=settings.dynamodb.region),
                settings.dynamodb.table_name,
                batch_size=settings.dynamodb.batch_size,
                max_item_bytes=settings.dynamodb.max_item_bytes,
                ttl_seconds=settings.dynamodb.ttl_seconds,
            )
        )

    if settings.postgres.enabled:
        broker = ConnectionBroker(settings.postgres.connection_string)
        for table_name in settings.postgres.tables:
            sinks.append(
                PostgresSinkWriter(broker, table_name, batch_size=settings.postgres.batch_size)
            )

    if settings.s3.enabled:
        sinks.append(
            S3SinkWriter(
                boto3.client("s3", region_name=settings.s3.region),
                settings.s3.bucket,
                prefix=settings.s3.prefix,
                stations_per_object=settings.s3.stations_per_object,
            )
        )

    return sinks


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Pull MTA realtime feeds and publish upcoming arrivals per station",
    )
    parser.add_argument(
        "--capacity",
        type=int,
        default=None,
        help="Arrivals kept per station direction (default: ARRIVALS_PER_DIRECTION env var)",
    )
    parser.add_argument(
        "--keep-past",
        action="store_true",
        help="Do not drop arrivals whose time has already passed",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Aggregate without writing to any configured sink",
    )
    parser.add_argument(
        "--station",
        action="append",
        default=[],
        metavar="STATION_ID",
        help="Log the aggregated schedule for a station (repeatable)",
    )
    parser.add_argument(
        "--dump",
        default=None,
        metavar="PATH",
        help="Write the aggregated snapshot to a JSON file",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 when the cycle completed, 1 otherwise."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = Settings()
        client = MTAClient(
            settings.feeds.urls,
            timeout=settings.feeds.timeout,
            api_key=settings.feeds.api_key or None,
        )
        notifier = GChatNotifier(settings.notifier.webhook_url, timezone=settings.notifier.timezone)
        sinks = [] if args.dry_run else build_sinks(settings)
        cycle = IngestionCycle(
            client=client,
            sinks=sinks,
            station_lookup=build_station_directory(settings),
            notifier=notifier,
            capacity=args.capacity if args.capacity is not None else settings.schedule.capacity,
            filter_past=settings.schedule.filter_past and not args.keep_past,
        )
    except Exception as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    report = cycle.run()

    if report.schedule is not None:
        for station_id in args.station:
            report.schedule.log_schedule(station_id)
        if args.dump:
            report.schedule.write_to_file(args.dump)

    return 0 if report.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
