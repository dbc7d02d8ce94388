"""DynamoDB sink: one item per station, written with BatchWriteItem."""

import json
import logging
import time
from typing import Callable, Dict, List, Optional

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ..models import FlushResult, StationSnapshot
from ..schedule import Snapshot
from .base import BatchedSinkWriter, CapacityHook, chunked

logger = logging.getLogger(__name__)

# BatchWriteItem accepts at most 25 put requests per call
MAX_BATCH_ITEMS = 25
MAX_ITEM_BYTES = 400 * 1024
DEFAULT_TTL_SECONDS = 600


def estimate_item_size(item: dict) -> int:
    """Approximate stored size of an item as its UTF-8 JSON length."""
    return len(json.dumps(item).encode("utf-8"))


class DynamoDBSinkWriter(BatchedSinkWriter):
    """
    Writes ``{stopId, northbound, southbound, ttl}`` items to a DynamoDB table.

    Batches are independent: a failed request only fails its own items.
    Items the service leaves unprocessed are resubmitted exactly once and
    counted as failed if they are still unprocessed afterwards.
    """

    def __init__(
        self,
        client,
        table_name: str,
        batch_size: int = MAX_BATCH_ITEMS,
        max_item_bytes: int = MAX_ITEM_BYTES,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        capacity_hook: Optional[CapacityHook] = None,
    ):
        """
        Args:
            client: boto3 DynamoDB client.
            table_name: Target table, keyed on stopId.
            batch_size: Put requests per BatchWriteItem call (at most 25).
            max_item_bytes: Items larger than this are not sent.
            ttl_seconds: Lifetime of each item, stored as an epoch-seconds ttl attribute.
            clock: Returns the current Unix time.
            capacity_hook: Receives consumed write capacity units per request.
        """
        super().__init__(min(batch_size, MAX_BATCH_ITEMS), capacity_hook)
        self.client = client
        self.table_name = table_name
        self.max_item_bytes = max_item_bytes
        self.ttl_seconds = ttl_seconds
        self.name = f"dynamodb:{table_name}"
        self._clock = clock
        self._serializer = TypeSerializer()

    @staticmethod
    def build_item(station: StationSnapshot, expires_at: int) -> dict:
        item = {"stopId": station.station_id}
        item.update(station.to_dict())
        item["ttl"] = expires_at
        return item

    def flush(self, snapshot: Snapshot) -> FlushResult:
        result = FlushResult(sink=self.name)
        expires_at = int(self._clock()) + self.ttl_seconds

        items: List[dict] = []
        for station in snapshot.values():
            item = self.build_item(station, expires_at)
            size = estimate_item_size(item)
            if size > self.max_item_bytes:
                logger.warning(f"Skipping station {station.station_id}: item is {size} bytes")
                result.failed += 1
                continue
            items.append(item)

        for batch in chunked(items, self.batch_size):
            self._write_batch(batch, result)

        logger.info(
            f"{self.name}: wrote {result.written} items in {result.batches} batches "
            f"({result.failed} unprocessed or failed)"
        )
        return result

    def _write_batch(self, batch: List[dict], result: FlushResult) -> None:
        put_requests = [{"PutRequest": {"Item": self._serialize(item)}} for item in batch]
        result.batches += 1
        try:
            response = self._batch_write(put_requests)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"{self.name}: batch write of {len(batch)} items failed: {e}")
            result.failed += len(batch)
            result.errors.append(str(e))
            return

        unprocessed = self._unprocessed(response)
        if unprocessed:
            logger.warning(f"{self.name}: retrying {len(unprocessed)} unprocessed items")
            try:
                unprocessed = self._unprocessed(self._batch_write(unprocessed))
            except (BotoCoreError, ClientError) as e:
                logger.error(f"{self.name}: retry of {len(unprocessed)} items failed: {e}")
                result.errors.append(str(e))

        result.written += len(batch) - len(unprocessed)
        result.failed += len(unprocessed)

    def _batch_write(self, put_requests: List[dict]) -> dict:
        response = self.client.batch_write_item(
            RequestItems={self.table_name: put_requests},
            ReturnConsumedCapacity="TOTAL",
        )
        units = sum(c.get("CapacityUnits", 0) for c in response.get("ConsumedCapacity", []))
        self._report_capacity(units)
        return response

    def _unprocessed(self, response: dict) -> List[dict]:
        return response.get("UnprocessedItems", {}).get(self.table_name, [])

    def _serialize(self, item: dict) -> Dict[str, dict]:
        return {key: self._serializer.serialize(value) for key, value in item.items()}
