"""S3 sink: the snapshot split across JSON objects by station."""

import json
import logging
from typing import List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ..models import FlushResult
from ..schedule import Snapshot
from .base import BatchedSinkWriter, CapacityHook, chunked

logger = logging.getLogger(__name__)

DEFAULT_STATIONS_PER_OBJECT = 100


class S3SinkWriter(BatchedSinkWriter):
    """
    Writes ``<prefix>/part-NNNN.json`` objects, each holding a slice of stations.

    Station order is the snapshot's (sorted by station ID), so a given
    station lands in the same part while the station set is unchanged.
    A failed put is retried once; objects succeed or fail independently.
    """

    def __init__(
        self,
        client,
        bucket: str,
        prefix: str = "arrivals",
        stations_per_object: int = DEFAULT_STATIONS_PER_OBJECT,
        capacity_hook: Optional[CapacityHook] = None,
    ):
        super().__init__(stations_per_object, capacity_hook)
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.name = f"s3:{bucket}/{self.prefix}"

    def object_key(self, index: int) -> str:
        return f"{self.prefix}/part-{index:04d}.json" if self.prefix else f"part-{index:04d}.json"

    def flush(self, snapshot: Snapshot) -> FlushResult:
        result = FlushResult(sink=self.name)
        failed: List[Tuple[str, bytes, int]] = []

        for index, station_ids in enumerate(chunked(list(snapshot), self.batch_size)):
            body = json.dumps(
                {station_id: snapshot[station_id].to_dict() for station_id in station_ids}
            ).encode("utf-8")
            key = self.object_key(index)
            result.batches += 1
            try:
                self._put(key, body)
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"{self.name}: put {key} failed, will retry: {e}")
                failed.append((key, body, len(station_ids)))
                continue
            result.written += len(station_ids)

        for key, body, count in failed:
            try:
                self._put(key, body)
            except (BotoCoreError, ClientError) as e:
                logger.error(f"{self.name}: retry of {key} failed: {e}")
                result.failed += count
                result.errors.append(str(e))
                continue
            result.written += count

        logger.info(
            f"{self.name}: wrote {result.written} stations in {result.batches} objects "
            f"({result.failed} failed)"
        )
        return result

    def _put(self, key: str, body: bytes) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType="application/json",
        )
        self._report_capacity(len(body) / 1024)
