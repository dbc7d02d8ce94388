"""PostgreSQL sink: replaces the arrivals table in a single transaction."""

import logging
from datetime import timezone
from typing import List, Optional

from sqlalchemy import delete, insert, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import ConnectionBroker, arrival_model
from ..models import FlushResult
from ..schedule import Snapshot
from .base import BatchedSinkWriter, CapacityHook, chunked

logger = logging.getLogger(__name__)

# Rows per INSERT, keeps bind parameters well under driver limits
DEFAULT_BATCH_SIZE = 500


class PostgresSinkWriter(BatchedSinkWriter):
    """
    Clears an arrivals table and inserts the snapshot, one row per arrival.

    The whole flush is a single transaction: either every row of the
    snapshot is visible afterwards, or the previous contents are kept.
    """

    def __init__(
        self,
        broker: ConnectionBroker,
        table_name: str = "arrivals",
        batch_size: int = DEFAULT_BATCH_SIZE,
        capacity_hook: Optional[CapacityHook] = None,
    ):
        super().__init__(batch_size, capacity_hook)
        self.broker = broker
        self.model = arrival_model(table_name)
        self.table = self.model.__table__
        self.name = f"postgres:{table_name}"

    @staticmethod
    def build_rows(snapshot: Snapshot) -> List[dict]:
        rows = []
        for station_id, station in snapshot.items():
            for train in station.trains:
                rows.append({
                    "stop_id": station_id,
                    # Stored as a UTC timestamp without time zone
                    "arrival_time": train.arrival_time.astimezone(timezone.utc).replace(tzinfo=None),
                    "destination": train.destination,
                    "route_id": train.route_id,
                    "trip_id": train.trip_id,
                })
        return rows

    def flush(self, snapshot: Snapshot) -> FlushResult:
        result = FlushResult(sink=self.name)
        rows = self.build_rows(snapshot)
        batches = list(chunked(rows, self.batch_size))

        try:
            with self.broker.get_session() as session:
                self._clear(session)
                for batch in batches:
                    session.execute(insert(self.table), batch)
        except SQLAlchemyError as e:
            logger.error(f"{self.name}: transaction rolled back: {e}")
            result.failed = len(rows)
            result.errors.append(str(e))
            return result

        result.written = len(rows)
        result.batches = len(batches)
        self._report_capacity(len(rows))
        logger.info(f"{self.name}: replaced table with {len(rows)} rows in {len(batches)} batches")
        return result

    def _clear(self, session: Session) -> None:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text(f"TRUNCATE TABLE {self.table.name} RESTART IDENTITY"))
        else:
            session.execute(delete(self.table))
