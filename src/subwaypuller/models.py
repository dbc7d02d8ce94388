"""Data models for the subway arrival puller."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

NORTHBOUND = "northbound"
SOUTHBOUND = "southbound"
DIRECTIONS = (NORTHBOUND, SOUTHBOUND)


def split_stop_id(raw_stop_id: str) -> Tuple[str, str]:
    """
    Split a platform stop ID into (station_id, direction).

    MTA platform IDs carry a trailing direction marker ("127N", "127S").
    An "N" suffix is northbound, anything else is southbound.
    """
    direction = NORTHBOUND if raw_stop_id[-1:].upper() == "N" else SOUTHBOUND
    return raw_stop_id[:-1], direction


def to_iso8601(moment: datetime) -> str:
    """Format a UTC datetime the way feeds and stores expect it (2024-01-01T12:00:00.000Z)."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class StopTimeUpdate:
    """A validated stop-time update decoded from a GTFS-Realtime trip update."""
    raw_stop_id: str  # Platform stop ID, e.g. "127N"
    timestamp: Optional[int]  # Unix arrival time, departure time as fallback
    trip_id: str
    route_id: str
    terminal_stop_id: Optional[str] = None  # Last stop of the trip, used for headsigns

    @property
    def station_id(self) -> str:
        return split_stop_id(self.raw_stop_id)[0]

    @property
    def direction(self) -> str:
        return split_stop_id(self.raw_stop_id)[1]


@dataclass(frozen=True)
class ArrivalRecord:
    """Represents a single upcoming train arrival at a station."""
    station_id: str
    direction: str  # NORTHBOUND or SOUTHBOUND
    arrival_time: datetime  # Timezone-aware UTC
    trip_id: str
    route_id: str
    destination: str = ""  # Headsign/destination, empty when unresolved

    def to_dict(self) -> dict:
        return {
            "arrivalTime": to_iso8601(self.arrival_time),
            "tripId": self.trip_id,
            "routeId": self.route_id,
            "destination": self.destination,
        }


@dataclass(frozen=True)
class DirectionSnapshot:
    """Frozen view of one direction at a station."""
    name: str
    trains: Tuple[ArrivalRecord, ...] = ()

    def to_dict(self) -> dict:
        return {"name": self.name, "trains": [train.to_dict() for train in self.trains]}


@dataclass(frozen=True)
class StationSnapshot:
    """Frozen view of both directions at a station."""
    station_id: str
    northbound: DirectionSnapshot
    southbound: DirectionSnapshot

    def direction(self, direction: str) -> DirectionSnapshot:
        return self.northbound if direction == NORTHBOUND else self.southbound

    @property
    def trains(self) -> Tuple[ArrivalRecord, ...]:
        """All arrivals at the station, northbound first."""
        return self.northbound.trains + self.southbound.trains

    def to_dict(self) -> dict:
        return {
            NORTHBOUND: self.northbound.to_dict(),
            SOUTHBOUND: self.southbound.to_dict(),
        }


@dataclass
class FlushResult:
    """Outcome of flushing one snapshot to one sink."""
    sink: str
    written: int = 0
    failed: int = 0  # Unprocessed or failed items
    batches: int = 0  # Write requests issued, retries excluded
    errors: List[str] = field(default_factory=list)


@dataclass
class RunSummary:
    """Counts forwarded to the notifier at the end of a cycle."""
    total_unprocessed_or_failed_items: int = 0
    total_items_written: int = 0
    average_batch_size: float = 0.0
    error_count: int = 0

    @classmethod
    def from_results(cls, results: List[FlushResult], extra_errors: int = 0) -> "RunSummary":
        written = sum(r.written for r in results)
        batches = sum(r.batches for r in results)
        return cls(
            total_unprocessed_or_failed_items=sum(r.failed for r in results),
            total_items_written=written,
            average_batch_size=written / batches if batches else 0.0,
            error_count=sum(len(r.errors) for r in results) + extra_errors,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalUnprocessedOrFailedItems": self.total_unprocessed_or_failed_items,
            "totalItemsWritten": self.total_items_written,
            "averageBatchSize": self.average_batch_size,
            "errorCount": self.error_count,
        }
