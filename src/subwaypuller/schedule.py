"""Per-station arrival schedule aggregated across all realtime feeds."""

import enum
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Union

from .arrival_list import DEFAULT_CAPACITY, BoundedArrivalList
from .models import (
    NORTHBOUND,
    ArrivalRecord,
    DirectionSnapshot,
    StationSnapshot,
    StopTimeUpdate,
    split_stop_id,
)

logger = logging.getLogger(__name__)

Snapshot = Mapping[str, StationSnapshot]


class IngestOutcome(enum.Enum):
    INSERTED = "inserted"
    DROPPED = "dropped"  # Later than every kept arrival of a full list
    SKIPPED = "skipped"  # No usable stop ID or arrival time
    IN_THE_PAST = "in_the_past"


@dataclass
class StationArrivals:
    northbound: BoundedArrivalList
    southbound: BoundedArrivalList

    def direction(self, direction: str) -> BoundedArrivalList:
        return self.northbound if direction == NORTHBOUND else self.southbound


def _no_lookup(station_id: str) -> str:
    return ""


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, dict]:
    """Convert a snapshot to plain JSON-ready dictionaries keyed by station ID."""
    return {station_id: station.to_dict() for station_id, station in snapshot.items()}


class StationSchedule:
    """
    Aggregates upcoming arrivals for every station and direction.

    One schedule is built per ingestion cycle. Updates may arrive in any
    order and from any feed; each (station, direction) keeps only its
    soonest ``capacity`` arrivals.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        station_lookup: Optional[Callable[[str], str]] = None,
        filter_past: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize an empty schedule.

        Args:
            capacity: Maximum arrivals kept per station direction.
            station_lookup: Resolves a station ID to a display name, used for
                headsigns. Unknown stations should resolve to "".
            filter_past: If True, arrivals at or before ``clock()`` are counted
                as in the past and never inserted.
            clock: Returns the current Unix time.
        """
        self.capacity = capacity
        self.filter_past = filter_past
        self._lookup = station_lookup or _no_lookup
        self._clock = clock
        self._stations: Dict[str, StationArrivals] = {}
        self._destinations: Dict[str, str] = {}  # terminal station_id -> name

    def ingest(self, update: StopTimeUpdate) -> IngestOutcome:
        """
        Route a decoded stop-time update into the matching arrival list.

        Args:
            update: Decoded update from any feed.

        Returns:
            What happened to the update. Malformed updates are skipped, never raised.
        """
        if not update.raw_stop_id or not update.timestamp or update.timestamp <= 0:
            return IngestOutcome.SKIPPED

        if self.filter_past and update.timestamp <= self._clock():
            return IngestOutcome.IN_THE_PAST

        station_id, direction = split_stop_id(update.raw_stop_id)
        if not station_id:
            return IngestOutcome.SKIPPED

        destination = self._resolve_destination(update.terminal_stop_id)
        record = ArrivalRecord(
            station_id=station_id,
            direction=direction,
            arrival_time=datetime.fromtimestamp(update.timestamp, tz=timezone.utc),
            trip_id=update.trip_id,
            route_id=update.route_id,
            destination=destination,
        )

        station = self._stations.get(station_id)
        if station is None:
            station = StationArrivals(
                northbound=BoundedArrivalList(self.capacity),
                southbound=BoundedArrivalList(self.capacity),
            )
            self._stations[station_id] = station

        arrivals = station.direction(direction)
        arrivals.set_label_if_empty(destination)
        if arrivals.insert(record):
            return IngestOutcome.INSERTED
        return IngestOutcome.DROPPED

    def _resolve_destination(self, terminal_stop_id: Optional[str]) -> str:
        if not terminal_stop_id:
            return ""
        terminal_station = split_stop_id(terminal_stop_id)[0]
        if terminal_station not in self._destinations:
            self._destinations[terminal_station] = self._lookup(terminal_station) or ""
        return self._destinations[terminal_station]

    def station_ids(self) -> FrozenSet[str]:
        return frozenset(self._stations)

    def snapshot(self) -> Snapshot:
        """
        Freeze the current schedule.

        Returns:
            Read-only mapping of station_id -> StationSnapshot, ordered by
            station ID. Later ingests do not affect it.
        """
        frozen = {
            station_id: self._freeze(station_id, self._stations[station_id])
            for station_id in sorted(self._stations)
        }
        return MappingProxyType(frozen)

    def get_schedule(
        self, station_id: str, direction: Optional[str] = None
    ) -> Union[StationSnapshot, DirectionSnapshot, None]:
        """
        Get the current schedule for one station.

        Args:
            station_id: Station ID without direction marker (e.g., "127").
            direction: NORTHBOUND or SOUTHBOUND to narrow to one direction.

        Returns:
            Snapshot of the station or direction, or None if the station has no arrivals.
        """
        station = self._stations.get(station_id)
        if station is None:
            return None
        frozen = self._freeze(station_id, station)
        return frozen.direction(direction) if direction is not None else frozen

    @staticmethod
    def _freeze(station_id: str, station: StationArrivals) -> StationSnapshot:
        return StationSnapshot(
            station_id=station_id,
            northbound=DirectionSnapshot(station.northbound.label, station.northbound.to_sequence()),
            southbound=DirectionSnapshot(station.southbound.label, station.southbound.to_sequence()),
        )

    def log_schedule(self, station_id: str) -> None:
        """Log every kept arrival at a station, northbound then southbound."""
        station = self.get_schedule(station_id)
        if station is None:
            logger.info(f"No arrivals for station {station_id}")
            return
        for direction in (station.northbound, station.southbound):
            logger.info(f"--- {direction.name or 'Unknown destination'} ---")
            for train in direction.trains:
                logger.info(
                    f"Train {train.trip_id} on route {train.route_id} arrives at "
                    f"{train.arrival_time.astimezone().strftime('%H:%M:%S')}"
                )

    def write_to_file(self, path: Union[str, Path]) -> Path:
        """Dump the current snapshot as JSON and return the written path."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(snapshot_to_dict(self.snapshot()), f, indent=2)
        logger.info(f"Wrote schedule for {len(self._stations)} stations to {path}")
        return path

    def __len__(self) -> int:
        return len(self._stations)
