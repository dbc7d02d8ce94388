"""Capacity-bounded, time-ordered arrival list for one station direction."""

import bisect
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from .models import ArrivalRecord

# Arrivals kept per station direction unless configured otherwise
DEFAULT_CAPACITY = 10


class BoundedArrivalList:
    """
    Keeps the soonest ``capacity`` arrivals for a (station, direction) pair.

    Arrivals are kept in non-decreasing order of ``arrival_time``. Records
    with equal times keep their insertion order. Once the list is full, a
    record that is not earlier than every kept arrival is ignored; an earlier
    one is spliced in and the furthest arrival is dropped.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.label = ""
        self._trains: List[ArrivalRecord] = []
        self._times: List[datetime] = []  # Mirrors _trains for bisect

    def insert(self, record: ArrivalRecord) -> bool:
        """
        Insert an arrival in time order.

        Args:
            record: Arrival to insert.

        Returns:
            True if the list changed, False if the record fell beyond capacity.
        """
        if self.is_full and record.arrival_time >= self._times[-1]:
            return False

        pos = bisect.bisect_right(self._times, record.arrival_time)
        self._times.insert(pos, record.arrival_time)
        self._trains.insert(pos, record)

        if len(self._trains) > self.capacity:
            del self._trains[self.capacity:]
            del self._times[self.capacity:]
        return True

    def set_label_if_empty(self, label: str) -> None:
        """Set the direction's display name; only the first non-empty label sticks."""
        if not self.label and label:
            self.label = label

    def to_sequence(self) -> Tuple[ArrivalRecord, ...]:
        return tuple(self._trains)

    @property
    def is_full(self) -> bool:
        return len(self._trains) >= self.capacity

    @property
    def latest(self) -> Optional[ArrivalRecord]:
        """The furthest arrival currently kept."""
        return self._trains[-1] if self._trains else None

    def __len__(self) -> int:
        return len(self._trains)

    def __iter__(self) -> Iterator[ArrivalRecord]:
        return iter(self.to_sequence())
