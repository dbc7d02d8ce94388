"""Common behaviour for batched sink writers."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from ..models import FlushResult
from ..schedule import Snapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Receives (sink name, consumed capacity units) after each write request
CapacityHook = Callable[[str, float], None]


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split items into consecutive batches of at most ``size``, preserving order."""
    if size < 1:
        raise ValueError(f"batch size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class BatchedSinkWriter(ABC):
    """
    Pushes a schedule snapshot to one storage backend.

    Subclasses split the snapshot into backend-sized batches in a
    deterministic order and report counts through a FlushResult. They must
    not mutate the snapshot and must release any connection they open
    before ``flush`` returns.
    """

    name = "sink"

    def __init__(self, batch_size: int, capacity_hook: Optional[CapacityHook] = None):
        if batch_size < 1:
            raise ValueError(f"batch size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.capacity_hook = capacity_hook

    @abstractmethod
    def flush(self, snapshot: Snapshot) -> FlushResult:
        """Write the snapshot and return what was written and what failed."""

    def _report_capacity(self, units: float) -> None:
        if self.capacity_hook is None or not units:
            return
        try:
            self.capacity_hook(self.name, units)
        except Exception:
            logger.exception(f"Capacity hook failed for {self.name}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, batch_size={self.batch_size})"
