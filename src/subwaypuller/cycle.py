"""One fetch -> aggregate -> flush pass over every realtime feed."""

import enum
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .arrival_list import DEFAULT_CAPACITY
from .exceptions import ConfigurationError, SubwayPullerError
from .models import FlushResult, RunSummary
from .mta_client import MTAClient
from .schedule import IngestOutcome, Snapshot, StationSchedule
from .sinks.base import BatchedSinkWriter

logger = logging.getLogger(__name__)


class CycleState(enum.Enum):
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    FLUSHING = "flushing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CycleReport:
    """What happened during one cycle."""
    state: CycleState = CycleState.FETCHING
    failed_stage: Optional[CycleState] = None
    error: Optional[str] = None
    feeds: int = 0
    updates: int = 0
    inserted: int = 0
    dropped: int = 0
    skipped: int = 0  # No usable arrival time
    in_the_past: int = 0
    stations: int = 0
    results: List[FlushResult] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)
    schedule: Optional[StationSchedule] = None

    @property
    def succeeded(self) -> bool:
        return self.state == CycleState.COMPLETED

    def count(self, outcome: IngestOutcome) -> None:
        self.updates += 1
        if outcome is IngestOutcome.INSERTED:
            self.inserted += 1
        elif outcome is IngestOutcome.DROPPED:
            self.dropped += 1
        elif outcome is IngestOutcome.IN_THE_PAST:
            self.in_the_past += 1
        else:
            self.skipped += 1


class IngestionCycle:
    """
    Runs a single ingestion cycle: Fetching -> Aggregating -> Flushing.

    Any feed failure aborts the cycle before anything is aggregated, so a
    partial feed set is never written. Sink failures are contained in their
    FlushResult. ``run`` never raises; the report carries the outcome.
    """

    def __init__(
        self,
        client: MTAClient,
        sinks: Sequence[BatchedSinkWriter] = (),
        station_lookup: Optional[Callable[[str], str]] = None,
        notifier=None,
        capacity: int = DEFAULT_CAPACITY,
        filter_past: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cycle.

        Args:
            client: Fetches and decodes the configured feeds.
            sinks: Writers flushed with the cycle's snapshot, concurrently.
            station_lookup: Resolves station IDs to headsign names.
            notifier: Object with ``send_summary(RunSummary)``, or None.
            capacity: Arrivals kept per station direction.
            filter_past: Drop arrivals that are already in the past.
            clock: Returns the current Unix time.

        Raises:
            ConfigurationError: If capacity is less than 1.
        """
        if capacity < 1:
            raise ConfigurationError(f"Capacity must be at least 1, got {capacity}")
        self.client = client
        self.sinks = list(sinks)
        self.station_lookup = station_lookup
        self.notifier = notifier
        self.capacity = capacity
        self.filter_past = filter_past
        self.clock = clock

    def new_schedule(self) -> StationSchedule:
        return StationSchedule(
            capacity=self.capacity,
            station_lookup=self.station_lookup,
            filter_past=self.filter_past,
            clock=self.clock,
        )

    def run(self) -> CycleReport:
        report = CycleReport()
        started = time.monotonic()

        try:
            report.state = CycleState.FETCHING
            payloads = self.client.fetch_all()
            report.feeds = len(payloads)

            report.state = CycleState.AGGREGATING
            report.schedule = self.aggregate(payloads, report)

            report.state = CycleState.FLUSHING
            report.results = self.flush(report.schedule.snapshot())
            report.summary = RunSummary.from_results(report.results)
            report.state = CycleState.COMPLETED
        except Exception as e:
            if isinstance(e, SubwayPullerError):
                logger.error(f"Cycle aborted while {report.state.value}: {e}")
            else:
                logger.exception(f"Cycle aborted while {report.state.value}")
            report.failed_stage = report.state
            report.state = CycleState.FAILED
            report.error = str(e)
            report.summary = RunSummary.from_results(report.results, extra_errors=1)

        logger.info(
            f"Cycle {report.state.value} in {time.monotonic() - started:.2f}s: "
            f"{report.summary.total_items_written} written, "
            f"{report.summary.total_unprocessed_or_failed_items} unprocessed or failed, "
            f"average batch size {report.summary.average_batch_size:.2f}, "
            f"{report.summary.error_count} errors"
        )
        self._notify(report.summary)
        return report

    def aggregate(self, payloads: Sequence[Tuple[str, bytes]], report: CycleReport) -> StationSchedule:
        """Decode every payload and ingest its updates into a fresh schedule."""
        schedule = self.new_schedule()
        for url, payload in payloads:
            updates = self.client.decode_feed(payload)
            logger.debug(f"Ingesting {len(updates)} updates from {url}")
            for update in updates:
                report.count(schedule.ingest(update))

        report.stations = len(schedule)
        logger.info(f"Total skipped updates: {report.skipped}")
        logger.info(f"Total updates in the past: {report.in_the_past}")
        logger.info(
            f"Aggregated {report.inserted} arrivals ({report.dropped} beyond capacity) "
            f"across {report.stations} stations"
        )
        return schedule

    def flush(self, snapshot: Snapshot) -> List[FlushResult]:
        """Flush the snapshot to every sink concurrently and collect their results."""
        if not self.sinks:
            logger.info("No sinks configured; nothing to flush")
            return []

        results: List[FlushResult] = []
        with ThreadPoolExecutor(max_workers=len(self.sinks)) as executor:
            futures = [(sink, executor.submit(sink.flush, snapshot)) for sink in self.sinks]
            for sink, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.exception(f"Sink {sink.name} raised during flush")
                    results.append(FlushResult(sink=sink.name, errors=[str(e)]))
        return results

    def _notify(self, summary: RunSummary) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send_summary(summary)
        except Exception:
            logger.exception("Notifier failed")
