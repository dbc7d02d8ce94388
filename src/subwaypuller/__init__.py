"""subwaypuller - Aggregates MTA realtime arrivals per station and persists them."""

__version__ = "0.2.0"

from .models import ArrivalRecord, StopTimeUpdate, FlushResult, RunSummary
from .arrival_list import BoundedArrivalList
from .schedule import StationSchedule, IngestOutcome
from .cycle import IngestionCycle, CycleReport, CycleState
from .gtfs_loader import StationDirectory
from .mta_client import MTAClient

__all__ = [
    "IngestionCycle",
    "CycleReport",
    "CycleState",
    "StationSchedule",
    "IngestOutcome",
    "BoundedArrivalList",
    "StationDirectory",
    "MTAClient",
    "ArrivalRecord",
    "StopTimeUpdate",
    "FlushResult",
    "RunSummary",
]
