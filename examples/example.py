"""Example usage: aggregate one cycle without sinks and print a few stations."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import subwaypuller
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwaypuller.cycle import IngestionCycle
from subwaypuller.gtfs_loader import StationDirectory
from subwaypuller.mta_client import MTAClient

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_station(snapshot, station_id: str):
    """
    Print both directions of a station from a snapshot.

    Args:
        snapshot: Snapshot returned by StationSchedule.snapshot().
        station_id: Station ID without direction marker (e.g., "L06").
    """
    station = snapshot.get(station_id)
    if station is None:
        print(f"{station_id}: no upcoming arrivals")
        return

    print(f"\n{'='*70}")
    print(f"Station {station_id}")
    print(f"{'='*70}")
    for direction in (station.northbound, station.southbound):
        print(f"\n{direction.name or 'Unknown destination'}:")
        for train in direction.trains:
            print(f"  {train.route_id}: {train.arrival_time.astimezone().strftime('%H:%M:%S')} ({train.trip_id})")


if __name__ == "__main__":
    station_ids = sys.argv[1:] or ["L06", "127", "F14"]

    directory = StationDirectory()
    try:
        directory.load_from_url()
    except Exception as e:
        logger.warning(f"Continuing without station names: {e}")

    report = IngestionCycle(MTAClient(), station_lookup=directory).run()
    if not report.succeeded:
        print(f"Cycle failed: {report.error}")
        sys.exit(1)

    snapshot = report.schedule.snapshot()
    for station_id in station_ids:
        print_station(snapshot, station_id)
