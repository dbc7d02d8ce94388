"""Tests for StationSchedule."""

import json
import random
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add src to path so we can import subwaypuller
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwaypuller.models import NORTHBOUND, SOUTHBOUND, StopTimeUpdate
from subwaypuller.schedule import IngestOutcome, StationSchedule, snapshot_to_dict

NOW = 1_700_000_000  # 2023-11-14T22:13:20Z


def make_update(stop_id: str, offset, trip_id: str = "001", route_id: str = "1", terminal: str = None):
    return StopTimeUpdate(
        raw_stop_id=stop_id,
        timestamp=None if offset is None else NOW + offset,
        trip_id=trip_id,
        route_id=route_id,
        terminal_stop_id=terminal,
    )


class TestIngest(unittest.TestCase):
    """Test routing of decoded updates into the schedule."""

    def setUp(self):
        """Set up a schedule with a fixed clock and a small station lookup."""
        self.names = {"101": "Van Cortlandt Park-242 St", "142": "South Ferry"}
        self.schedule = StationSchedule(
            capacity=5,
            station_lookup=lambda station_id: self.names.get(station_id, ""),
            clock=lambda: NOW,
        )

    def test_splits_stop_id_into_station_and_direction(self):
        self.assertEqual(self.schedule.ingest(make_update("127N", 60)), IngestOutcome.INSERTED)
        self.assertEqual(self.schedule.ingest(make_update("127S", 120)), IngestOutcome.INSERTED)

        self.assertEqual(self.schedule.station_ids(), frozenset({"127"}))
        station = self.schedule.get_schedule("127")
        self.assertEqual(len(station.northbound.trains), 1)
        self.assertEqual(len(station.southbound.trains), 1)
        self.assertEqual(station.northbound.trains[0].direction, NORTHBOUND)
        self.assertEqual(station.southbound.trains[0].direction, SOUTHBOUND)

    def test_skips_updates_without_usable_time(self):
        for update in [
            make_update("127N", None),
            StopTimeUpdate("127N", 0, "001", "1"),
            StopTimeUpdate("127N", -5, "001", "1"),
            make_update("", 60),
        ]:
            self.assertEqual(self.schedule.ingest(update), IngestOutcome.SKIPPED)

        self.assertEqual(self.schedule.station_ids(), frozenset())

    def test_skips_direction_marker_without_station(self):
        self.assertEqual(self.schedule.ingest(make_update("N", 60)), IngestOutcome.SKIPPED)
        self.assertEqual(self.schedule.ingest(make_update("S", 60)), IngestOutcome.SKIPPED)

        self.assertEqual(self.schedule.station_ids(), frozenset())
        self.assertEqual(len(self.schedule), 0)

    def test_past_arrivals_are_filtered(self):
        self.assertEqual(self.schedule.ingest(make_update("127N", -30)), IngestOutcome.IN_THE_PAST)
        self.assertEqual(self.schedule.ingest(make_update("127N", 0)), IngestOutcome.IN_THE_PAST)
        self.assertNotIn("127", self.schedule.station_ids())

    def test_past_arrivals_kept_when_filter_disabled(self):
        schedule = StationSchedule(capacity=5, filter_past=False, clock=lambda: NOW)

        self.assertEqual(schedule.ingest(make_update("127N", -30)), IngestOutcome.INSERTED)
        self.assertIn("127", schedule.station_ids())

    def test_dropped_when_beyond_capacity(self):
        for offset in range(1, 6):
            self.schedule.ingest(make_update("127N", offset * 60))

        self.assertEqual(self.schedule.ingest(make_update("127N", 600)), IngestOutcome.DROPPED)
        self.assertEqual(self.schedule.ingest(make_update("127N", 30)), IngestOutcome.INSERTED)

    def test_destination_resolved_from_terminal_stop(self):
        self.schedule.ingest(make_update("127N", 60, terminal="101N"))
        self.schedule.ingest(make_update("127S", 60, terminal="142S"))

        station = self.schedule.get_schedule("127")
        self.assertEqual(station.northbound.name, "Van Cortlandt Park-242 St")
        self.assertEqual(station.northbound.trains[0].destination, "Van Cortlandt Park-242 St")
        self.assertEqual(station.southbound.name, "South Ferry")

    def test_unresolved_destination_is_empty(self):
        self.schedule.ingest(make_update("127N", 60, terminal="999N"))
        self.schedule.ingest(make_update("127S", 60))

        station = self.schedule.get_schedule("127")
        self.assertEqual(station.northbound.name, "")
        self.assertEqual(station.northbound.trains[0].destination, "")
        self.assertEqual(station.southbound.name, "")

    def test_label_set_once(self):
        self.schedule.ingest(make_update("127N", 60))
        self.schedule.ingest(make_update("127N", 120, terminal="101N"))
        self.schedule.ingest(make_update("127N", 30, terminal="142S"))

        self.assertEqual(self.schedule.get_schedule("127", NORTHBOUND).name, "Van Cortlandt Park-242 St")

    def test_lookup_called_once_per_terminal(self):
        lookup = MagicMock(return_value="8 Av")
        schedule = StationSchedule(station_lookup=lookup, clock=lambda: NOW)

        for offset in (60, 120, 180):
            schedule.ingest(make_update("L06S", offset, route_id="L", terminal="L01S"))

        lookup.assert_called_once_with("L01")

    def test_ingest_order_does_not_change_result(self):
        updates = [
            make_update(f"{station}{direction}", offset, trip_id=f"{station}-{offset}")
            for station in ("127", "631", "L06")
            for direction in ("N", "S")
            for offset in (60, 120, 180, 240, 300, 360, 420)
        ]
        shuffled = list(updates)
        random.Random(7).shuffle(shuffled)

        other = StationSchedule(capacity=5, clock=lambda: NOW)
        for update in updates:
            self.schedule.ingest(update)
        for update in shuffled:
            other.ingest(update)

        self.assertEqual(dict(self.schedule.snapshot()), dict(other.snapshot()))


class TestSnapshot(unittest.TestCase):
    """Test the frozen export of the schedule."""

    def setUp(self):
        self.schedule = StationSchedule(capacity=3, clock=lambda: NOW)
        self.schedule.ingest(make_update("L06N", 60, trip_id="A", route_id="L"))
        self.schedule.ingest(make_update("L06S", 120, trip_id="B", route_id="L"))

    def test_snapshot_is_read_only(self):
        snapshot = self.schedule.snapshot()

        with self.assertRaises(TypeError):
            snapshot["L06"] = None
        self.assertIsInstance(snapshot["L06"].northbound.trains, tuple)

    def test_snapshot_unaffected_by_later_ingest(self):
        snapshot = self.schedule.snapshot()

        self.schedule.ingest(make_update("L06N", 30, trip_id="C", route_id="L"))
        self.schedule.ingest(make_update("127N", 30))

        self.assertEqual([t.trip_id for t in snapshot["L06"].northbound.trains], ["A"])
        self.assertNotIn("127", snapshot)

    def test_snapshot_export_shape(self):
        exported = snapshot_to_dict(self.schedule.snapshot())

        self.assertEqual(
            exported["L06"]["northbound"],
            {
                "name": "",
                "trains": [
                    {
                        "arrivalTime": "2023-11-14T22:14:20.000Z",
                        "tripId": "A",
                        "routeId": "L",
                        "destination": "",
                    }
                ],
            },
        )
        self.assertEqual(exported["L06"]["southbound"]["trains"][0]["tripId"], "B")

    def test_get_schedule_unknown_station(self):
        self.assertIsNone(self.schedule.get_schedule("999"))

    def test_write_to_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = self.schedule.write_to_file(Path(tmp) / "out" / "schedule.json")
            with open(path, encoding="utf-8") as f:
                data = json.load(f)

        self.assertEqual(list(data), ["L06"])
        self.assertEqual(data["L06"]["southbound"]["trains"][0]["routeId"], "L")

    def test_log_schedule(self):
        with self.assertLogs("subwaypuller.schedule", level="INFO") as logs:
            self.schedule.log_schedule("L06")

        self.assertTrue(any("Train A on route L" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
