"""Tests for IngestionCycle."""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

# Add src to path so we can import subwaypuller
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from subwaypuller.cycle import CycleState, IngestionCycle
from subwaypuller.exceptions import ConfigurationError, FeedDecodeError, SourceUnavailableError
from subwaypuller.models import FlushResult, StopTimeUpdate
from subwaypuller.mta_client import MTAClient
from subwaypuller.sinks import DynamoDBSinkWriter

NOW = 1_700_000_000


def make_updates(stations: int, feed: str = "a"):
    updates = []
    for i in range(stations):
        updates.append(StopTimeUpdate(f"{feed}{i:02d}N", NOW + 60, f"{feed}-trip-{i}", "A", f"{feed}99N"))
        updates.append(StopTimeUpdate(f"{feed}{i:02d}S", NOW + 120, f"{feed}-trip-{i}", "A"))
    updates.append(StopTimeUpdate(f"{feed}00N", None, f"{feed}-no-time", "A"))
    updates.append(StopTimeUpdate(f"{feed}00N", NOW - 60, f"{feed}-departed", "A"))
    return updates


def fake_client(feeds: dict) -> MagicMock:
    """A client whose feeds decode to the given updates, keyed by URL."""
    client = MagicMock(spec=MTAClient)
    client.fetch_all.return_value = [(url, url.encode()) for url in feeds]
    client.decode_feed.side_effect = lambda payload: feeds[payload.decode()]
    return client


def fake_sink(name: str, written: int = 0, batches: int = 0, failed: int = 0, errors=None) -> MagicMock:
    sink = MagicMock()
    sink.name = name
    sink.flush.return_value = FlushResult(sink=name, written=written, failed=failed, batches=batches, errors=errors or [])
    return sink


class TestIngestionCycle(unittest.TestCase):
    """Test the Fetching -> Aggregating -> Flushing sequence."""

    def setUp(self):
        self.client = fake_client({"http://feed/a": make_updates(3, "a"), "http://feed/b": make_updates(2, "b")})
        self.notifier = MagicMock()

    def make_cycle(self, sinks=(), **kwargs):
        return IngestionCycle(
            self.client,
            sinks=sinks,
            station_lookup=lambda station_id: "Terminal" if station_id.endswith("99") else "",
            notifier=self.notifier,
            capacity=5,
            clock=lambda: NOW,
            **kwargs,
        )

    def test_completed_cycle_counts_and_flushes(self):
        sink = fake_sink("primary", written=5, batches=1)

        report = self.make_cycle([sink]).run()

        self.assertEqual(report.state, CycleState.COMPLETED)
        self.assertTrue(report.succeeded)
        self.assertEqual(report.feeds, 2)
        self.assertEqual(report.inserted, 10)
        self.assertEqual(report.skipped, 2)
        self.assertEqual(report.in_the_past, 2)
        self.assertEqual(report.stations, 5)
        snapshot = sink.flush.call_args.args[0]
        self.assertEqual(set(snapshot), {"a00", "a01", "a02", "b00", "b01"})
        self.assertEqual(snapshot["a00"].northbound.name, "Terminal")

    def test_summary_across_sinks(self):
        sinks = [
            fake_sink("primary", written=60, batches=3),
            fake_sink("secondary", written=20, batches=1, failed=4, errors=["throttled"]),
        ]

        report = self.make_cycle(sinks).run()

        self.assertEqual(report.summary.total_items_written, 80)
        self.assertEqual(report.summary.total_unprocessed_or_failed_items, 4)
        self.assertEqual(report.summary.average_batch_size, 20)
        self.assertEqual(report.summary.error_count, 1)
        self.notifier.send_summary.assert_called_once_with(report.summary)

    def test_every_sink_receives_the_same_snapshot(self):
        sinks = [fake_sink("primary"), fake_sink("secondary")]

        self.make_cycle(sinks).run()

        self.assertIs(sinks[0].flush.call_args.args[0], sinks[1].flush.call_args.args[0])

    def test_source_failure_aborts_before_aggregating(self):
        self.client.fetch_all.side_effect = SourceUnavailableError("http://feed/b", requests.ConnectionError())
        sink = fake_sink("primary")

        report = self.make_cycle([sink]).run()

        self.assertEqual(report.state, CycleState.FAILED)
        self.assertEqual(report.failed_stage, CycleState.FETCHING)
        self.assertIsNone(report.schedule)
        self.client.decode_feed.assert_not_called()
        sink.flush.assert_not_called()
        self.assertEqual(report.summary.total_items_written, 0)
        self.assertEqual(report.summary.error_count, 1)
        self.notifier.send_summary.assert_called_once()

    def test_decode_failure_aborts_before_flushing(self):
        self.client.decode_feed.side_effect = FeedDecodeError("bad payload")
        sink = fake_sink("primary")

        report = self.make_cycle([sink]).run()

        self.assertEqual(report.failed_stage, CycleState.AGGREGATING)
        sink.flush.assert_not_called()

    def test_sink_exception_is_contained(self):
        broken = fake_sink("broken")
        broken.flush.side_effect = RuntimeError("connection reset")
        healthy = fake_sink("healthy", written=10, batches=1)

        report = self.make_cycle([broken, healthy]).run()

        self.assertEqual(report.state, CycleState.COMPLETED)
        self.assertEqual([r.sink for r in report.results], ["broken", "healthy"])
        self.assertEqual(report.summary.error_count, 1)
        self.assertEqual(report.summary.total_items_written, 10)

    def test_notifier_failure_does_not_propagate(self):
        self.notifier.send_summary.side_effect = RuntimeError("webhook down")

        report = self.make_cycle([fake_sink("primary")]).run()

        self.assertEqual(report.state, CycleState.COMPLETED)

    def test_runs_without_sinks_or_notifier(self):
        cycle = IngestionCycle(self.client, clock=lambda: NOW)

        report = cycle.run()

        self.assertTrue(report.succeeded)
        self.assertEqual(report.results, [])
        self.assertEqual(report.summary.average_batch_size, 0)

    def test_each_run_starts_from_an_empty_schedule(self):
        cycle = self.make_cycle()

        first = cycle.run()
        second = cycle.run()

        self.assertIsNot(first.schedule, second.schedule)
        self.assertEqual(first.inserted, second.inserted)
        self.assertEqual(dict(first.schedule.snapshot()), dict(second.schedule.snapshot()))

    def test_rejects_non_positive_capacity(self):
        with self.assertRaises(ConfigurationError):
            IngestionCycle(self.client, capacity=0)

    def test_keep_past_arrivals(self):
        report = self.make_cycle(filter_past=False).run()

        self.assertEqual(report.in_the_past, 0)
        self.assertEqual(report.inserted, 12)


class TestCycleEndToEnd(unittest.TestCase):
    """Run a cycle through the real client and DynamoDB writer with HTTP and boto3 mocked."""

    @patch("subwaypuller.mta_client.requests.get")
    def test_one_of_eight_sources_failing_writes_nothing(self, mock_get):
        def fake_get(url, **kwargs):
            if url.endswith("gtfs-g"):
                raise requests.Timeout("read timed out")
            response = MagicMock()
            response.content = b""
            return response

        mock_get.side_effect = fake_get
        dynamodb = MagicMock()
        client = MTAClient()
        cycle = IngestionCycle(client, sinks=[DynamoDBSinkWriter(dynamodb, "GtfsHandlerTable")], clock=lambda: NOW)

        with patch.object(client, "decode_feed") as decode:
            report = cycle.run()

        decode.assert_not_called()
        dynamodb.batch_write_item.assert_not_called()
        self.assertEqual(report.state, CycleState.FAILED)
        self.assertEqual(report.summary.total_items_written, 0)
        self.assertEqual(report.summary.error_count, 1)

    def test_sixty_stations_average_batch_size(self):
        client = fake_client({"http://feed/a": make_updates(60, "s")})
        dynamodb = MagicMock()
        dynamodb.batch_write_item.return_value = {"UnprocessedItems": {}}
        cycle = IngestionCycle(client, sinks=[DynamoDBSinkWriter(dynamodb, "GtfsHandlerTable")], clock=lambda: NOW)

        report = cycle.run()

        self.assertEqual(dynamodb.batch_write_item.call_count, 3)
        self.assertEqual(report.summary.total_items_written, 60)
        self.assertEqual(report.summary.average_batch_size, 20)


if __name__ == "__main__":
    unittest.main()
