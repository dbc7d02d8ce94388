"""GTFS static stops loader used to resolve station names for headsigns."""

import csv
import io
import logging
import zipfile
from pathlib import Path
from typing import Dict, Optional, Union

import requests

from .models import split_stop_id

logger = logging.getLogger(__name__)

# MTA GTFS static data URL
MTA_GTFS_URL = "https://rrgtfsfeeds.s3.amazonaws.com/gtfs_subway.zip"


class StationDirectory:
    """Indexes GTFS stops.txt by stop_id and resolves display names."""

    def __init__(self):
        """Initialize an empty directory."""
        self.names: Dict[str, str] = {}  # stop_id -> stop_name
        self.stop_to_parent: Dict[str, str] = {}

    def load_from_url(self, url: str = MTA_GTFS_URL, timeout: float = 30) -> None:
        """Download the static GTFS zip and load its stops.txt."""
        logger.info(f"Downloading GTFS data from {url}")
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
            with zipfile.ZipFile(io.BytesIO(response.content)) as zip_file:
                self._load_stops(zip_file.read("stops.txt").decode("utf-8"))
        except Exception as e:
            logger.error(f"Failed to load GTFS data: {e}")
            raise
        logger.info(f"Loaded {len(self.names)} stops")

    def load_from_file(self, stops_path: Union[str, Path]) -> None:
        """Load stops from a local stops.txt (or stops.csv) file."""
        logger.info(f"Loading GTFS stops from {stops_path}")
        with open(stops_path, "r", encoding="utf-8-sig") as f:
            self._load_stops(f.read())
        logger.info(f"Loaded {len(self.names)} stops")

    def _load_stops(self, csv_content: str) -> None:
        """Parse stops.txt content."""
        reader = csv.DictReader(io.StringIO(csv_content))
        for row in reader:
            stop_id = (row.get("stop_id") or "").strip()
            if not stop_id:
                continue
            self.names[stop_id] = (row.get("stop_name") or "").strip()

            parent_station = (row.get("parent_station") or "").strip()
            if parent_station:
                self.stop_to_parent[stop_id] = parent_station

    def get_station_name(self, station_id: str) -> str:
        """
        Get the display name for a station.

        Args:
            station_id: Station ID (e.g., "127"). Platform IDs such as "127N"
                are accepted and fall back to their parent station.

        Returns:
            Station name, or "" if unknown.
        """
        name = self.names.get(station_id)
        if name:
            return name

        parent = self._parent_of(station_id)
        if parent and parent != station_id:
            return self.names.get(parent, "")
        return ""

    def _parent_of(self, stop_id: str) -> Optional[str]:
        if stop_id in self.stop_to_parent:
            return self.stop_to_parent[stop_id]
        if stop_id[-1:].upper() in ("N", "S"):
            return split_stop_id(stop_id)[0]
        return None

    def __call__(self, station_id: str) -> str:
        return self.get_station_name(station_id)

    def __len__(self) -> int:
        return len(self.names)
