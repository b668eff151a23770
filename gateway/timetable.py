"""
Static reference data: transit lines and NeTEx-style timetables.

Both documents come from the upstream as JSON (sometimes with a UTF-8 BOM)
and are kept as plain dicts; ``Timetable`` only adds the lookups the
departures endpoint needs.
"""

import json
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import ReferenceDataError
from .http import HTTPClient, build_upstream_url
from .logger import LoggerManager
from .params import Config
from .rotator import CredentialPool

UTF8_BOM = b"\xef\xbb\xbf"

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

Departure = Dict[str, str]


def _parse_json(data: bytes, what: str) -> Any:
    if data.startswith(UTF8_BOM):
        data = data[len(UTF8_BOM) :]
    try:
        return json.loads(data)
    except ValueError as e:
        raise ReferenceDataError(f"failed to parse {what} JSON: {e}") from e


def _read_file(filename: str | Path, what: str) -> bytes:
    try:
        return Path(filename).read_bytes()
    except OSError as e:
        raise ReferenceDataError(f"failed to read {what} file: {e}") from e


def _read_url(url: str, http_client: HTTPClient, what: str) -> bytes:
    try:
        with http_client.get(url) as response:
            if response.status_code != 200:
                raise ReferenceDataError(
                    f"unexpected status code fetching {what}: {response.status_code}"
                )
            return response.content
    except requests.RequestException as e:
        raise ReferenceDataError(f"failed to fetch {what}: {type(e).__name__}") from e


def _dig(obj: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


# ============================================================================
# Lines
# ============================================================================


def parse_lines(data: bytes) -> List[Dict[str, Any]]:
    lines = _parse_json(data, "lines")
    if not isinstance(lines, list):
        raise ReferenceDataError("failed to parse lines JSON: expected a list")
    return lines


def load_lines_from_file(filename: str | Path) -> List[Dict[str, Any]]:
    return parse_lines(_read_file(filename, "lines"))


def load_lines_from_url(url: str, http_client: HTTPClient) -> List[Dict[str, Any]]:
    return parse_lines(_read_url(url, http_client, "lines"))


def line_ids(lines: List[Dict[str, Any]]) -> List[str]:
    return [line.get("Id", "") for line in lines]


def monitored_lines(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [line for line in lines if line.get("Monitored")]


# ============================================================================
# Timetables
# ============================================================================


def parse_weekday(value: str) -> Optional[str]:
    """Accept ``Monday`` or ``monday``; anything else is None."""
    for day in WEEKDAYS:
        if value in (day, day.lower()):
            return day
    return None


class Timetable:
    def __init__(self, document: Dict[str, Any]):
        if not isinstance(document, dict):
            raise ReferenceDataError("failed to parse timetable JSON: expected an object")
        self.document = document

    @property
    def content(self) -> Dict[str, Any]:
        return self.document.get("Content") or {}

    @property
    def routes(self) -> List[Dict[str, Any]]:
        return _as_list(_dig(self.content, "ServiceFrame", "routes", "Route"))

    @property
    def day_types(self) -> List[Dict[str, Any]]:
        return _as_list(_dig(self.content, "ServiceCalendarFrame", "dayTypes", "DayType"))

    @property
    def frames(self) -> List[Dict[str, Any]]:
        return _as_list(self.content.get("TimetableFrame"))

    def _frame_runs_on(self, frame: Dict[str, Any], weekday: str) -> bool:
        day_type_ref = _dig(
            frame,
            "frameValidityConditions",
            "AvailabilityCondition",
            "dayTypes",
            "DayTypeRef",
            "ref",
        )
        for day_type in self.day_types:
            if day_type.get("id") == day_type_ref:
                days = _dig(day_type, "properties", "PropertyOfDay", "DaysOfWeek") or ""
                return weekday in days
        return False

    def departures_by_stop(self, weekday: Optional[str] = None) -> Dict[str, List[Departure]]:
        """Map each stop id to every train call at that stop.

        With ``weekday`` set, frames whose day type does not cover that day
        are skipped.
        """
        route_lines = {
            route.get("id"): _dig(route, "LineRef", "ref") for route in self.routes
        }
        result: Dict[str, List[Departure]] = {}

        for frame in self.frames:
            if weekday and not self._frame_runs_on(frame, weekday):
                continue

            for journey in _as_list(_dig(frame, "vehicleJourneys", "ServiceJourney")):
                route_ref = _dig(journey, "JourneyPatternView", "RouteRef", "ref")
                line = route_lines.get(route_ref) or route_ref
                direction = _dig(journey, "JourneyPatternView", "DirectionRef", "ref")

                for call in _as_list(_dig(journey, "calls", "Call")):
                    stop_id = _dig(call, "ScheduledStopPointRef", "ref")
                    result.setdefault(stop_id, []).append(
                        {
                            "trainId": journey.get("id"),
                            "line": line,
                            "direction": direction,
                            "arrivalTime": _dig(call, "Arrival", "Time"),
                            "departureTime": _dig(call, "Departure", "Time"),
                            "destination": _dig(call, "DestinationDisplayView", "Name"),
                            "daysOffset": _dig(call, "Departure", "DaysOffset"),
                        }
                    )

        return result


def parse_timetable(data: bytes) -> Timetable:
    return Timetable(_parse_json(data, "timetable"))


def load_timetable_from_file(filename: str | Path) -> Timetable:
    return parse_timetable(_read_file(filename, "timetable"))


def load_timetable_from_url(url: str, http_client: HTTPClient) -> Timetable:
    return parse_timetable(_read_url(url, http_client, "timetable"))


class TimetableCollection:
    """Timetables for several lines, queried as one."""

    def __init__(self, timetables: Optional[List[Timetable]] = None):
        self.timetables: List[Timetable] = list(timetables or [])

    def add(self, timetable: Timetable) -> None:
        self.timetables.append(timetable)

    def __len__(self) -> int:
        return len(self.timetables)

    def departures_by_stop(self, weekday: Optional[str] = None) -> Dict[str, List[Departure]]:
        result: Dict[str, List[Departure]] = {}
        for timetable in self.timetables:
            for stop_id, departures in timetable.departures_by_stop(weekday).items():
                result.setdefault(stop_id, []).extend(departures)
        return result


class TimetableStore:
    """Holds the collection currently served; replaced wholesale after a load."""

    def __init__(self):
        self._lock = threading.Lock()
        self._collection: Optional[TimetableCollection] = None

    def set(self, collection: TimetableCollection) -> None:
        with self._lock:
            self._collection = collection

    def get(self) -> Optional[TimetableCollection]:
        with self._lock:
            return self._collection


def preload_timetables(
    pool: CredentialPool,
    http_client: HTTPClient,
    base_url: Optional[str] = None,
    operator_id: Optional[str] = None,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> TimetableCollection:
    """Fetch the operator's lines, then each line's timetable.

    One credential is used for the whole load and requests are spaced by
    ``delay`` seconds. A line whose timetable fails is logged and skipped.
    """
    base_url = base_url or Config.CG_UPSTREAM_BASE_URL
    operator_id = operator_id or Config.CG_OPERATOR_ID
    delay = Config.CG_TIMETABLE_LOAD_DELAY if delay is None else delay

    credential = pool.acquire()
    if credential is None:
        raise ReferenceDataError("No available API key to load timetables")

    common = [("operator_id", operator_id), ("format", "json")]

    LoggerManager.info("Loading lines from API ...")
    lines = load_lines_from_url(
        build_upstream_url(base_url, "transit/lines", common, credential.value),
        http_client,
    )
    LoggerManager.info(f"Loaded {len(lines)} lines")

    collection = TimetableCollection()
    for line_id in line_ids(lines):
        sleep(delay)
        url = build_upstream_url(
            base_url,
            "transit/timetable",
            common + [("line_id", line_id)],
            credential.value,
        )
        LoggerManager.info(f"Loading timetable for line: {line_id}")
        try:
            collection.add(load_timetable_from_url(url, http_client))
        except ReferenceDataError as e:
            LoggerManager.warn(f"Failed to load timetable for line {line_id}: {e}")

    return collection
