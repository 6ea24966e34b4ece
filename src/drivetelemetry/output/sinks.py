from __future__ import annotations

import csv
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from drivetelemetry.utils.types import DrivingEvent, TripRecord

SUMMARY_FIELDS = [
    "id",
    "start_time_s",
    "end_time_s",
    "distance_km",
    "duration_s",
    "points",
    "max_speed_kmh",
    "compliance_score",
    "event_count",
    "path_points",
    "start_name",
    "end_name",
    "validity",
    "reward_eligible",
    "driver_confidence",
    "mode_of_transport",
]


def _ensure_parent(path: str) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def event_to_dict(ev: DrivingEvent) -> Dict[str, Any]:
    return {
        "type": ev.type,
        "timestamp_s": ev.timestamp_s,
        "points_delta": ev.points_delta,
        "severity_tier": ev.severity_tier,
        "description": ev.description,
        "lat": ev.lat,
        "lng": ev.lng,
        "speed_kmh": ev.speed_kmh,
        "road_limit_kmh": ev.road_limit_kmh,
        "value": ev.value,
    }


def trip_to_dict(r: TripRecord) -> Dict[str, Any]:
    return {
        "id": r.id,
        "start_time_s": r.start_time_s,
        "end_time_s": r.end_time_s,
        "distance_km": r.distance_km,
        "duration_s": r.duration_s,
        "points": r.points,
        "max_speed_kmh": r.max_speed_kmh,
        "compliance_score": r.compliance_score,
        "events": [event_to_dict(ev) for ev in r.events],
        "path": [[lat, lng] for lat, lng in r.compressed_path],
        "start_name": r.start_name,
        "end_name": r.end_name,
        "validity": r.validity,
        "reward_eligible": r.reward_eligible,
        "driver_confidence": r.driver_confidence,
        "mode_of_transport": r.mode_of_transport,
    }


class TripStore(Protocol):
    def save(self, record: TripRecord) -> None:
        ...


@dataclass
class MemoryTripStore(TripStore):
    records: List[TripRecord] = field(default_factory=list)

    def save(self, record: TripRecord) -> None:
        self.records.append(record)


@dataclass
class JsonlTripStore(TripStore):
    """Append-only JSON-lines store, one finalized trip per line."""

    path: str

    def save(self, record: TripRecord) -> None:
        _ensure_parent(self.path)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(trip_to_dict(record), ensure_ascii=False) + "\n")


@dataclass
class CsvTripSummaryStore(TripStore):
    path: str

    def save(self, record: TripRecord) -> None:
        _ensure_parent(self.path)
        write_header = not os.path.exists(self.path) or os.path.getsize(self.path) == 0
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=SUMMARY_FIELDS)
            if write_header:
                w.writeheader()
            w.writerow(
                {
                    "id": record.id,
                    "start_time_s": record.start_time_s,
                    "end_time_s": record.end_time_s,
                    "distance_km": record.distance_km,
                    "duration_s": record.duration_s,
                    "points": record.points,
                    "max_speed_kmh": record.max_speed_kmh,
                    "compliance_score": record.compliance_score,
                    "event_count": len(record.events),
                    "path_points": len(record.compressed_path),
                    "start_name": record.start_name,
                    "end_name": record.end_name,
                    "validity": record.validity,
                    "reward_eligible": record.reward_eligible,
                    "driver_confidence": record.driver_confidence,
                    "mode_of_transport": record.mode_of_transport,
                }
            )


@dataclass
class TripStores(TripStore):
    jsonl: Optional[JsonlTripStore]
    csv: Optional[CsvTripSummaryStore]

    def save(self, record: TripRecord) -> None:
        if self.jsonl is not None:
            self.jsonl.save(record)
        if self.csv is not None:
            self.csv.save(record)
