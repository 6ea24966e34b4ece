from __future__ import annotations

import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Protocol

from drivetelemetry.utils.types import DrivingEvent, GuidancePrompt


logger = logging.getLogger("drivetelemetry.output.notifier")


class FeedbackSink(Protocol):
    def on_event(self, event: DrivingEvent) -> None:
        ...

    def on_guidance(self, prompt: GuidancePrompt) -> None:
        ...


@dataclass
class LogFeedbackSink(FeedbackSink):
    level: str = "WARNING"

    def on_event(self, event: DrivingEvent) -> None:
        lvl = getattr(logging, str(self.level).upper(), logging.WARNING)
        if event.points_delta >= 0:
            lvl = logging.INFO
        logger.log(
            lvl,
            "EVENT %s tier=%s points=%+.1f speed=%s limit=%s t=%.3f %s",
            event.type,
            event.severity_tier,
            event.points_delta,
            "-" if event.speed_kmh is None else f"{event.speed_kmh:.1f}",
            "-" if event.road_limit_kmh is None else f"{event.road_limit_kmh:.0f}",
            event.timestamp_s,
            event.description,
        )

    def on_guidance(self, prompt: GuidancePrompt) -> None:
        logger.info(
            "GUIDANCE [%d/%s]%s %s (%.0f m)",
            prompt.instruction_index,
            prompt.phase,
            " !" if prompt.interrupt else "",
            prompt.text,
            prompt.distance_m,
        )


@dataclass
class HttpWebhookFeedbackSink(FeedbackSink):
    url: str
    headers: Dict[str, str]
    timeout_s: float = 2.0

    def on_event(self, event: DrivingEvent) -> None:
        self._post(
            {
                "type": "driving_event",
                "event_type": event.type,
                "timestamp_s": event.timestamp_s,
                "points_delta": event.points_delta,
                "severity_tier": event.severity_tier,
                "description": event.description,
                "lat": event.lat,
                "lng": event.lng,
                "speed_kmh": event.speed_kmh,
                "road_limit_kmh": event.road_limit_kmh,
            }
        )

    def on_guidance(self, prompt: GuidancePrompt) -> None:
        self._post(
            {
                "type": "guidance",
                "instruction_index": prompt.instruction_index,
                "phase": prompt.phase,
                "text": prompt.text,
                "distance_m": prompt.distance_m,
                "interrupt": prompt.interrupt,
            }
        )

    def _post(self, payload: Dict[str, Any]) -> None:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(self.url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        for k, v in self.headers.items():
            if k.lower() == "content-type":
                continue
            req.add_header(str(k), str(v))
        try:
            with urllib.request.urlopen(req, timeout=float(self.timeout_s)) as resp:
                _ = resp.read(1)
        except Exception:
            logger.exception("Failed to POST feedback to webhook")


def create_feedback_sink(cfg: Dict[str, Any]) -> FeedbackSink:
    t = str(cfg.get("type", "log")).lower()
    if t == "log":
        return LogFeedbackSink(level=str(cfg.get("level", "WARNING")))
    if t == "http":
        http = dict(cfg.get("http", {}))
        url = str(http.get("url", ""))
        if not url:
            raise ValueError("feedback.http.url is required when feedback.type=http")
        headers = http.get("headers", {}) or {}
        if not isinstance(headers, dict):
            raise ValueError("feedback.http.headers must be a dict")
        timeout_s = float(http.get("timeout_s", 2.0))
        return HttpWebhookFeedbackSink(url=url, headers={str(k): str(v) for k, v in headers.items()}, timeout_s=timeout_s)
    raise ValueError(f"Unknown feedback.type: {t}")
