from __future__ import annotations

import csv
from pathlib import Path

from healthbot.facilities import FacilityLookupError
from healthbot.models import AdvisoryResult, Facility, Reply

FIELDS = ["Symptom", "Possible Diseases", "Severity"]


def write_csv(path: Path, rows: list[dict[str, str]]) -> Path:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDS)
        writer.writeheader()
        writer.writerows(rows)
    return path


class RecordingChannel:
    def __init__(self) -> None:
        self.replies: list[Reply] = []
        self.typing_count = 0

    async def send(self, reply: Reply) -> None:
        self.replies.append(reply)

    async def typing(self) -> None:
        self.typing_count += 1

    @property
    def texts(self) -> list[str]:
        return [reply.text for reply in self.replies]

    @property
    def last(self) -> Reply:
        return self.replies[-1]

    def clear(self) -> None:
        self.replies.clear()


class ScriptedAdvisor:
    """Returns queued outcomes in order; an Exception instance is raised."""

    def __init__(self, outcomes: list[AdvisoryResult | Exception] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[object, str]] = []

    async def assess(self, conversation_id, prompt: str) -> AdvisoryResult:
        self.calls.append((conversation_id, prompt))
        if not self.outcomes:
            return AdvisoryResult(success=True, narrative="default narrative")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StaticFacilityFinder:
    def __init__(self, facilities: list[Facility] | None = None, fail: bool = False) -> None:
        self.facilities = facilities or []
        self.fail = fail
        self.calls: list[tuple[float, float]] = []

    async def find_nearby(self, lat: float, lng: float) -> list[Facility]:
        self.calls.append((lat, lng))
        if self.fail:
            raise FacilityLookupError("Places request failed: boom")
        return list(self.facilities)
