from __future__ import annotations

import csv
import logging
from collections import Counter
from pathlib import Path

from .constants import NO_INFO_FOUND, SEARCH_RESULT_LIMIT, SEARCHABLE_FIELDS

logger = logging.getLogger(__name__)


class DatasetError(RuntimeError):
    pass


def _load_csv(path: Path) -> list[dict[str, str]]:
    if not path.exists():
        raise DatasetError(f"Dataset file not found: {path}")

    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or "Symptom" not in reader.fieldnames:
            raise DatasetError(f"Dataset must have a 'Symptom' column: {path}")
        rows = [dict(row) for row in reader]

    logger.info("Loaded %s with %s rows", path.name, len(rows))
    return rows


def _format_row(row: dict[str, str]) -> str:
    symptom = (row.get("Symptom") or "").strip() or "N/A"
    diseases = (row.get("Possible Diseases") or "").strip() or "N/A"
    severity = (row.get("Severity") or "").strip() or "N/A"
    return f"• Symptom: {symptom} | Disease(s): {diseases} | Severity: {severity}"


def search_rows(rows: list[dict[str, str]], query: str) -> str:
    needle = query.strip().lower()
    if not needle:
        return NO_INFO_FOUND

    results: list[str] = []
    for row in rows:
        for field in SEARCHABLE_FIELDS:
            value = row.get(field)
            if value and needle in value.lower():
                results.append(_format_row(row))
                break
        if len(results) >= SEARCH_RESULT_LIMIT:
            break

    return "\n".join(results) if results else NO_INFO_FOUND


class SymptomReference:
    def __init__(self, dataset1: list[dict[str, str]], dataset2: list[dict[str, str]]) -> None:
        self.dataset1 = dataset1
        self.dataset2 = dataset2

    @classmethod
    def load(cls, dataset1_path: Path, dataset2_path: Path) -> "SymptomReference":
        return cls(_load_csv(dataset1_path), _load_csv(dataset2_path))

    def search_dataset1(self, term: str) -> str:
        return search_rows(self.dataset1, term)

    def search_dataset2(self, term: str) -> str:
        return search_rows(self.dataset2, term)

    def top_symptoms(self, n: int) -> list[str]:
        # Counter.most_common keeps first-encountered order for equal counts.
        freq: Counter[str] = Counter()
        for row in [*self.dataset1, *self.dataset2]:
            label = (row.get("Symptom") or "").strip()
            if label:
                freq[label] += 1
        return [label for label, _ in freq.most_common(max(0, n))]
