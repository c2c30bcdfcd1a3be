"""Answer validators for the screening questions.

Each validator takes the raw text a user typed and returns a
``ValidationResult``: either the parsed value or a short failure reason.
Validators never raise on bad input.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

AGE_PATTERN = re.compile(r"\d+", re.ASCII)
DECIMAL_PATTERN = re.compile(r"\d+(\.\d+)?", re.ASCII)
BLOOD_PRESSURE_PATTERN = re.compile(r"\d{2,3}/\d{2,3}", re.ASCII)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    ok: bool
    value: Any = None
    reason: str | None = None

    @classmethod
    def success(cls, value: Any) -> "ValidationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "ValidationResult":
        return cls(ok=False, reason=reason)


def _normalize(raw: str | None) -> str:
    return (raw or "").strip()


def validate_age(raw: str | None) -> ValidationResult:
    text = _normalize(raw)
    if not text:
        return ValidationResult.failure("empty")
    if not AGE_PATTERN.fullmatch(text):
        return ValidationResult.failure("not a whole number")
    return ValidationResult.success(int(text))


def _validate_decimal(raw: str | None) -> ValidationResult:
    text = _normalize(raw)
    if not text:
        return ValidationResult.failure("empty")
    if not DECIMAL_PATTERN.fullmatch(text):
        return ValidationResult.failure("not a decimal number")
    value = float(text)
    if not math.isfinite(value):
        return ValidationResult.failure("out of range")
    return ValidationResult.success(value)


def validate_weight(raw: str | None) -> ValidationResult:
    return _validate_decimal(raw)


def validate_height(raw: str | None) -> ValidationResult:
    return _validate_decimal(raw)


def validate_blood_pressure(raw: str | None) -> ValidationResult:
    text = _normalize(raw)
    if not text:
        return ValidationResult.failure("empty")
    if not BLOOD_PRESSURE_PATTERN.fullmatch(text):
        return ValidationResult.failure("expected systolic/diastolic")
    return ValidationResult.success(text)


def compute_bmi(weight_kg: float | None, height_cm: float | None) -> float | None:
    if weight_kg is None or height_cm is None:
        return None
    if weight_kg <= 0 or height_cm <= 0:
        return None
    height_m = height_cm / 100
    return weight_kg / (height_m * height_m)


def format_bmi(weight_kg: float | None, height_cm: float | None) -> str | None:
    bmi = compute_bmi(weight_kg, height_cm)
    if bmi is None:
        return None
    return f"{bmi:.1f}"
