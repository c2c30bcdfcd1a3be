from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

ConversationId = int | str


class ScreeningState(str, Enum):
    SELECT_SCREENING = "select_screening"
    ASK_AGE = "ask_age"
    ASK_GENDER = "ask_gender"
    ASK_WEIGHT = "ask_weight"
    ASK_HEIGHT = "ask_height"
    ASK_BP_KNOW = "ask_bp_know"
    ASK_BP_VALUE = "ask_bp_value"
    CHECKLIST = "checklist"
    AWAIT_FREE_TEXT_SYMPTOMS = "await_free_text_symptoms"
    FINALIZE = "finalize"


class InputKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


@dataclass(slots=True)
class Answers:
    age: int | None = None
    gender: Gender | None = None
    weight_kg: float | None = None
    height_cm: float | None = None
    blood_pressure: str | None = None
    checked_symptoms: list[str] = field(default_factory=list)
    free_text_symptoms: str | None = None


@dataclass(slots=True)
class Session:
    conversation_id: ConversationId
    state: ScreeningState = ScreeningState.SELECT_SCREENING
    answers: Answers = field(default_factory=Answers)
    symptom_cursor: int = 0


@dataclass(frozen=True, slots=True)
class Profile:
    age: int | None
    gender: Gender | None
    bmi: str | None
    blood_pressure: str | None
    symptoms: tuple[str, ...]
    additional: str | None
    dataset1_context: str
    dataset2_context: str

    def summary_line(self) -> str:
        gender = self.gender.value if self.gender else None
        parts = [f"Age: {self.age}", f"Gender: {gender}"]
        if self.bmi:
            parts.append(f"BMI: {self.bmi}")
        if self.blood_pressure:
            parts.append(f"Blood Pressure: {self.blood_pressure}")
        if self.symptoms:
            parts.append(f"Symptoms: {', '.join(self.symptoms)}")
        if self.additional:
            parts.append(f"Additional: {self.additional}")
        return ", ".join(parts)


@dataclass(frozen=True, slots=True)
class Facility:
    name: str
    address: str
    phone: str | None = None


@dataclass(slots=True)
class AdvisoryResult:
    success: bool
    narrative: str | None
    raw: Any = None

    @classmethod
    def failed(cls, raw: Any = None) -> "AdvisoryResult":
        return cls(success=False, narrative=None, raw=raw)


@dataclass(frozen=True, slots=True)
class Reply:
    text: str
    # Rows of (label, callback_data) rendered as inline buttons.
    choices: tuple[tuple[tuple[str, str], ...], ...] = ()
    request_location: bool = False


@dataclass(slots=True)
class Transcript:
    id: int
    conversation_id: str
    user_prompt: str
    agent_reply: str
    created_at: datetime
