from __future__ import annotations

from typing import Sequence

from .models import Session


class SymptomChecklist:
    """Fixed yes/no symptom checklist shared by every session.

    The list is ranked once at startup; sessions only carry a cursor into it.
    """

    def __init__(self, symptoms: Sequence[str]) -> None:
        self._symptoms = tuple(symptoms)

    def __len__(self) -> int:
        return len(self._symptoms)

    @property
    def symptoms(self) -> tuple[str, ...]:
        return self._symptoms

    def is_complete(self, session: Session) -> bool:
        return session.symptom_cursor >= len(self._symptoms)

    def current(self, session: Session) -> str | None:
        if self.is_complete(session):
            return None
        return self._symptoms[session.symptom_cursor]

    def record(self, session: Session, confirmed: bool) -> bool:
        """Record the answer for the current symptom and advance.

        Returns True once every symptom has been asked.
        """
        symptom = self.current(session)
        if symptom is None:
            return True

        if confirmed:
            session.answers.checked_symptoms.append(symptom)
        session.symptom_cursor = min(session.symptom_cursor + 1, len(self._symptoms))
        return self.is_complete(session)
