from __future__ import annotations

import re

from .constants import NO_INFO_FOUND, SKIP_TOKEN
from .datasets import SymptomReference
from .models import Answers, Profile
from .validation import format_bmi

TERM_SPLIT_PATTERN = re.compile(r"[,.]")


def additional_symptoms(answers: Answers) -> str | None:
    text = (answers.free_text_symptoms or "").strip()
    if not text or text.lower() == SKIP_TOKEN:
        return None
    return text


def symptom_terms(answers: Answers) -> list[str]:
    terms = list(answers.checked_symptoms)
    additional = additional_symptoms(answers)
    if additional:
        terms.extend(part.strip() for part in TERM_SPLIT_PATTERN.split(additional))

    distinct: list[str] = []
    seen: set[str] = set()
    for term in terms:
        key = term.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        distinct.append(term.strip())
    return distinct


class ProfileAssembler:
    def __init__(self, reference: SymptomReference) -> None:
        self.reference = reference

    def _context(self, terms: list[str], search) -> str:
        lines = [search(term) for term in terms]
        return "\n".join(line for line in lines if line and line != NO_INFO_FOUND)

    def build(self, answers: Answers) -> Profile:
        terms = symptom_terms(answers)
        return Profile(
            age=answers.age,
            gender=answers.gender,
            bmi=format_bmi(answers.weight_kg, answers.height_cm),
            blood_pressure=answers.blood_pressure,
            symptoms=tuple(answers.checked_symptoms),
            additional=additional_symptoms(answers),
            dataset1_context=self._context(terms, self.reference.search_dataset1),
            dataset2_context=self._context(terms, self.reference.search_dataset2),
        )
