from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from helpers import ScriptedAdvisor, StaticFacilityFinder, write_csv
from healthbot.checklist import SymptomChecklist
from healthbot.database import TranscriptStore
from healthbot.datasets import SymptomReference
from healthbot.dialogue import DialogueManager
from healthbot.profile import ProfileAssembler
from healthbot.sessions import SessionStore

DATASET1_ROWS = [
    {"Symptom": "Fever", "Possible Diseases": "Influenza, Malaria", "Severity": "Moderate"},
    {"Symptom": "Cough", "Possible Diseases": "Common cold, Bronchitis", "Severity": "Mild"},
    {"Symptom": " Fever ", "Possible Diseases": "Dengue", "Severity": "High"},
    {"Symptom": "Headache", "Possible Diseases": "Migraine, Hypertension", "Severity": "Mild"},
    {"Symptom": "Fever", "Possible Diseases": "Typhoid", "Severity": ""},
]

DATASET2_ROWS = [
    {"Symptom": "Cough", "Possible Diseases": "Tuberculosis", "Severity": "High"},
    {"Symptom": "Nausea", "Possible Diseases": "Gastritis, Food poisoning", "Severity": "Mild"},
    {"Symptom": "Headache", "Possible Diseases": "Tension headache", "Severity": "Moderate"},
]


@pytest.fixture
def dataset_paths(tmp_path) -> tuple[Path, Path]:
    return (
        write_csv(tmp_path / "dataset1.csv", DATASET1_ROWS),
        write_csv(tmp_path / "dataset2.csv", DATASET2_ROWS),
    )


@pytest.fixture
def reference(dataset_paths) -> SymptomReference:
    return SymptomReference.load(*dataset_paths)


@pytest.fixture
def transcripts(tmp_path) -> TranscriptStore:
    store = TranscriptStore(tmp_path / "transcripts.db")
    store.init()
    return store


@pytest.fixture
def make_dialogue(reference) -> Callable[..., DialogueManager]:
    def _make(
        advisor: ScriptedAdvisor | None = None,
        facilities: StaticFacilityFinder | None = None,
        transcripts: TranscriptStore | None = None,
        checklist_size: int = 3,
    ) -> DialogueManager:
        return DialogueManager(
            sessions=SessionStore(),
            checklist=SymptomChecklist(reference.top_symptoms(checklist_size)),
            assembler=ProfileAssembler(reference),
            advisory=advisor or ScriptedAdvisor(),
            facilities=facilities or StaticFacilityFinder(),
            transcripts=transcripts,
        )

    return _make
