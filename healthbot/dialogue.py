"""Screening interview state machine.

The manager is transport-agnostic: handlers in ``handlers.py`` translate
Telegram updates into ``start``/``handle_text``/``handle_choice``/
``handle_location`` calls and hand over a ``ChatChannel`` for replies.

Every session-touching call runs under the conversation lock from the
``SessionStore``, so events for one chat are applied strictly in arrival
order while other chats proceed independently.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Awaitable, Callable, Protocol

from .advisory import build_assessment_prompt, build_triage_prompt
from .checklist import SymptomChecklist
from .constants import (
    ASK_AGE_TEXT,
    ASK_BP_KNOW_TEXT,
    ASK_BP_VALUE_TEXT,
    ASK_FREE_TEXT,
    ASK_GENDER_TEXT,
    ASK_HEIGHT_TEXT,
    ASK_WEIGHT_TEXT,
    ASSESSMENT_FAILED_TEXT,
    ASSESSMENT_HEADER,
    BEGIN_SCREENING,
    BP_KNOWN,
    BP_NOT_KNOWN,
    BP_UNKNOWN,
    CONSULT_TEXT,
    CONSULT_WITH_TRIAGE_TEXT,
    GENDER_CHOICES,
    GENDER_PREFIX,
    INVALID_AGE_TEXT,
    INVALID_BP_TEXT,
    INVALID_HEIGHT_TEXT,
    INVALID_WEIGHT_TEXT,
    NO_FACILITIES_TEXT,
    NO_THANKS,
    NO_THANKS_REPLY,
    SEARCHING_FACILITIES_TEXT,
    START_BUTTON_LABEL,
    START_HINT,
    SYMPTOM_NO,
    SYMPTOM_YES,
    TRIAGE_HEADER,
    WELCOME_TEXT,
)
from .database import TranscriptStore
from .facilities import FacilityFinder, FacilityLookupError, format_facilities
from .models import (
    AdvisoryResult,
    ConversationId,
    Gender,
    InputKind,
    Reply,
    ScreeningState,
    Session,
)
from .profile import ProfileAssembler
from .sessions import SessionStore
from .validation import format_bmi, validate_age, validate_blood_pressure, validate_height, validate_weight

logger = logging.getLogger(__name__)


class ChatChannel(Protocol):
    async def send(self, reply: Reply) -> None:
        ...

    async def typing(self) -> None:
        ...


class Advisor(Protocol):
    async def assess(self, conversation_id: ConversationId, prompt: str) -> AdvisoryResult:
        ...


StepHandler = Callable[[Session, str, ChatChannel], Awaitable[None]]


def location_offer(triage: str | None) -> Reply:
    if triage:
        text = f"{TRIAGE_HEADER}\n{triage}\n\n{CONSULT_WITH_TRIAGE_TEXT}"
    else:
        text = CONSULT_TEXT
    return Reply(text=text, request_location=True)


class DialogueManager:
    def __init__(
        self,
        sessions: SessionStore,
        checklist: SymptomChecklist,
        assembler: ProfileAssembler,
        advisory: Advisor,
        facilities: FacilityFinder,
        transcripts: TranscriptStore | None = None,
    ) -> None:
        self.sessions = sessions
        self.checklist = checklist
        self.assembler = assembler
        self.advisory = advisory
        self.facilities = facilities
        self.transcripts = transcripts

        # Pairs missing from this table are ignored without a reply.
        self.transitions: dict[tuple[ScreeningState, InputKind], StepHandler] = {
            (ScreeningState.SELECT_SCREENING, InputKind.CHOICE): self._on_begin,
            (ScreeningState.ASK_AGE, InputKind.TEXT): self._on_age,
            (ScreeningState.ASK_GENDER, InputKind.CHOICE): self._on_gender,
            (ScreeningState.ASK_WEIGHT, InputKind.TEXT): self._on_weight,
            (ScreeningState.ASK_HEIGHT, InputKind.TEXT): self._on_height,
            (ScreeningState.ASK_BP_KNOW, InputKind.CHOICE): self._on_bp_know,
            (ScreeningState.ASK_BP_VALUE, InputKind.TEXT): self._on_bp_value,
            (ScreeningState.CHECKLIST, InputKind.CHOICE): self._on_symptom_answer,
            (ScreeningState.AWAIT_FREE_TEXT_SYMPTOMS, InputKind.TEXT): self._on_free_text,
        }

    # -- inbound events -----------------------------------------------------

    async def start(self, conversation_id: ConversationId, channel: ChatChannel) -> None:
        async with self.sessions.lock(conversation_id):
            self.sessions.create(conversation_id)
            await channel.send(
                Reply(
                    text=WELCOME_TEXT,
                    choices=(((START_BUTTON_LABEL, BEGIN_SCREENING),),),
                )
            )

    async def handle_text(self, conversation_id: ConversationId, text: str, channel: ChatChannel) -> None:
        text = (text or "").strip()
        if not text:
            return

        if NO_THANKS in text.lower():
            await channel.send(Reply(text=NO_THANKS_REPLY))
            return

        await self._dispatch(conversation_id, InputKind.TEXT, text, channel)

    async def handle_choice(self, conversation_id: ConversationId, data: str, channel: ChatChannel) -> None:
        await self._dispatch(conversation_id, InputKind.CHOICE, data or "", channel)

    async def handle_location(
        self,
        conversation_id: ConversationId,
        lat: float,
        lng: float,
        channel: ChatChannel,
    ) -> None:
        await channel.send(Reply(text=SEARCHING_FACILITIES_TEXT))
        try:
            facilities = await self.facilities.find_nearby(lat, lng)
        except FacilityLookupError as exc:
            logger.warning("Facility lookup failed for conversation %s: %s", conversation_id, exc)
            facilities = []

        if facilities:
            await channel.send(Reply(text=format_facilities(facilities)))
        else:
            await channel.send(Reply(text=NO_FACILITIES_TEXT))

    async def _dispatch(
        self,
        conversation_id: ConversationId,
        kind: InputKind,
        value: str,
        channel: ChatChannel,
    ) -> None:
        async with self.sessions.lock(conversation_id):
            session = self.sessions.get(conversation_id)
            if session is None:
                await channel.send(Reply(text=START_HINT))
                return

            handler = self.transitions.get((session.state, kind))
            if handler is None:
                logger.debug("Ignoring %s input in state %s", kind.value, session.state.value)
                return

            await handler(session, value, channel)

    # -- prompts ------------------------------------------------------------

    async def _ask(self, session: Session, state: ScreeningState, channel: ChatChannel) -> None:
        session.state = state

        if state == ScreeningState.ASK_AGE:
            await channel.send(Reply(text=ASK_AGE_TEXT))
        elif state == ScreeningState.ASK_GENDER:
            choices = tuple((label, f"{GENDER_PREFIX}{value}") for label, value in GENDER_CHOICES)
            await channel.send(Reply(text=ASK_GENDER_TEXT, choices=(choices,)))
        elif state == ScreeningState.ASK_WEIGHT:
            await channel.send(Reply(text=ASK_WEIGHT_TEXT))
        elif state == ScreeningState.ASK_HEIGHT:
            await channel.send(Reply(text=ASK_HEIGHT_TEXT))
        elif state == ScreeningState.ASK_BP_KNOW:
            await channel.send(Reply(text=ASK_BP_KNOW_TEXT, choices=((("Yes", BP_KNOWN), ("No", BP_UNKNOWN)),)))
        elif state == ScreeningState.ASK_BP_VALUE:
            await channel.send(Reply(text=ASK_BP_VALUE_TEXT))
        elif state == ScreeningState.AWAIT_FREE_TEXT_SYMPTOMS:
            await channel.send(Reply(text=ASK_FREE_TEXT))
        else:
            raise ValueError(f"No prompt for state {state.value}")

    async def _start_checklist(self, session: Session, channel: ChatChannel) -> None:
        session.state = ScreeningState.CHECKLIST
        session.symptom_cursor = 0
        await self._ask_next_symptom(session, channel)

    async def _ask_next_symptom(self, session: Session, channel: ChatChannel) -> None:
        symptom = self.checklist.current(session)
        if symptom is None:
            await self._ask(session, ScreeningState.AWAIT_FREE_TEXT_SYMPTOMS, channel)
            return

        await channel.send(
            Reply(
                text=f"🤔 Are you experiencing {symptom}?",
                choices=((("Yes", SYMPTOM_YES), ("No", SYMPTOM_NO)),),
            )
        )

    # -- state handlers -----------------------------------------------------

    async def _on_begin(self, session: Session, data: str, channel: ChatChannel) -> None:
        if data == BEGIN_SCREENING:
            await self._ask(session, ScreeningState.ASK_AGE, channel)

    async def _on_age(self, session: Session, text: str, channel: ChatChannel) -> None:
        result = validate_age(text)
        if not result.ok:
            await channel.send(Reply(text=INVALID_AGE_TEXT))
            return

        session.answers.age = result.value
        await self._ask(session, ScreeningState.ASK_GENDER, channel)

    async def _on_gender(self, session: Session, data: str, channel: ChatChannel) -> None:
        if not data.startswith(GENDER_PREFIX):
            return
        try:
            gender = Gender(data[len(GENDER_PREFIX):])
        except ValueError:
            return

        session.answers.gender = gender
        await self._ask(session, ScreeningState.ASK_WEIGHT, channel)

    async def _on_weight(self, session: Session, text: str, channel: ChatChannel) -> None:
        result = validate_weight(text)
        if not result.ok:
            await channel.send(Reply(text=INVALID_WEIGHT_TEXT))
            return

        session.answers.weight_kg = result.value
        await self._ask(session, ScreeningState.ASK_HEIGHT, channel)

    async def _on_height(self, session: Session, text: str, channel: ChatChannel) -> None:
        result = validate_height(text)
        if not result.ok:
            await channel.send(Reply(text=INVALID_HEIGHT_TEXT))
            return

        session.answers.height_cm = result.value
        bmi = format_bmi(session.answers.weight_kg, session.answers.height_cm)
        if bmi is not None:
            await channel.send(Reply(text=f"🧮 Your BMI is {bmi}"))

        await self._ask(session, ScreeningState.ASK_BP_KNOW, channel)

    async def _on_bp_know(self, session: Session, data: str, channel: ChatChannel) -> None:
        if data == BP_KNOWN:
            await self._ask(session, ScreeningState.ASK_BP_VALUE, channel)
        elif data == BP_UNKNOWN:
            session.answers.blood_pressure = BP_NOT_KNOWN
            await self._start_checklist(session, channel)

    async def _on_bp_value(self, session: Session, text: str, channel: ChatChannel) -> None:
        result = validate_blood_pressure(text)
        if not result.ok:
            await channel.send(Reply(text=INVALID_BP_TEXT))
            return

        session.answers.blood_pressure = result.value
        await self._start_checklist(session, channel)

    async def _on_symptom_answer(self, session: Session, data: str, channel: ChatChannel) -> None:
        if data not in (SYMPTOM_YES, SYMPTOM_NO):
            return

        self.checklist.record(session, confirmed=data == SYMPTOM_YES)
        await self._ask_next_symptom(session, channel)

    async def _on_free_text(self, session: Session, text: str, channel: ChatChannel) -> None:
        session.answers.free_text_symptoms = text
        session.state = ScreeningState.FINALIZE
        await self._finalize(session, channel)

    # -- completion ---------------------------------------------------------

    async def _consult(self, conversation_id: ConversationId, prompt: str) -> AdvisoryResult:
        try:
            return await self.advisory.assess(conversation_id, prompt)
        except Exception as exc:
            logger.exception("Advisory gateway raised for conversation %s", conversation_id)
            return AdvisoryResult.failed(raw=str(exc))

    def _record_transcript(self, conversation_id: ConversationId, prompt: str, reply: str) -> None:
        if self.transcripts is None:
            return
        try:
            self.transcripts.save_transcript(conversation_id, prompt, reply)
        except sqlite3.Error:
            logger.exception("Failed to store transcript for conversation %s", conversation_id)

    async def _finalize(self, session: Session, channel: ChatChannel) -> None:
        conversation_id = session.conversation_id
        try:
            profile = self.assembler.build(session.answers)
            prompt = build_assessment_prompt(profile)
            logger.debug("Assessment prompt for conversation %s:\n%s", conversation_id, prompt)

            await channel.typing()
            assessment = await self._consult(conversation_id, prompt)

            if assessment.success and assessment.narrative:
                self._record_transcript(conversation_id, prompt, assessment.narrative)
                await channel.send(Reply(text=f"{ASSESSMENT_HEADER}\n\n{assessment.narrative}"))

                triage = await self._consult(conversation_id, build_triage_prompt(profile))
                await channel.send(location_offer(triage.narrative if triage.success else None))
            else:
                logger.error("Assessment failed for conversation %s: %s", conversation_id, assessment.raw)
                await channel.send(Reply(text=ASSESSMENT_FAILED_TEXT))
                await channel.send(location_offer(None))
        finally:
            self.sessions.delete(conversation_id)
