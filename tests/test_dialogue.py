from __future__ import annotations

import asyncio

from helpers import RecordingChannel, ScriptedAdvisor, StaticFacilityFinder
from healthbot.constants import (
    ASK_AGE_TEXT,
    ASK_BP_KNOW_TEXT,
    ASK_BP_VALUE_TEXT,
    ASK_FREE_TEXT,
    ASK_GENDER_TEXT,
    ASK_HEIGHT_TEXT,
    ASK_WEIGHT_TEXT,
    ASSESSMENT_FAILED_TEXT,
    CONSULT_TEXT,
    INVALID_AGE_TEXT,
    INVALID_BP_TEXT,
    INVALID_WEIGHT_TEXT,
    NO_FACILITIES_TEXT,
    NO_THANKS_REPLY,
    START_HINT,
    WELCOME_TEXT,
)
from healthbot.models import AdvisoryResult, Facility, Gender, ScreeningState

CHAT = 1001


async def _answer_until_checklist(dialogue, channel, bp: str | None = "120/80") -> None:
    await dialogue.start(CHAT, channel)
    await dialogue.handle_choice(CHAT, "screen_health", channel)
    await dialogue.handle_text(CHAT, "30", channel)
    await dialogue.handle_choice(CHAT, "gender_male", channel)
    await dialogue.handle_text(CHAT, "70", channel)
    await dialogue.handle_text(CHAT, "170", channel)
    if bp is None:
        await dialogue.handle_choice(CHAT, "bp_no", channel)
    else:
        await dialogue.handle_choice(CHAT, "bp_yes", channel)
        await dialogue.handle_text(CHAT, bp, channel)


async def _complete_checklist(dialogue, channel, answers: list[str]) -> None:
    for answer in answers:
        await dialogue.handle_choice(CHAT, answer, channel)


def test_full_interview_produces_assessment_and_clears_session(make_dialogue, transcripts):
    advisor = ScriptedAdvisor(
        [
            AdvisoryResult(success=True, narrative="• Risks: influenza"),
            AdvisoryResult(success=True, narrative="• Urgency: Routine"),
        ]
    )
    dialogue = make_dialogue(advisor=advisor, transcripts=transcripts)
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel)
        session = dialogue.sessions.get(CHAT)
        assert session.state == ScreeningState.CHECKLIST
        assert session.answers.age == 30
        assert session.answers.gender == Gender.MALE
        assert session.answers.blood_pressure == "120/80"

        await _complete_checklist(dialogue, channel, ["symptom_yes", "symptom_no", "symptom_yes"])
        assert session.state == ScreeningState.AWAIT_FREE_TEXT_SYMPTOMS
        assert session.answers.checked_symptoms == ["Fever", "Headache"]

        await dialogue.handle_text(CHAT, "headache, nausea", channel)

    asyncio.run(scenario())

    texts = channel.texts
    assert texts[0] == WELCOME_TEXT
    assert texts[1:4] == [ASK_AGE_TEXT, ASK_GENDER_TEXT, ASK_WEIGHT_TEXT]
    assert texts[4:7] == [ASK_HEIGHT_TEXT, "🧮 Your BMI is 24.2", ASK_BP_KNOW_TEXT]
    assert texts[7] == ASK_BP_VALUE_TEXT
    assert texts[8:11] == [
        "🤔 Are you experiencing Fever?",
        "🤔 Are you experiencing Cough?",
        "🤔 Are you experiencing Headache?",
    ]
    assert texts[11] == ASK_FREE_TEXT
    assert texts[12].endswith("• Risks: influenza")
    assert "• Urgency: Routine" in texts[13]
    assert channel.last.request_location
    assert channel.typing_count == 1

    assert dialogue.sessions.get(CHAT) is None

    assessment_prompt = advisor.calls[0][1]
    assert "Age: 30, Gender: male, BMI: 24.2, Blood Pressure: 120/80" in assessment_prompt
    assert "Symptoms: Fever, Headache, Additional: headache, nausea" in assessment_prompt
    assert "Risks: <comma-separated>" in assessment_prompt
    triage_prompt = advisor.calls[1][1]
    assert "Urgency: <Immediate/Routine/Self-care>" in triage_prompt

    stored = transcripts.list_transcripts(CHAT)
    assert len(stored) == 1
    assert stored[0].user_prompt == assessment_prompt
    assert stored[0].agent_reply == "• Risks: influenza"


def test_unknown_blood_pressure_skips_value_entry(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel, bp=None)

    asyncio.run(scenario())

    session = dialogue.sessions.get(CHAT)
    assert session.answers.blood_pressure == "Not known"
    assert session.state == ScreeningState.CHECKLIST
    assert session.symptom_cursor == 0
    assert ASK_BP_VALUE_TEXT not in channel.texts
    assert channel.last.text == "🤔 Are you experiencing Fever?"


def test_invalid_answers_reprompt_without_changing_state(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await dialogue.start(CHAT, channel)
        await dialogue.handle_choice(CHAT, "screen_health", channel)
        await dialogue.handle_text(CHAT, "thirty", channel)
        assert dialogue.sessions.get(CHAT).state == ScreeningState.ASK_AGE
        assert channel.last.text == INVALID_AGE_TEXT

        await dialogue.handle_text(CHAT, "30", channel)
        await dialogue.handle_choice(CHAT, "gender_female", channel)
        await dialogue.handle_text(CHAT, "70.5.2", channel)
        assert dialogue.sessions.get(CHAT).state == ScreeningState.ASK_WEIGHT
        assert channel.last.text == INVALID_WEIGHT_TEXT

        await dialogue.handle_text(CHAT, "70", channel)
        await dialogue.handle_text(CHAT, "170", channel)
        await dialogue.handle_choice(CHAT, "bp_yes", channel)
        for bad in ["1200/80", "ab/80", "120-80"]:
            await dialogue.handle_text(CHAT, bad, channel)
            assert dialogue.sessions.get(CHAT).state == ScreeningState.ASK_BP_VALUE
            assert channel.last.text == INVALID_BP_TEXT

        assert dialogue.sessions.get(CHAT).answers.blood_pressure is None

    asyncio.run(scenario())


def test_unrecognized_buttons_and_misplaced_input_are_ignored(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await dialogue.start(CHAT, channel)
        channel.clear()

        await dialogue.handle_text(CHAT, "hello", channel)
        await dialogue.handle_choice(CHAT, "something_else", channel)
        assert dialogue.sessions.get(CHAT).state == ScreeningState.SELECT_SCREENING

        await dialogue.handle_choice(CHAT, "screen_health", channel)
        await dialogue.handle_text(CHAT, "30", channel)
        channel.clear()

        await dialogue.handle_choice(CHAT, "gender_robot", channel)
        await dialogue.handle_choice(CHAT, "bp_yes", channel)
        await dialogue.handle_text(CHAT, "male", channel)
        assert dialogue.sessions.get(CHAT).state == ScreeningState.ASK_GENDER
        assert channel.replies == []

    asyncio.run(scenario())


def test_checklist_ignores_other_choices(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel)
        session = dialogue.sessions.get(CHAT)

        await dialogue.handle_choice(CHAT, "symptom_maybe", channel)
        await dialogue.handle_text(CHAT, "yes", channel)
        assert session.symptom_cursor == 0

        cursors = []
        for _ in range(3):
            await dialogue.handle_choice(CHAT, "symptom_no", channel)
            cursors.append(session.symptom_cursor)
        assert cursors == [1, 2, 3]
        assert session.answers.checked_symptoms == []
        assert session.state == ScreeningState.AWAIT_FREE_TEXT_SYMPTOMS

    asyncio.run(scenario())


def test_empty_checklist_goes_straight_to_free_text(make_dialogue):
    dialogue = make_dialogue(checklist_size=0)
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel)

    asyncio.run(scenario())

    assert dialogue.sessions.get(CHAT).state == ScreeningState.AWAIT_FREE_TEXT_SYMPTOMS
    assert channel.last.text == ASK_FREE_TEXT


def test_bmi_message_is_suppressed_for_zero_weight(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await dialogue.start(CHAT, channel)
        await dialogue.handle_choice(CHAT, "screen_health", channel)
        await dialogue.handle_text(CHAT, "30", channel)
        await dialogue.handle_choice(CHAT, "gender_other", channel)
        await dialogue.handle_text(CHAT, "0", channel)
        await dialogue.handle_text(CHAT, "170", channel)

    asyncio.run(scenario())

    assert not any("BMI" in text for text in channel.texts)
    assert dialogue.sessions.get(CHAT).state == ScreeningState.ASK_BP_KNOW


def test_restart_discards_previous_answers(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel)
        await dialogue.handle_choice(CHAT, "symptom_yes", channel)
        await dialogue.start(CHAT, channel)

    asyncio.run(scenario())

    session = dialogue.sessions.get(CHAT)
    assert session.state == ScreeningState.SELECT_SCREENING
    assert session.answers.age is None
    assert session.answers.checked_symptoms == []
    assert session.symptom_cursor == 0
    assert channel.last.text == WELCOME_TEXT


def test_gateway_failure_still_offers_location_and_clears_session(make_dialogue, transcripts):
    advisor = ScriptedAdvisor([AdvisoryResult.failed(raw="HTTP 500")])
    dialogue = make_dialogue(advisor=advisor, transcripts=transcripts)
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel)
        await _complete_checklist(dialogue, channel, ["symptom_no"] * 3)
        await dialogue.handle_text(CHAT, "Skip", channel)

    asyncio.run(scenario())

    assert channel.texts[-2] == ASSESSMENT_FAILED_TEXT
    assert channel.last.text == CONSULT_TEXT
    assert channel.last.request_location
    assert len(advisor.calls) == 1
    assert "Additional" not in advisor.calls[0][1]
    assert dialogue.sessions.get(CHAT) is None
    assert transcripts.list_transcripts(CHAT) == []


def test_gateway_exception_is_treated_as_failure(make_dialogue):
    advisor = ScriptedAdvisor([RuntimeError("connection reset")])
    dialogue = make_dialogue(advisor=advisor)
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel, bp=None)
        await _complete_checklist(dialogue, channel, ["symptom_yes"] * 3)
        await dialogue.handle_text(CHAT, "skip", channel)

    asyncio.run(scenario())

    assert ASSESSMENT_FAILED_TEXT in channel.texts
    assert channel.last.text == CONSULT_TEXT
    assert dialogue.sessions.get(CHAT) is None


def test_triage_failure_sends_plain_location_offer(make_dialogue):
    advisor = ScriptedAdvisor(
        [
            AdvisoryResult(success=True, narrative="• Risks: migraine"),
            AdvisoryResult.failed(raw="timeout"),
        ]
    )
    dialogue = make_dialogue(advisor=advisor)
    channel = RecordingChannel()

    async def scenario() -> None:
        await _answer_until_checklist(dialogue, channel)
        await _complete_checklist(dialogue, channel, ["symptom_no"] * 3)
        await dialogue.handle_text(CHAT, "dizziness", channel)

    asyncio.run(scenario())

    assert channel.texts[-2].endswith("• Risks: migraine")
    assert channel.last.text == CONSULT_TEXT
    assert channel.last.request_location
    assert dialogue.sessions.get(CHAT) is None


def test_no_session_gets_start_hint(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await dialogue.handle_text(CHAT, "hello there", channel)
        await dialogue.handle_choice(CHAT, "symptom_yes", channel)

    asyncio.run(scenario())

    assert channel.texts == [START_HINT, START_HINT]
    assert dialogue.sessions.get(CHAT) is None


def test_no_thanks_is_acknowledged_without_session(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    asyncio.run(dialogue.handle_text(CHAT, "No, thanks", channel))

    assert channel.texts == [NO_THANKS_REPLY]
    assert dialogue.sessions.get(CHAT) is None


def test_location_without_session_lists_facilities(make_dialogue):
    facilities = StaticFacilityFinder(
        [
            Facility(name="City Hospital", address="1 Main Rd", phone="+91 98765 43210"),
            Facility(name="Care Clinic", address="2 Side St", phone=None),
        ]
    )
    dialogue = make_dialogue(facilities=facilities)
    channel = RecordingChannel()

    asyncio.run(dialogue.handle_location(CHAT, 12.97, 77.59, channel))

    assert facilities.calls == [(12.97, 77.59)]
    assert "1. City Hospital" in channel.last.text
    assert "📞 +91 98765 43210 (tel:+919876543210)" in channel.last.text
    assert "📞 Phone: Not available" in channel.last.text
    assert dialogue.sessions.get(CHAT) is None


def test_location_lookup_failure_reports_no_results(make_dialogue):
    dialogue = make_dialogue(facilities=StaticFacilityFinder(fail=True))
    channel = RecordingChannel()

    asyncio.run(dialogue.handle_location(CHAT, 0.0, 0.0, channel))

    assert channel.last.text == NO_FACILITIES_TEXT


def test_location_does_not_touch_active_session(make_dialogue):
    dialogue = make_dialogue()
    channel = RecordingChannel()

    async def scenario() -> None:
        await dialogue.start(CHAT, channel)
        await dialogue.handle_choice(CHAT, "screen_health", channel)
        await dialogue.handle_location(CHAT, 1.0, 2.0, channel)

    asyncio.run(scenario())

    assert channel.last.text == NO_FACILITIES_TEXT
    assert dialogue.sessions.get(CHAT).state == ScreeningState.ASK_AGE


def test_slow_gateway_does_not_block_other_conversations(make_dialogue):
    class SlowAdvisor(ScriptedAdvisor):
        def __init__(self) -> None:
            super().__init__()
            self.gate: asyncio.Event | None = None

        async def assess(self, conversation_id, prompt):
            if conversation_id == CHAT:
                await self.gate.wait()
            return await super().assess(conversation_id, prompt)

    advisor = SlowAdvisor()
    dialogue = make_dialogue(advisor=advisor, checklist_size=0)
    slow_channel = RecordingChannel()
    other_channel = RecordingChannel()

    async def scenario() -> None:
        advisor.gate = asyncio.Event()
        await _answer_until_checklist(dialogue, slow_channel)
        pending = asyncio.create_task(dialogue.handle_text(CHAT, "skip", slow_channel))
        await asyncio.sleep(0)

        await dialogue.start(2002, other_channel)
        await dialogue.handle_choice(2002, "screen_health", other_channel)
        assert other_channel.last.text == ASK_AGE_TEXT
        assert not pending.done()

        advisor.gate.set()
        await pending

    asyncio.run(scenario())

    assert dialogue.sessions.get(CHAT) is None
    assert dialogue.sessions.get(2002).state == ScreeningState.ASK_AGE
