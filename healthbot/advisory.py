from __future__ import annotations

import asyncio
import logging
from typing import Any

from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from .models import AdvisoryResult, ConversationId, Profile

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5

SYSTEM_PROMPT = (
    "You are a careful medical screening assistant. "
    "You give general health-risk guidance based only on the profile and reference data provided. "
    "You do not replace a doctor and you say so when symptoms look serious."
)


class AdvisoryServiceError(RuntimeError):
    pass


def build_assessment_prompt(profile: Profile) -> str:
    return f"""You are a medical AI. Given the following user profile and symptoms, analyze and list the most likely health risks or diseases (not just diabetes), and suggest next steps.

User profile:
{profile.summary_line()}

Context from Dataset1:
{profile.dataset1_context}

Supplementary info from Dataset2:
{profile.dataset2_context}

Provide:
1) A concise risk assessment (list likely diseases/risks).
2) Evidence-based next steps.
3) If urgent, highlight in ALL CAPS.

Answer Format:
• Risks: <comma-separated>
• Plan: <short plan>
• Final line: "I used these data points: <…>" listing the specific bullet(s) from Dataset1 or Dataset2 you relied on."""


def build_triage_prompt(profile: Profile) -> str:
    return f"""You are an AI medical assistant. Given the following user profile and symptoms, provide:
1. The most likely health risks or diseases (not just diabetes).
2. Whether the user needs *immediate* doctor consultation, *routine* checkup, or *self-care* is sufficient.
3. The type of specialist to consult (if any).
4. A short reason for your recommendation.

User summary:
{profile.summary_line()}

Context from Dataset1:
{profile.dataset1_context}

Supplementary info from Dataset2:
{profile.dataset2_context}

Format:
• Risks: <comma-separated>
• Urgency: <Immediate/Routine/Self-care>
• Specialist: <Type or 'None'>
• Reason: <Short reason>
"""


class AdvisoryService:
    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: float = 45.0,
        retry_delay: float = 1.0,
    ) -> None:
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.retry_delay = retry_delay

    async def _responses_create_with_retry(self, **kwargs: Any) -> Any:
        delay = self.retry_delay
        last_error: Exception | None = None

        for attempt in range(MAX_ATTEMPTS):
            try:
                return await self.client.responses.create(**kwargs)
            except (RateLimitError, APITimeoutError) as exc:
                last_error = exc
                logger.warning(
                    "OpenAI transient error (%s), retry %s/%s",
                    exc.__class__.__name__,
                    attempt + 1,
                    MAX_ATTEMPTS,
                )
                if attempt == MAX_ATTEMPTS - 1:
                    break
                await asyncio.sleep(delay)
                delay *= 2
            except APIError as exc:
                last_error = exc
                retriable = getattr(exc, "status_code", 500) >= 500
                if not retriable or attempt == MAX_ATTEMPTS - 1:
                    break
                logger.warning("OpenAI APIError retry %s/%s: %s", attempt + 1, MAX_ATTEMPTS, exc)
                await asyncio.sleep(delay)
                delay *= 2

        raise AdvisoryServiceError(f"OpenAI request failed after retries: {last_error}")

    @staticmethod
    def _extract_text(response: Any) -> str:
        output_text = getattr(response, "output_text", None)
        if isinstance(output_text, str) and output_text.strip():
            return output_text.strip()

        parts: list[str] = []
        output = getattr(response, "output", None)
        if output:
            for item in output:
                for content in getattr(item, "content", []) or []:
                    text = getattr(content, "text", None)
                    if isinstance(text, str) and text.strip():
                        parts.append(text.strip())
                        continue

                    if isinstance(content, dict):
                        maybe_text = content.get("text")
                        if isinstance(maybe_text, str) and maybe_text.strip():
                            parts.append(maybe_text.strip())

        return "\n".join(parts)

    async def _complete(self, conversation_id: ConversationId, prompt: str) -> Any:
        return await self._responses_create_with_retry(
            model=self.model,
            input=[
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": SYSTEM_PROMPT}],
                },
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                },
            ],
            metadata={"conversation_id": str(conversation_id)},
            temperature=0.3,
        )

    async def assess(self, conversation_id: ConversationId, prompt: str) -> AdvisoryResult:
        try:
            response = await asyncio.wait_for(
                self._complete(conversation_id, prompt),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Advisory call timed out after %.1fs for conversation %s",
                self.timeout_seconds,
                conversation_id,
            )
            return AdvisoryResult.failed(raw="timeout")
        except AdvisoryServiceError as exc:
            logger.error("Advisory call failed for conversation %s: %s", conversation_id, exc)
            return AdvisoryResult.failed(raw=str(exc))

        narrative = self._extract_text(response)
        if not narrative:
            logger.error("Advisory returned an empty reply for conversation %s", conversation_id)
            return AdvisoryResult.failed(raw=response)

        return AdvisoryResult(success=True, narrative=narrative, raw=response)
