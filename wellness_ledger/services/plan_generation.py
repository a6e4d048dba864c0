"""
Wellness plan generation

The text-generation backend is an external collaborator reached through the
TextGenerator protocol. Its output is untrusted JSON and is validated
against the WellnessPlan schema before anything else sees it.
"""

import json
import logging
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from wellness_ledger.exceptions import EmptyResponse, ValidationError
from wellness_ledger.models import WellnessPlan

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Opaque text completion backend; raises ServiceUnavailable or EmptyResponse"""

    async def generate_text(self, prompt: str) -> str:
        ...


WELLNESS_PLAN_PROMPT = """You are an expert wellness coach. Create a personalized, gamified self-care plan for the user.
Tasks:
1. Create a single, realistic daily challenge with a reward (type: 'points', 'badge', or 'milestone').
2. Describe the streak: the current streak of {current_streak} days, a 7-day reward, and encouragement.
3. Offer a short, general encouragement message.
4. Create a weekly challenge with a reward and a 'goalDays' between 3 and 7.
The challenges must be calming and simple. Be supportive.
Return ONLY JSON with keys dailyChallenge, streakInfo, weeklyChallenge, encouragement.
All text in the response must be in {language}."""


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_wellness_plan(text: str) -> WellnessPlan:
    """
    Validate generated text as a WellnessPlan

    Raises:
        EmptyResponse: text is blank
        ValidationError: text is not JSON or does not match the schema
    """
    body = _strip_fences(text or "")
    if not body:
        raise EmptyResponse(operation="generate_wellness_plan")
    try:
        return WellnessPlan.model_validate(json.loads(body))
    except json.JSONDecodeError as e:
        raise ValidationError("Generated wellness plan is not valid JSON", field="wellness_plan",
                              value=body[:80], cause=e)
    except PydanticValidationError as e:
        raise ValidationError("Generated wellness plan does not match the schema", field="wellness_plan",
                              value=e.error_count(), cause=e)


async def generate_wellness_plan(generator: TextGenerator, language: str = "English",
                                 current_streak: int = 0) -> WellnessPlan:
    prompt = WELLNESS_PLAN_PROMPT.format(language=language, current_streak=current_streak)
    text = await generator.generate_text(prompt)
    plan = parse_wellness_plan(text)
    logger.info(f"Generated wellness plan (weekly goal {plan.weekly_challenge.goal_days} days)")
    return plan
