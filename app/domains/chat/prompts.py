"""Prompt templates for chat generation and thread titling."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.schemas.chat import ChatPreferences, UserInfo

TITLE_GENERATOR_PROMPT = """You are a title generator for a chat:
- Generate a short title based on the first user's message
- The title should be less than 30 characters long
- The title should be a summary of the user's message
- Do not use quotes (' or ") or colons (:) or any other punctuation
- Do not use markdown, just plain text
- Use user message language for the title"""

BASE_SYSTEM_PROMPT = """You are Talkative, an AI assistant that can answer questions and help with tasks.
Be helpful and provide relevant information.
Be respectful and polite in all interactions.
Be engaging and maintain a conversational tone."""


def _format_local_time(now: datetime, timezone: str) -> str:
    local = now.astimezone(ZoneInfo(timezone))
    return local.strftime("%A, %B %d, %Y at %I:%M %p %Z")


def chat_system_prompt(
    preferences: ChatPreferences | None = None,
    user_info: UserInfo | None = None,
    now: datetime | None = None,
) -> str:
    """Build the system prompt for a chat turn.

    Args:
        preferences: Personalisation the user entered in settings.
        user_info: Client environment, currently only the timezone.
        now: Reference time, defaults to the current UTC time.

    Returns:
        The base prompt followed by the local time and user information
        sections when the corresponding data is present.
    """
    prompt = BASE_SYSTEM_PROMPT

    if user_info is not None and user_info.timezone:
        try:
            current_time = _format_local_time(now or datetime.now(UTC), user_info.timezone)
            prompt += f"\n\nCurrent time in user's timezone ({user_info.timezone}): {current_time}"
        except (ZoneInfoNotFoundError, ValueError):
            prompt += f"\n\nUser timezone: {user_info.timezone}"

    if preferences is None:
        return prompt

    lines = []
    if preferences.name:
        lines.append(f"- Name: {preferences.name}")
    if preferences.occupation:
        lines.append(f"- Occupation: {preferences.occupation}")
    if preferences.selected_traits:
        lines.append(f"- Personality traits: {', '.join(preferences.selected_traits)}")
    if preferences.additional_info:
        lines.append(f"- Additional information: {preferences.additional_info}")

    if lines:
        prompt += "\n\nUser Information:\n" + "\n".join(lines)
        prompt += "\n\nPlease tailor your responses appropriately based on this information about the user."

    return prompt
