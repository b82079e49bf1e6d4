"""State handed from the chat request to the generation pipeline."""

from dataclasses import dataclass, field

from app.domains.ai.credentials import ProviderCredentials
from app.domains.ai.registry import LLMInfo
from app.schemas.chat import ChatMessage, ChatPreferences, ModelParams, UserInfo
from app.shared.data_stream import AbortSignal


@dataclass
class GenerationContext:
    """One turn: where the answer goes and how to produce it.

    ``message_id`` is the message the generation answers; it is ``pending``
    until the turn finishes.
    """

    thread_id: str
    user_id: str
    message_id: str
    model_key: str
    llm_info: LLMInfo
    credentials: ProviderCredentials
    messages: list[ChatMessage]
    params: ModelParams = field(default_factory=ModelParams)
    preferences: ChatPreferences | None = None
    user_info: UserInfo | None = None
    abort: AbortSignal = field(default_factory=AbortSignal)
