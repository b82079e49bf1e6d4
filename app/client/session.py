"""Client-side chat session: submits turns and folds the response stream into state.

The session is driven by a single task; every stream part is applied in
order and each change replaces ``messages`` with a new tuple, so observers
never see a partially updated list.
"""

import logging
from enum import Enum
from typing import Any, Literal, NamedTuple, Protocol

import httpx
from pydantic import BaseModel, ConfigDict

from app.client.stream import iter_stream_parts
from app.domains.ai.registry import DEFAULT_MAX_INPUT_CHARS, LLMS, LLMInfo
from app.schemas.ai import ApiKeys
from app.schemas.chat import ChatPreferences, ModelParams
from app.shared.data_stream import DATA_PART, ERROR_PART, FINISH_PART, REASONING_PART, TEXT_PART, StreamPart
from models import new_id

logger = logging.getLogger(__name__)


class ChatStatus(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERROR = "error"


class ChatBusyError(RuntimeError):
    """Raised when a turn is started while another one is in flight."""


class Navigator(Protocol):
    def replace_history(self, path: str) -> None:
        """Change the current location without leaving the page."""

    def navigate(self, path: str) -> None:
        """Perform a full route change."""


class HistoryNavigator:
    """In-memory stand-in for a browser router."""

    def __init__(self, path: str = "/"):
        self.path = path
        self.history = [path]

    def replace_history(self, path: str) -> None:
        self.path = path
        self.history[-1] = path

    def navigate(self, path: str) -> None:
        self.path = path
        self.history.append(path)


class ClientMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["user", "assistant"]
    content: str = ""
    parts: tuple[dict[str, Any], ...] = ()
    usage: dict[str, int] | None = None
    model: str | None = None
    generation_start_at: int | None = None
    generation_end_at: int | None = None

    @property
    def has_files(self) -> bool:
        return any(part.get("type") == "file" for part in self.parts)


class InputCheck(NamedTuple):
    valid: bool
    current: int
    max: int


def max_input_chars(llm_info: LLMInfo | None) -> int:
    if llm_info is None:
        return DEFAULT_MAX_INPUT_CHARS
    return llm_info.max_input_chars


def validate_input(text: str, llm_info: LLMInfo | None) -> InputCheck:
    limit = max_input_chars(llm_info)
    return InputCheck(valid=len(text) <= limit, current=len(text), max=limit)


def api_key_for_model(api_keys: ApiKeys | None, llm_info: LLMInfo) -> ApiKeys:
    """Only the key of the model's provider is sent along with a request."""
    if api_keys is None:
        return ApiKeys()
    key = getattr(api_keys, llm_info.provider.value, None)
    if not key:
        return ApiKeys()
    return ApiKeys(**{llm_info.provider.value: key})


def _merge_delta(parts: tuple[dict[str, Any], ...], part_type: str, delta: str) -> tuple[dict[str, Any], ...]:
    field = "text" if part_type == "text" else "reasoning"
    if parts and parts[-1].get("type") == part_type:
        last = parts[-1]
        return (*parts[:-1], {**last, field: last.get(field, "") + delta})
    return (*parts, {"type": part_type, field: delta})


class ChatSession:
    """State of one chat view bound to at most one thread."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        model: str,
        thread_id: str | None = None,
        messages: tuple[ClientMessage, ...] = (),
        api_keys: ApiKeys | None = None,
        navigator: Navigator | None = None,
        model_params: ModelParams | None = None,
        preferences: ChatPreferences | None = None,
        timezone: str = "UTC",
    ):
        self.http = http
        self.model = model
        self.thread_id = thread_id
        self.messages: tuple[ClientMessage, ...] = tuple(messages)
        self.api_keys = api_keys
        self.navigator = navigator or HistoryNavigator(f"/chat/{thread_id}" if thread_id else "/")
        self.model_params = model_params or ModelParams()
        self.preferences = preferences or ChatPreferences()
        self.timezone = timezone

        self.status = ChatStatus.IDLE
        self.error: str | None = None
        self.finish_reason: str | None = None
        self._placeholder_id: str | None = None
        self._pending_route: str | None = None

    @property
    def busy(self) -> bool:
        return self.status in (ChatStatus.SUBMITTED, ChatStatus.STREAMING)

    def _ensure_idle(self) -> None:
        if self.busy:
            raise ChatBusyError("A response is still being generated")

    # ===== Turn operations =====

    async def submit(self, text: str, attachment_ids: tuple[str, ...] | list[str] = ()) -> None:
        """Append a user message and stream the reply.

        Raises:
            ChatBusyError: A turn is already in flight.
            ValueError: The text exceeds the model's input limit.
        """
        self._ensure_idle()
        check = validate_input(text, LLMS.get(self.model))
        if not check.valid:
            raise ValueError(f"Message too long: {check.current} characters, limit is {check.max}")

        message = ClientMessage(
            id=new_id(), role="user", content=text, parts=({"type": "text", "text": text},)
        )
        self.messages = (*self.messages, message)
        await self._send(list(attachment_ids))

    async def edit_message(self, message_id: str, text: str, attachment_ids: tuple[str, ...] = ()) -> None:
        """Drop ``message_id`` and everything after it, then submit ``text``."""
        self._ensure_idle()
        index = self._index_of(message_id)
        if index is None or self.messages[index].role != "user":
            raise KeyError(f"User message {message_id} not found")

        self.messages = self.messages[:index]
        await self.submit(text, attachment_ids)

    async def retry_message(self, message_id: str, model: str | None = None) -> None:
        """Regenerate the reply to a user message, or to the user message before an assistant one."""
        self._ensure_idle()
        if model:
            self.model = model

        index = self._index_of(message_id)
        if index is None:
            raise KeyError(f"Message {message_id} not found")
        if self.messages[index].role == "assistant":
            index = next(
                (i for i in range(index - 1, -1, -1) if self.messages[i].role == "user"), None
            )
            if index is None:
                raise KeyError("No user message to retry")

        target = self.messages[index]
        if not target.content:
            raise KeyError("No user message to retry")
        attachment_ids = await self._message_attachment_ids(target) if target.has_files else []

        self.messages = self.messages[:index]
        await self.submit(target.content, attachment_ids)

    async def _message_attachment_ids(self, message: ClientMessage) -> list[str]:
        try:
            response = await self.http.get(f"/api/message/{message.id}/attachments")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Could not load attachments of message {message.id}: {str(e)}")
            return []
        return response.json().get("attachmentIds", [])

    def _request_body(self, attachment_ids: list[str]) -> dict[str, Any]:
        llm_info = LLMS.get(self.model)
        api_keys = api_key_for_model(self.api_keys, llm_info) if llm_info else ApiKeys()
        body: dict[str, Any] = {
            "messages": [
                {"id": message.id, "role": message.role, "content": message.content, "parts": list(message.parts)}
                for message in self.messages
            ],
            "threadMetadata": {"id": self.thread_id},
            "model": self.model,
            "modelParams": self.model_params.model_dump(by_alias=True, exclude_none=True),
            "preferences": self.preferences.model_dump(by_alias=True),
            "userInfo": {"timezone": self.timezone},
            "apiKeys": api_keys.model_dump(by_alias=True, exclude_none=True),
        }
        if attachment_ids:
            body["attachmentIds"] = attachment_ids
        return body

    async def _send(self, attachment_ids: list[str]) -> None:
        self.status = ChatStatus.SUBMITTED
        self.error = None
        self.finish_reason = None
        self._placeholder_id = None

        try:
            async with self.http.stream("POST", "/api/chat", json=self._request_body(attachment_ids)) as response:
                if response.is_error:
                    await response.aread()
                    self._fail(self._error_message(response))
                    return
                async for part in iter_stream_parts(response.aiter_lines()):
                    self.apply_part(part)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Chat stream failed: {str(e)}")
            self._fail(str(e))
        finally:
            self._finish_turn()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message") or response.text
        except ValueError:
            return response.text or f"Request failed with status {response.status_code}"

    def _finish_turn(self) -> None:
        if self.busy:
            self.status = ChatStatus.COMPLETED
        # The full route change waits until the stream is over
        if self._pending_route is not None:
            self.navigator.navigate(self._pending_route)
            self._pending_route = None

    def _fail(self, message: str | None) -> None:
        self.status = ChatStatus.ERROR
        self.error = message or "An error occurred"

    # ===== Stream reconciliation =====

    def apply_part(self, part: StreamPart) -> None:
        if part.code == TEXT_PART:
            self._append_delta("text", part.value)
        elif part.code == REASONING_PART:
            self._append_delta("reasoning", part.value)
        elif part.code == DATA_PART:
            for item in part.value:
                self._apply_data(item)
        elif part.code == ERROR_PART:
            self._fail(part.value)
        elif part.code == FINISH_PART:
            self.finish_reason = part.value.get("finishReason")

    def _start_streaming(self) -> None:
        if self.status == ChatStatus.SUBMITTED:
            self.status = ChatStatus.STREAMING

    def _index_of(self, message_id: str) -> int | None:
        return next((i for i, message in enumerate(self.messages) if message.id == message_id), None)

    def _last_assistant_index(self) -> int | None:
        return next(
            (i for i in range(len(self.messages) - 1, -1, -1) if self.messages[i].role == "assistant"),
            None,
        )

    def _replace(self, index: int, message: ClientMessage) -> None:
        self.messages = (*self.messages[:index], message, *self.messages[index + 1 :])

    def _placeholder_index(self) -> int:
        if self._placeholder_id is not None:
            index = self._index_of(self._placeholder_id)
            if index is not None:
                return index
        placeholder = ClientMessage(id=new_id(), role="assistant")
        self._placeholder_id = placeholder.id
        self.messages = (*self.messages, placeholder)
        return len(self.messages) - 1

    def _append_delta(self, part_type: str, delta: str) -> None:
        self._start_streaming()
        index = self._placeholder_index()
        message = self.messages[index]
        update: dict[str, Any] = {"parts": _merge_delta(message.parts, part_type, delta)}
        if part_type == "text":
            update["content"] = message.content + delta
        self._replace(index, message.model_copy(update=update))

    def _apply_data(self, item: dict[str, Any]) -> None:
        if "threadId" in item:
            self._adopt_thread(item["threadId"])
        elif item.get("type") == "metrics":
            self._start_streaming()
            self._apply_metrics(item.get("data") or {})
        elif item.get("type") == "images":
            self._start_streaming()
            self._apply_images(item.get("data") or {})
        elif item.get("type") == "error":
            self._fail(item.get("error"))

    def _adopt_thread(self, thread_id: str) -> None:
        if not thread_id or thread_id == self.thread_id:
            return
        self.thread_id = thread_id
        path = f"/chat/{thread_id}"
        # Only swap the URL now; navigating would tear down the running stream
        self.navigator.replace_history(path)
        self._pending_route = path

    def _apply_metrics(self, data: dict[str, Any]) -> None:
        message_id = data.get("messageId")
        index = self._index_of(message_id) if message_id else None
        if index is None:
            index = self._last_assistant_index()
        if index is None:
            logger.warning(f"No assistant message for metrics of {message_id}")
            return

        message = self.messages[index]
        updated = message.model_copy(
            update={
                "id": message_id or message.id,
                "usage": {
                    "promptTokens": data.get("promptTokens", 0),
                    "completionTokens": data.get("completionTokens", 0),
                    "totalTokens": data.get("totalTokens", 0),
                },
                "model": data.get("model"),
                "generation_start_at": data.get("generationStartAt"),
                "generation_end_at": data.get("generationEndAt"),
            }
        )
        if self._placeholder_id == message.id:
            self._placeholder_id = updated.id
        self._replace(index, updated)

    def _apply_images(self, data: dict[str, Any]) -> None:
        """Attach generated images to the assistant message named by ``messageId``.

        Image turns stream no text, so an id not yet on screen is the new
        assistant message and is added under that id. Events without an id
        are dropped.
        """
        message_id = data.get("messageId")
        if not message_id:
            logger.warning("Dropping images event without a message id")
            return
        image_parts = tuple(
            {"type": "file", "mimeType": "image/png", "data": f"data:image/png;base64,{image.get('base64', '')}"}
            for image in data.get("images", [])
        )
        timing = {
            "model": data.get("model"),
            "generation_start_at": data.get("generationStartAt"),
            "generation_end_at": data.get("generationEndAt"),
        }

        index = self._index_of(message_id)
        if index is None:
            self.messages = (
                *self.messages,
                ClientMessage(id=message_id, role="assistant", parts=image_parts, **timing),
            )
            return
        message = self.messages[index]
        self._replace(index, message.model_copy(update={"parts": message.parts + image_parts, **timing}))
