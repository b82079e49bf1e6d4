"""Reconcile a client-submitted message list with persisted thread history.

Clients always resubmit the whole conversation. This module decides, without
touching the database, what that submission means:

- retry: the last incoming user message repeats an earlier persisted one, so
  everything persisted after it is stale;
- edit: an earlier user message changed, so everything from it on is stale;
- append: only new trailing messages.

Messages are compared by their extracted text only.
"""

from collections.abc import Collection, Sequence
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field, TypeAdapter

from app.exceptions.chat import InvalidChatRequestError, MessageOwnershipError
from app.schemas.chat import ChatMessage, FilePart, MessagePart, ReasoningPart, TextPart
from models.base import new_id
from models.message import MessageRole, MessageStatus

_PART_ADAPTER = TypeAdapter(MessagePart)


class StoredMessage(Protocol):
    """The persisted fields reconciliation reads."""

    id: str
    thread_id: str
    role: str
    parts: list[dict[str, Any]]


class MessageInsert(BaseModel):
    id: str
    role: str
    parts: list[dict[str, Any]]
    status: MessageStatus
    link_attachments: bool = False


class ReconciliationPlan(BaseModel):
    mode: Literal["retry", "edit", "append"]
    to_delete: list[str] = Field(default_factory=list)
    to_insert: list[MessageInsert] = Field(default_factory=list)
    generation_target_id: str

    @property
    def retry_of(self) -> str | None:
        return self.generation_target_id if self.mode == "retry" else None

    @property
    def target_is_new(self) -> bool:
        return any(item.id == self.generation_target_id for item in self.to_insert)


def coerce_part(raw: MessagePart | dict[str, Any]) -> MessagePart:
    if isinstance(raw, (TextPart, ReasoningPart, FilePart)):
        return raw
    return _PART_ADAPTER.validate_python(raw)


def part_text(part: MessagePart) -> str:
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, ReasoningPart):
        return ""
    if isinstance(part, FilePart):
        return ""
    raise TypeError(f"Unsupported message part: {type(part).__name__}")


def extract_text(parts: Sequence[MessagePart | dict[str, Any]]) -> str:
    """Concatenated text of all text parts, ``""`` when there are none."""
    return "".join(part_text(coerce_part(part)) for part in parts)


def message_text(message: ChatMessage) -> str:
    # Messages sent without parts fall back to their plain content
    if not message.parts:
        return message.content or ""
    return extract_text(message.parts)


def serialize_parts(message: ChatMessage) -> list[dict[str, Any]]:
    if not message.parts:
        return [TextPart(text=message.content or "").model_dump(by_alias=True)]
    return [part.model_dump(by_alias=True, exclude_none=True) for part in message.parts]


def _check_ownership(
    thread_id: str,
    incoming: Sequence[ChatMessage],
    existing: Sequence[StoredMessage],
    foreign_ids: Collection[str],
) -> None:
    existing_by_id = {message.id: message for message in existing}
    for message in incoming:
        if not message.id:
            continue
        owner = existing_by_id.get(message.id)
        if message.id in foreign_ids or (owner is not None and owner.thread_id != thread_id):
            raise MessageOwnershipError(message.id)


def _prefix_matches(
    incoming: Sequence[ChatMessage],
    existing: Sequence[StoredMessage],
    incoming_texts: list[str],
    existing_texts: list[str],
) -> bool:
    for index in range(len(incoming) - 1):
        if incoming[index].role == MessageRole.USER and existing[index].role == MessageRole.USER:
            if incoming_texts[index] != existing_texts[index]:
                return False
    return True


def _find_retry_index(
    incoming: Sequence[ChatMessage],
    existing: Sequence[StoredMessage],
    incoming_texts: list[str],
    existing_texts: list[str],
) -> int | None:
    if len(incoming) > len(existing) or incoming[-1].role != MessageRole.USER:
        return None
    if not _prefix_matches(incoming, existing, incoming_texts, existing_texts):
        return None

    target_text = incoming_texts[-1]
    last_index = len(existing) - 1
    candidates = [
        index
        for index, message in enumerate(existing)
        if message.role == MessageRole.USER
        and existing_texts[index] == target_text
        and index != last_index
        and index >= len(incoming) - 1
    ]
    if not candidates:
        return None

    positional = len(incoming) - 1
    return positional if positional in candidates else candidates[0]


def _find_edit_index(
    incoming: Sequence[ChatMessage],
    existing: Sequence[StoredMessage],
    incoming_texts: list[str],
    existing_texts: list[str],
) -> int | None:
    for index in range(min(len(incoming), len(existing))):
        if incoming[index].role != MessageRole.USER or existing[index].role != MessageRole.USER:
            continue
        if incoming_texts[index] != existing_texts[index]:
            return index
    return None


def _plan_inserts(messages: list[ChatMessage]) -> list[MessageInsert]:
    inserts = [
        MessageInsert(
            id=message.id or new_id(),
            role=message.role,
            parts=serialize_parts(message),
            status=MessageStatus.DONE,
        )
        for message in messages
    ]
    if inserts:
        inserts[-1].status = MessageStatus.PENDING
    for item in reversed(inserts):
        if item.role == MessageRole.USER:
            item.link_attachments = True
            break
    return inserts


def reconcile(
    thread_id: str,
    incoming: Sequence[ChatMessage],
    existing: Sequence[StoredMessage],
    foreign_ids: Collection[str] = (),
) -> ReconciliationPlan:
    """Compute the deletions and insertions that bring ``existing`` in line.

    Args:
        thread_id: Thread the submission targets.
        incoming: Full message list from the client, oldest first.
        existing: Persisted messages of the thread, oldest first.
        foreign_ids: Incoming ids already known to live in another thread.

    Raises:
        InvalidChatRequestError: ``incoming`` is empty or no target can be found.
        MessageOwnershipError: An incoming id belongs to a different thread.
    """
    if not incoming:
        raise InvalidChatRequestError("Messages array cannot be empty")

    _check_ownership(thread_id, incoming, existing, set(foreign_ids))

    incoming_texts = [message_text(message) for message in incoming]
    existing_texts = [extract_text(message.parts or []) for message in existing]

    retry_index = _find_retry_index(incoming, existing, incoming_texts, existing_texts)
    if retry_index is not None:
        survivors = existing[: retry_index + 1]
        survivor_texts = {
            text
            for message, text in zip(survivors, existing_texts)
            if message.role == MessageRole.USER
        }
        fresh = [
            message
            for message, text in zip(incoming[retry_index + 1 :], incoming_texts[retry_index + 1 :])
            if not (message.role == MessageRole.USER and text in survivor_texts)
        ]
        return ReconciliationPlan(
            mode="retry",
            to_delete=[message.id for message in existing[retry_index + 1 :]],
            to_insert=_plan_inserts(fresh),
            generation_target_id=existing[retry_index].id,
        )

    edit_index = _find_edit_index(incoming, existing, incoming_texts, existing_texts)
    if edit_index is not None:
        mode = "edit"
        to_delete = [message.id for message in existing[edit_index:]]
        to_insert = _plan_inserts([incoming[edit_index]])
    else:
        mode = "append"
        to_delete = []
        to_insert = _plan_inserts(list(incoming[len(existing) :]))

    target_id = _generation_target(incoming, existing, to_insert, to_delete)
    return ReconciliationPlan(
        mode=mode, to_delete=to_delete, to_insert=to_insert, generation_target_id=target_id
    )


def _generation_target(
    incoming: Sequence[ChatMessage],
    existing: Sequence[StoredMessage],
    to_insert: list[MessageInsert],
    to_delete: list[str],
) -> str:
    for item in reversed(to_insert):
        if item.role == MessageRole.USER:
            return item.id
    if incoming[-1].id and incoming[-1].id not in to_delete:
        return incoming[-1].id

    position = len(incoming) - 1
    if position < len(existing) and existing[position].id not in to_delete:
        return existing[position].id
    raise InvalidChatRequestError("Failed to determine the message to generate a response for")
