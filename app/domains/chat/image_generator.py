"""Image generation path of a chat turn."""

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domains.ai.providers import GeneratedImage, ImageGenerationRequest, ImageProvider, get_image_provider
from app.domains.chat.context import GenerationContext
from app.domains.chat.message_service import MessageService
from app.domains.chat.text_generator import epoch_millis
from app.domains.thread.service import ThreadService
from app.exceptions.ai import describe_generation_error
from app.schemas.chat import ChatMessage, ImageGenerationParams, OpenAIImageParams
from app.shared.data_stream import DataStreamWriter, GenerationAborted
from models import utcnow
from models.message import MessageStatus
from models.thread import ThreadStatus

logger = logging.getLogger(__name__)

NO_PROMPT_ERROR = "No valid prompt found for image generation"


def image_prompt(messages: list[ChatMessage]) -> str | None:
    """The plain ``content`` string of the last user message, if any.

    Messages that only carry parts have no usable prompt.
    """
    user_messages = [message for message in messages if message.role == "user"]
    if not user_messages:
        return None
    content = user_messages[-1].content
    if not isinstance(content, str) or not content:
        return None
    return content


def build_image_request(prompt: str, params: ImageGenerationParams | None) -> ImageGenerationRequest:
    params = params or ImageGenerationParams()
    openai_params = params.openai or OpenAIImageParams()
    return ImageGenerationRequest(
        prompt=prompt,
        n=params.n,
        size=None if params.size == "auto" else params.size,
        quality=openai_params.quality,
        background=openai_params.background,
        output_format=openai_params.output_format,
        output_compression=openai_params.output_compression,
        moderation=openai_params.moderation,
    )


def image_parts(images: list[GeneratedImage], output_format: str) -> list[dict]:
    mime_type = f"image/{output_format}"
    return [
        {"type": "file", "mimeType": mime_type, "data": f"data:{mime_type};base64,{image.base64}"}
        for image in images
    ]


class ImageGenerator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider_factory: Callable[..., ImageProvider] = get_image_provider,
    ):
        self.session_factory = session_factory
        self.provider_factory = provider_factory

    async def generate(self, writer: DataStreamWriter, context: GenerationContext) -> None:
        prompt = image_prompt(context.messages)
        if prompt is None:
            logger.warning(f"No usable image prompt in thread {context.thread_id}")
            writer.write_data({"type": "error", "error": NO_PROMPT_ERROR})
            await self._mark_waiting(context)
            return

        request = build_image_request(prompt, context.params.image_generation)
        provider = self.provider_factory(context.credentials)
        generation_start_at = utcnow()

        try:
            images = await provider.generate(request)
            context.abort.raise_if_aborted()
        except (GenerationAborted, asyncio.CancelledError):
            logger.info(f"Image generation for message {context.message_id} aborted, nothing persisted")
            raise
        except Exception as e:
            logger.error(f"Image generation failed for thread {context.thread_id}: {str(e)}", exc_info=True)
            writer.write_data({"type": "error", "error": describe_generation_error(e)})
            writer.finish_reason = "error"
            await self._mark_waiting(context)
            return

        generation_end_at = utcnow()
        parts = image_parts(images, request.output_format)
        assistant_id = await asyncio.shield(
            self._persist(context, parts, generation_start_at, generation_end_at)
        )
        response_time = (generation_end_at - generation_start_at).total_seconds()
        logger.info(f"Generated {len(images)} image(s) for message {assistant_id} in {response_time:.1f}s")

        writer.write_data(
            {
                "type": "images",
                "data": {
                    "images": [{"base64": image.base64, "url": image.url} for image in images],
                    "messageId": assistant_id,
                    "model": context.model_key,
                    "generationStartAt": epoch_millis(generation_start_at),
                    "generationEndAt": epoch_millis(generation_end_at),
                    "responseTime": response_time,
                },
            }
        )

    async def _persist(self, context: GenerationContext, parts: list[dict], generation_start_at, generation_end_at) -> str:
        async with self.session_factory() as db:
            messages = MessageService(db)
            await messages.update_message_status(context.message_id, MessageStatus.DONE)
            assistant = await messages.create_assistant_message(
                thread_id=context.thread_id,
                model=context.model_key,
                parts=parts,
                generation_start_at=generation_start_at,
                generation_end_at=generation_end_at,
            )
            await ThreadService(db).update_thread_status(context.thread_id, ThreadStatus.COMPLETED)
            return assistant.id

    async def _mark_waiting(self, context: GenerationContext) -> None:
        async with self.session_factory() as db:
            await MessageService(db).update_message_status(context.message_id, MessageStatus.WAITING)
