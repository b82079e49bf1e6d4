"""Route a turn to the text or image path and assemble the provider conversation."""

import logging
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domains.ai.providers import (
    ConversationFile,
    ConversationMessage,
    ImageProvider,
    TextGenerationRequest,
    TextProvider,
    get_image_provider,
    get_text_provider,
)
from app.domains.ai.registry import LLMFeature, LLMInfo
from app.domains.attachment.service import AttachmentService
from app.domains.attachment.storage import AttachmentStorage
from app.domains.chat.context import GenerationContext
from app.domains.chat.image_generator import ImageGenerator
from app.domains.chat.message_service import MessageService
from app.domains.chat.prompts import chat_system_prompt
from app.domains.chat.provider_options import build_provider_options
from app.domains.chat.reconciler import extract_text
from app.domains.chat.text_generator import TextGenerator
from app.shared.data_stream import DataStreamWriter

logger = logging.getLogger(__name__)


def supported_files(files: list[ConversationFile], llm_info: LLMInfo) -> list[ConversationFile]:
    """Drop attachments the model cannot read: images need vision, PDFs need PDF support."""
    kept = []
    for file in files:
        if file.is_image and not llm_info.has_feature(LLMFeature.VISION):
            logger.info(f"Skipping image {file.name}: {llm_info.id} has no vision support")
            continue
        if file.is_pdf and not llm_info.has_feature(LLMFeature.PDFS):
            logger.info(f"Skipping PDF {file.name}: {llm_info.id} has no PDF support")
            continue
        kept.append(file)
    return kept


class GenerationDispatcher:
    """Picks the generation path for a model and runs it against a data stream."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: AttachmentStorage,
        text_provider_factory: Callable[..., TextProvider] = get_text_provider,
        image_provider_factory: Callable[..., ImageProvider] = get_image_provider,
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.text_generator = TextGenerator(session_factory, text_provider_factory)
        self.image_generator = ImageGenerator(session_factory, image_provider_factory)

    async def build_conversation(self, context: GenerationContext) -> list[ConversationMessage]:
        """Persisted history up to the target message, with attachments loaded now."""
        async with self.session_factory() as db:
            history = await MessageService(db).get_history(context.thread_id, context.message_id)
            attachments = AttachmentService(db, self.storage)

            conversation = []
            for message in history:
                files = []
                if message.role == "user" and message.message_attachments:
                    loaded = await attachments.load_for_generation(
                        [link.attachment_id for link in message.message_attachments]
                    )
                    files = supported_files(loaded, context.llm_info)
                text = extract_text(message.parts or [])
                if not text and not files:
                    continue
                conversation.append(ConversationMessage(role=message.role, text=text, files=files))
        return conversation

    async def build_text_request(self, context: GenerationContext) -> TextGenerationRequest:
        return TextGenerationRequest(
            system=chat_system_prompt(context.preferences, context.user_info),
            messages=await self.build_conversation(context),
            provider_options=build_provider_options(
                context.llm_info.provider, context.params, context.llm_info
            ),
            web_search=context.params.web_search,
        )

    async def dispatch(self, writer: DataStreamWriter, context: GenerationContext) -> None:
        if context.llm_info.has_feature(LLMFeature.IMAGES):
            logger.info(f"Dispatching image generation for thread {context.thread_id} ({context.model_key})")
            await self.image_generator.generate(writer, context)
            return

        logger.info(f"Dispatching text generation for thread {context.thread_id} ({context.model_key})")
        request = await self.build_text_request(context)
        await self.text_generator.generate(writer, context, request)
