"""Chat service: validate a submission, persist it and start the generation stream."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.ai.credentials import ProviderCredentials, resolve_credentials, resolve_image_credentials
from app.domains.ai.registry import LLMFeature, LLMInfo, get_llm
from app.domains.chat.context import GenerationContext
from app.domains.chat.dispatcher import GenerationDispatcher
from app.domains.chat.guard import GenerationRegistry, generation_registry
from app.domains.chat.message_service import MessageService
from app.domains.chat.reconciler import message_text
from app.domains.preferences.service import PreferencesService
from app.domains.thread.service import ThreadService
from app.exceptions.ai import describe_generation_error
from app.exceptions.chat import GenerationInProgressError, InvalidChatRequestError
from app.schemas.chat import ChatRequest
from app.shared.data_stream import AbortSignal, DataStream, DataStreamWriter, create_data_stream
from models.thread import ThreadStatus

logger = logging.getLogger(__name__)


class ChatService:
    """Service orchestrating one chat turn."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: GenerationDispatcher,
        registry: GenerationRegistry = generation_registry,
    ):
        """Initialize chat service.

        Args:
            db: Request-scoped session for the synchronous part of the turn.
            dispatcher: Runs the generation once the stream is consumed.
            registry: Tracks threads with a generation in flight.
        """
        self.db = db
        self.dispatcher = dispatcher
        self.registry = registry

    @staticmethod
    def _validate_request(request: ChatRequest) -> LLMInfo:
        llm_info = get_llm(request.model)

        if not request.messages:
            raise InvalidChatRequestError("Messages array cannot be empty")
        if not message_text(request.messages[-1]).strip() and not request.attachment_ids:
            raise InvalidChatRequestError("Last message must have text content or attachments")
        return llm_info

    @staticmethod
    def _resolve_credentials(request: ChatRequest, llm_info: LLMInfo) -> ProviderCredentials:
        if llm_info.has_feature(LLMFeature.IMAGES):
            return resolve_image_credentials(request.model, llm_info, request.api_keys)
        return resolve_credentials(request.model, llm_info, request.api_keys)

    async def start_chat(self, request: ChatRequest, user_id: str) -> tuple[str, DataStream]:
        """Persist the submission and return the thread id plus the response stream.

        Validation, credential and message ownership checks run before
        anything is written.

        Raises:
            ModelNotFoundError: Unknown model key.
            ModelDisabledError: Model switched off.
            InvalidChatRequestError: No messages, or nothing to answer.
            AICredentialsMissingError: No key for the model's provider.
            GenerationInProgressError: The thread is already generating.
            MessageOwnershipError: A message id belongs to another thread.
        """
        llm_info = self._validate_request(request)
        credentials = self._resolve_credentials(request, llm_info)

        requested_id = request.thread_metadata.id
        if requested_id and self.registry.is_active(requested_id):
            raise GenerationInProgressError(requested_id)

        thread_service = ThreadService(self.db)
        existing_thread = await thread_service.find_owned_thread(user_id, requested_id)
        await MessageService(self.db).check_ownership(
            existing_thread.id if existing_thread is not None else None, request.messages
        )

        thread = await thread_service.handle_thread_creation(
            user_id=user_id,
            thread_id=requested_id,
            first_message_text=message_text(request.messages[0]),
            api_keys=request.api_keys,
        )
        thread_id = thread.id
        self.registry.acquire(thread_id)

        try:
            plan = await MessageService(self.db).save_messages(
                thread_id=thread_id,
                user_id=user_id,
                messages=request.messages,
                model=request.model,
                attachment_ids=request.attachment_ids,
            )
            await ThreadService(self.db).update_thread_status(thread_id, ThreadStatus.GENERATING)
            await PreferencesService(self.db).update_last_selected_model(user_id, request.model)
        except Exception:
            self.registry.release(thread_id)
            raise

        context = GenerationContext(
            thread_id=thread_id,
            user_id=user_id,
            message_id=plan.generation_target_id,
            model_key=request.model,
            llm_info=llm_info,
            credentials=credentials,
            messages=request.messages,
            params=request.model_params,
            preferences=request.preferences,
            user_info=request.user_info,
            abort=AbortSignal(),
        )
        logger.info(
            f"Starting {plan.mode} generation in thread {thread_id} for message "
            f"{plan.generation_target_id} with {request.model}"
        )

        async def execute(writer: DataStreamWriter) -> None:
            writer.write_data({"threadId": thread_id})
            await self.dispatcher.dispatch(writer, context)

        stream = create_data_stream(
            execute,
            on_error=describe_generation_error,
            abort=context.abort,
            on_close=lambda: self.registry.release(thread_id),
        )
        return thread_id, stream
