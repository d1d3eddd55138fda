"""
Chat streaming endpoint.

POST /api/chat runs one user turn and streams the assistant's reply as
Server-Sent Events in the UI message stream format. DELETE /api/chat
removes a chat owned by the caller.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Header, Query
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from api.dependencies import AgentLoader, AppSettings, Chats, ConfigStore
from api.middleware.auth import CurrentUser
from api.middleware.request_context import update_request_context
from api.services.admin_config_service import AdminConfigStore
from api.services.chat_repository import ChatRepository
from api.services.file_context import build_file_context
from core.constants import CHAT_RATE_LIMIT_WINDOW_HOURS, DEFAULT_CHAT_TITLE
from core.errors import (
    AuthenticationError,
    ChatNotFoundError,
    ConfigurationError,
    PermissionDeniedError,
    RateLimitError,
)
from models.agent_config import ChatModelAgentConfig
from models.error_models import ErrorCode
from models.schemas.chat import ChatRequest
from subagents.chat_agent import ChatAgent, ChatParams, OnFinish
from utils.activity_logger import AgentType
from utils.logger import logger
from utils.text import title_from_instruction

router = APIRouter()


async def load_chat_config(config_store: AdminConfigStore, provider: str) -> ChatModelAgentConfig | None:
    """The provider's chat_model_agent config, or None when it has no row."""
    config_key = f"{AgentType.CHAT_MODEL_AGENT.value}_{provider}"
    row = await config_store.get_admin_config(config_key)
    if not row:
        logger.warning(f"{config_key} not found", config_key=config_key)
        return None
    try:
        return ChatModelAgentConfig.model_validate(row["config_data"])
    except ValidationError as e:
        raise ConfigurationError(config_key, f"Invalid configuration for {config_key}: {e}", cause=e) from e


def message_text(parts: list[dict[str, Any]]) -> str:
    """Text content of a stored message's parts."""
    return "\n".join(p.get("text", "") for p in parts if p.get("type") == "text" and p.get("text"))


def history_to_model_messages(history: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Stored UI messages as ``{role, content}``; messages without text are dropped."""
    messages = []
    for stored in history:
        if stored["role"] not in ("user", "assistant"):
            continue
        content = message_text(stored.get("parts") or [])
        if content:
            messages.append({"role": stored["role"], "content": content})
    return messages


def _save_assistant_messages(chats: ChatRepository, chat_id: str) -> OnFinish:
    async def on_finish(messages: list[dict[str, Any]]) -> None:
        assistant = [m for m in messages if m.get("role") == "assistant"]
        if assistant:
            await chats.save_messages(chat_id, assistant)

    return on_finish


@router.post(
    "/chat",
    summary="Stream a chat turn",
    description="Run one user turn through the chat agent and stream the reply as Server-Sent Events.",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/event-stream": {}}, "description": "UI message stream"},
        401: {"description": "Authentication required or invalid API key"},
        403: {"description": "Chat belongs to another user"},
        429: {"description": "Daily message limit exceeded"},
    },
)
async def post_chat(
    body: ChatRequest,
    user: CurrentUser,
    chats: Chats,
    config_store: ConfigStore,
    loader: AgentLoader,
    settings: AppSettings,
    x_api_key: Annotated[str | None, Header()] = None,
) -> StreamingResponse:
    chat_id = str(body.id)
    update_request_context(chat_id=chat_id)

    message_count = await chats.count_user_messages(user.id, CHAT_RATE_LIMIT_WINDOW_HOURS)
    if message_count > settings.chat_daily_message_limit:
        logger.warning(f"Message limit reached ({message_count})", user_id=user.id)
        raise RateLimitError(settings.chat_daily_message_limit, CHAT_RATE_LIMIT_WINDOW_HOURS)

    chat = await chats.get_chat(chat_id)
    if chat is not None:
        if chat["user_id"] != user.id:
            raise PermissionDeniedError("You do not have access to this chat")
    else:
        title = title_from_instruction(body.message.text, DEFAULT_CHAT_TITLE)
        await chats.save_chat(chat_id, user.id, title, body.selected_visibility_type)

    history = history_to_model_messages(await chats.get_messages(chat_id))

    chat_agent = ChatAgent(await load_chat_config(config_store, settings.agent_provider), loader)
    model_id = body.selected_chat_model

    file_context = ""
    if body.message.files:
        if chat_agent.supports_file_input(model_id):
            file_context = await build_file_context(
                body.message.files,
                chat_agent.get_allowed_file_types(model_id),
                user.id,
            )
        else:
            logger.warning(f"Model {model_id} does not accept file input; attachments ignored")

    api_key = (x_api_key or "").strip() or settings.openai_api_key
    if not api_key:
        raise AuthenticationError(message="API key is required", code=ErrorCode.AUTHENTICATION_FAILED)

    await chats.save_messages(
        chat_id,
        [
            {
                "id": str(body.message.id),
                "role": "user",
                "parts": [p.model_dump(by_alias=True, exclude_none=True) for p in body.message.parts],
            }
        ],
    )

    user_content = body.message.text + file_context
    if body.github_context:
        user_content = f"{user_content}\n\n{body.github_context}"

    return await chat_agent.chat(
        ChatParams(
            model_id=model_id,
            messages=[*history, {"role": "user", "content": user_content}],
            api_key=api_key,
            base_url=settings.openai_base_url_str,
            github_pat=(body.github_pat or "").strip() or settings.github_pat,
            user_id=user.id,
            chat_id=chat_id,
            thinking_mode=body.thinking_enabled,
            artifact_context=body.artifact_context,
            on_finish=_save_assistant_messages(chats, chat_id),
        )
    )


@router.delete(
    "/chat",
    summary="Delete a chat",
    responses={
        403: {"description": "Chat belongs to another user"},
        404: {"description": "Chat not found"},
    },
)
async def delete_chat(
    user: CurrentUser,
    chats: Chats,
    chat_id: Annotated[str, Query(alias="id", min_length=1)],
) -> dict[str, Any]:
    chat = await chats.get_chat(chat_id)
    if chat is None:
        raise ChatNotFoundError(chat_id)
    if chat["user_id"] != user.id:
        raise PermissionDeniedError("You do not have access to this chat")

    await chats.delete_chat(chat_id)
    return chat
