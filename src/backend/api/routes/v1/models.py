"""
Model capability endpoint (v1).

Lists the selectable models of the active provider so the client can
build its model picker and know which models accept thinking mode or
file input.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import AppSettings, ConfigStore
from api.middleware.auth import CurrentUser
from api.routes.chat import load_chat_config
from models.agent_config import get_default_model, normalize_default_models
from models.schemas.chat import ModelCapabilitiesResponse

router = APIRouter()


@router.get(
    "/models/capabilities",
    response_model=ModelCapabilitiesResponse,
    response_model_by_alias=True,
    summary="Model capabilities",
    description=(
        "Active models of the configured provider with exactly one default. "
        "Falls back to the chat agent's availableModels when the model table is empty."
    ),
)
async def get_model_capabilities(
    user: CurrentUser,
    config_store: ConfigStore,
    settings: AppSettings,
) -> ModelCapabilitiesResponse:
    provider = settings.agent_provider
    models = await config_store.get_models_by_provider(provider, active_only=True)
    if not models:
        chat_config = await load_chat_config(config_store, provider)
        if chat_config and chat_config.available_models:
            models = normalize_default_models([m for m in chat_config.available_models if m.enabled])

    default = get_default_model(models)
    return ModelCapabilitiesResponse(
        provider=provider,
        models=models,
        default_model=default.id if default else None,
    )
