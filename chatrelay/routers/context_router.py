"""Chat and context API: chat turn, roles, snapshot, clear, delete, stats."""

from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from chatrelay.config import get_settings
from chatrelay.constants.prompts import DefaultSystemPrompt
from chatrelay.constants.roles import AVAILABLE_ROLES, ROLE_CATEGORIES
from chatrelay.core.app_state import state
from chatrelay.core.errors import ChatRelayError
from chatrelay.core.user_key import build_user_key
from chatrelay.infra.logging_config import get_logger
from chatrelay.schemas.chat import ChatRequest, ChatResult
from chatrelay.schemas.role import (
    RoleInfo,
    RoleList,
    SetRoleRequest,
    SetRoleResponse,
)
from chatrelay.schemas.user_context import ContextSnapshot, ContextStats
from chatrelay.services.conversation_pipeline import ConversationPipeline
from chatrelay.services.user_role_service import UserRoleService

logger = get_logger(__name__)

context_router = APIRouter(tags=["Context"])


def get_pipeline() -> ConversationPipeline:
    """FastAPI dependency returning the process-wide pipeline."""
    return state.pipeline


def get_role_service() -> UserRoleService:
    """FastAPI dependency returning the process-wide role selections."""
    return state.roles


def get_user_key(
    session_token: Optional[str] = Header(None, alias="X-Session-Token"),
    user_api_key: Optional[str] = Header(None, alias="X-User-API-Key"),
) -> str:
    """FastAPI dependency deriving the context key from request headers."""
    return build_user_key(session_token, user_api_key)


def _raise_http(error: ChatRelayError) -> NoReturn:
    raise HTTPException(
        status_code=error.status_code,
        detail={"error": error.message, "code": error.code},
    ) from error


def resolve_system_prompt(
    requested: Optional[str], user_key: str, roles: UserRoleService
) -> str:
    """Request value, else the caller's role preset, else the default prompt."""
    return requested or roles.system_prompt_for(user_key) or DefaultSystemPrompt.CONTENT


@context_router.post("/chat", response_model=ChatResult)
async def chat(
    body: ChatRequest,
    user_key: str = Depends(get_user_key),
    pipeline: ConversationPipeline = Depends(get_pipeline),
    roles: UserRoleService = Depends(get_role_service),
) -> ChatResult:
    """Relay one chat turn with the caller's stored context."""
    settings = get_settings()
    try:
        return await pipeline.process_turn(
            user_key,
            body.message,
            body.model or settings.llm_model,
            resolve_system_prompt(body.system_prompt, user_key, roles),
            body.generation_params(),
        )
    except ChatRelayError as e:
        logger.warning("Chat turn failed for %s: %s", user_key, e)
        _raise_http(e)


@context_router.get("/roles", response_model=RoleList)
def list_roles(
    user_key: str = Depends(get_user_key),
    roles: UserRoleService = Depends(get_role_service),
) -> RoleList:
    """Available role presets, without their prompt text."""
    current = roles.get_role(user_key)
    return RoleList(
        roles=[RoleInfo.from_role(role) for role in AVAILABLE_ROLES],
        categories=ROLE_CATEGORIES,
        current_role=current.id if current else None,
    )


@context_router.post("/set-role", response_model=SetRoleResponse)
def set_role(
    body: SetRoleRequest,
    user_key: str = Depends(get_user_key),
    roles: UserRoleService = Depends(get_role_service),
) -> SetRoleResponse:
    """Select the role preset used when a chat request brings no system prompt."""
    try:
        role = roles.set_role(user_key, body.role)
    except ChatRelayError as e:
        _raise_http(e)
    return SetRoleResponse(
        message=f"Role set to: {role.name}", role=RoleInfo.from_role(role)
    )


@context_router.get("/context", response_model=ContextSnapshot)
def get_context(
    user_key: str = Depends(get_user_key),
    pipeline: ConversationPipeline = Depends(get_pipeline),
) -> ContextSnapshot:
    """Current context status for the caller."""
    return pipeline.get_context_snapshot(user_key)


@context_router.post("/context/clear", response_model=dict)
async def clear_context(
    user_key: str = Depends(get_user_key),
    pipeline: ConversationPipeline = Depends(get_pipeline),
) -> dict:
    """Reset the caller's history and summary."""
    await pipeline.clear_context(user_key)
    return {"success": True, "message": "Context cleared successfully"}


@context_router.delete("/context", response_model=dict)
async def delete_context(
    user_key: str = Depends(get_user_key),
    pipeline: ConversationPipeline = Depends(get_pipeline),
) -> dict:
    """Remove the caller's context entirely."""
    deleted = await pipeline.delete_context(user_key)
    return {
        "success": deleted,
        "message": "Context deleted successfully" if deleted else "No context found",
    }


@context_router.get("/context/stats", response_model=ContextStats)
def get_context_stats(
    pipeline: ConversationPipeline = Depends(get_pipeline),
) -> ContextStats:
    """Cache statistics for operational introspection."""
    return pipeline.get_cache_stats()
