"""
Prompt Builder Backend — Refinement Routes
Managed-key refinement and qualification (subscription gated) and
refinement with the user's own key.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.database import get_db
from promptbuilder.core.security import AuthUser, decrypt_api_key, get_current_user, get_optional_user
from promptbuilder.models.subscription import Subscription
from promptbuilder.models.user_settings import UserSettings
from promptbuilder.schemas.schemas import (
    QualifyRequest,
    QualifyResponse,
    RefineRequest,
    RefineResponse,
    RefineUserRequest,
)
from promptbuilder.services.access import evaluate_access
from promptbuilder.services.composition import PromptComponent, generate_prompt, render_prompt
from promptbuilder.services.providers import (
    ProviderError,
    ProviderName,
    ProviderNotConfiguredError,
    UnsupportedProviderError,
    managed_provider,
    parse_provider,
    user_provider,
)
from promptbuilder.services.refinement import (
    USER_REFINE_SYSTEM_PROMPT,
    describe_provider_error,
    qualify_prompt,
    refine_prompt,
)

logger = logging.getLogger(__name__)
router = APIRouter()


async def require_active_subscription(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    """Allow the request only for users with an active plan or trial."""
    result = await db.execute(select(Subscription).where(Subscription.user_id == current_user.id))
    decision = evaluate_access(result.scalar_one_or_none())
    if not decision.allowed:
        logger.info(f"[Access] User {current_user.id} denied: {decision.reason}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=decision.reason)
    return current_user


def _parse_or_400(provider: str) -> ProviderName:
    try:
        return parse_provider(provider)
    except UnsupportedProviderError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _managed_or_500(name: ProviderName):
    try:
        return managed_provider(name)
    except ProviderNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post(
    "/qualify-prompt",
    response_model=QualifyResponse,
    response_model_exclude_none=True,
    summary="Qualify prompt",
    description="Classify text before refinement (valid, meta request, too vague, gibberish).",
)
async def qualify(
    request: QualifyRequest,
    current_user: AuthUser = Depends(require_active_subscription),
):
    text = request.prompt_text.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Prompt text is required.")

    client = _managed_or_500(ProviderName.OPENAI)
    try:
        result = await qualify_prompt(client, text)
    except ProviderError as e:
        logger.error(f"[Qualify] Upstream error for user {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=describe_provider_error(e, ProviderName.OPENAI.value),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return QualifyResponse(type=result.type, detail=result.detail)


@router.post(
    "/refine",
    response_model=RefineResponse,
    summary="Refine prompt",
    description="Refine a prompt (or a set of components) with the application's keys.",
)
async def refine(
    request: RefineRequest,
    current_user: AuthUser = Depends(require_active_subscription),
):
    prompt = request.prompt
    if (not prompt or not prompt.strip()) and request.components:
        components = [PromptComponent(c.id, c.type, c.content) for c in request.components]
        prompt = render_prompt(generate_prompt(components), request.variables)
    if not prompt or not prompt.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Prompt is required.")

    name = _parse_or_400(request.provider or ProviderName.OPENAI.value)
    client = _managed_or_500(name)
    try:
        refined = await refine_prompt(client, prompt, request.model)
    except ProviderError as e:
        logger.error(f"[Refine] {name.label} error for user {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=describe_provider_error(e, name.value, request.model or client.default_model),
        )
    return RefineResponse(refined_prompt=refined)


async def _saved_key(db: AsyncSession, user_id: str, name: ProviderName) -> str:
    result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
    row = result.scalar_one_or_none()
    token = ((row.user_api_keys_encrypted or {}) if row else {}).get(name.value)
    if not token:
        return ""
    try:
        return decrypt_api_key(token)
    except ValueError:
        logger.error(f"[RefineUser] Saved {name.value} key for user {user_id} could not be decrypted")
        return ""


@router.post(
    "/refine-user",
    response_model=RefineResponse,
    summary="Refine prompt with own key",
    description="Refine a prompt with the user's key, sent in the request or saved in settings.",
)
async def refine_with_user_key(
    request: RefineUserRequest,
    current_user: AuthUser = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if not request.prompt.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Prompt is required.")
    name = _parse_or_400(request.provider)

    api_key = (request.api_key or "").strip()
    if not api_key and current_user:
        api_key = await _saved_key(db, current_user.id, name)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User API Key is required.")

    try:
        refined = await refine_prompt(
            user_provider(name, api_key),
            request.prompt,
            request.model,
            system_prompt=USER_REFINE_SYSTEM_PROMPT,
        )
    except ProviderError as e:
        logger.error(f"[RefineUser] {name.label} error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=describe_provider_error(e, name.value, request.model),
        )
    return RefineResponse(refined_prompt=refined)
