"""
Prompt Builder Backend — User Settings Routes
Provider/model preferences and encrypted storage of the user's own API keys.
Saved keys are never returned; responses only say which providers have one.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.database import get_db, upsert
from promptbuilder.core.security import AuthUser, encrypt_api_key, get_current_user
from promptbuilder.models.user_settings import UserSettings
from promptbuilder.schemas.schemas import UserSettingsResponse, UserSettingsUpdate
from promptbuilder.services.providers import UnsupportedProviderError, parse_provider

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(row: Optional[UserSettings]) -> UserSettingsResponse:
    keys = (row.user_api_keys_encrypted or {}) if row else {}
    return UserSettingsResponse(
        last_selected_provider=row.last_selected_provider if row else None,
        last_selected_model=row.last_selected_model if row else None,
        has_openai_key_saved=bool(keys.get("openai")),
        has_anthropic_key_saved=bool(keys.get("anthropic")),
        has_google_key_saved=bool(keys.get("google")),
    )


async def _load(db: AsyncSession, user_id: str) -> Optional[UserSettings]:
    result = await db.execute(
        select(UserSettings).where(UserSettings.user_id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@router.get("/user-settings", summary="Get user settings")
async def get_user_settings(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"settings": _to_response(await _load(db, current_user.id))}


@router.post("/user-settings", summary="Update user settings")
async def update_user_settings(
    request: UserSettingsUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    current = await _load(db, current_user.id)
    keys = dict((current.user_api_keys_encrypted or {}) if current else {})
    values = {
        "user_id": current_user.id,
        "last_selected_provider": current.last_selected_provider if current else None,
        "last_selected_model": current.last_selected_model if current else None,
        "updated_at": datetime.now(timezone.utc),
    }

    if request.has_key_payload:
        try:
            provider = parse_provider(request.provider_to_save).value
        except UnsupportedProviderError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        plaintext = (request.plaintext_api_key or "").strip()
        if request.consent_given and plaintext:
            keys[provider] = encrypt_api_key(plaintext)
            logger.info(f"[UserSettings] Saved encrypted {provider} key for user {current_user.id}")
        else:
            keys.pop(provider, None)
            logger.info(f"[UserSettings] Removed {provider} key for user {current_user.id}")

    fields_set = request.model_fields_set
    if "last_selected_provider" in fields_set:
        values["last_selected_provider"] = request.last_selected_provider
    if "last_selected_model" in fields_set:
        values["last_selected_model"] = request.last_selected_model
    values["user_api_keys_encrypted"] = keys

    logger.info(
        f"[UserSettings] Upserting settings for user {current_user.id}: "
        f"provider={values['last_selected_provider']}, model={values['last_selected_model']}, "
        f"keys_present={sorted(keys)}"
    )
    await db.execute(upsert(db, UserSettings, values, index_elements=["user_id"]))
    return {"success": True, "settings": _to_response(await _load(db, current_user.id))}
