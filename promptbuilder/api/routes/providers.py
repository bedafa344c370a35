"""
Prompt Builder Backend — Provider Routes
Model listing with the server's keys and validation of user-supplied keys.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from promptbuilder.schemas.schemas import ModelsResponse, ValidateKeyRequest, ValidateKeyResponse
from promptbuilder.services.providers import (
    ProviderError,
    ProviderNotConfiguredError,
    UnsupportedProviderError,
    managed_provider,
    parse_provider,
    user_provider,
)
from promptbuilder.services.refinement import validate_key

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List models",
    description="Models reachable with the application's own key for a provider.",
)
async def list_models(provider: Optional[str] = Query(default=None)):
    if not provider:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Provider query parameter is required.")

    try:
        name = parse_provider(provider)
    except UnsupportedProviderError:
        logger.warning(f"[Models] Unsupported provider requested: {provider}")
        return ModelsResponse(models=[])

    try:
        client = managed_provider(name)
    except ProviderNotConfiguredError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{name.label} not configured on server for model listing.",
        )

    try:
        models = await client.list_models()
    except ProviderError as e:
        logger.error(f"[Models] Listing failed for {name.value}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch models for {name.value}: {e.message}",
        )
    logger.info(f"[Models] {len(models)} models for {name.value}")
    return ModelsResponse(models=models)


@router.post(
    "/validate-key",
    response_model=ValidateKeyResponse,
    response_model_exclude_none=True,
    summary="Validate API key",
    description="Check a user's provider key by listing the models it can reach.",
)
async def validate_api_key(request: ValidateKeyRequest):
    api_key = request.api_key.strip()
    if not api_key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Provider and API Key are required.")
    try:
        name = parse_provider(request.provider)
    except UnsupportedProviderError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        models = await validate_key(user_provider(name, api_key))
    except ProviderError as e:
        logger.info(f"[ValidateKey] {name.label} key rejected: {e}")
        if e.status_code == 403:
            message = "Permission Denied."
        elif e.status_code in (400, 401) or "key" in e.message.lower() or "authentication" in e.message.lower():
            message = "Invalid API Key provided."
        else:
            message = e.message or "Validation check failed."
        return ValidateKeyResponse(is_valid=False, error=message)

    return ValidateKeyResponse(is_valid=True, models=models)
