"""
Prompt Builder Backend — Saved Prompt Routes
Per-user named prompts: list, fetch, save (upsert by name), rename/recategorize, delete.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.database import get_db, upsert
from promptbuilder.core.security import AuthUser, get_current_user
from promptbuilder.models.prompt import Prompt
from promptbuilder.schemas.schemas import PromptResponse, PromptSave, PromptSummary, PromptUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


async def _find_by_name(db: AsyncSession, user_id: str, name: str) -> Optional[Prompt]:
    result = await db.execute(select(Prompt).where(Prompt.user_id == user_id, Prompt.name == name))
    return result.scalar_one_or_none()


@router.get("/prompts", summary="List or fetch prompts")
async def get_prompts(
    id: Optional[str] = Query(default=None, description="Fetch a single prompt by id"),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if id:
        result = await db.execute(select(Prompt).where(Prompt.user_id == current_user.id, Prompt.id == id))
        prompt = result.scalar_one_or_none()
        if not prompt:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found.")
        return {"prompt": PromptResponse.model_validate(prompt)}

    result = await db.execute(
        select(Prompt).where(Prompt.user_id == current_user.id).order_by(Prompt.updated_at.desc())
    )
    return {"prompts": [PromptSummary.model_validate(p) for p in result.scalars().all()]}


@router.post("/prompts", summary="Save prompt")
async def save_prompt(
    request: PromptSave,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Prompt name is required.")

    if not request.overwrite and await _find_by_name(db, current_user.id, name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'A prompt with the name "{name}" already exists.',
        )

    category = (request.category or "").strip() or None
    logger.info(f"[Prompts] Upserting prompt '{name}' for user {current_user.id}")
    await db.execute(
        upsert(
            db,
            Prompt,
            {
                "id": str(uuid.uuid4()),
                "user_id": current_user.id,
                "name": name,
                "components": [c.model_dump() for c in request.components],
                "settings": request.settings,
                "category": category,
                "updated_at": datetime.now(timezone.utc),
            },
            index_elements=["user_id", "name"],
            update_columns=["components", "settings", "category", "updated_at"],
        )
    )
    result = await db.execute(
        select(Prompt)
        .where(Prompt.user_id == current_user.id, Prompt.name == name)
        .execution_options(populate_existing=True)
    )
    return {"success": True, "prompt": PromptSummary.model_validate(result.scalar_one())}


@router.patch("/prompts", summary="Rename or recategorize prompt")
async def update_prompt(
    request: PromptUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = request.model_fields_set & {"new_name", "new_category"}
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid request body.", "details": "No update data (newName or newCategory) provided."},
        )
    new_name = request.new_name.strip() if request.new_name is not None else None
    if "new_name" in changes and not new_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid request body.", "details": "New name, if provided, cannot be empty."},
        )

    result = await db.execute(select(Prompt).where(Prompt.user_id == current_user.id, Prompt.id == request.id))
    prompt = result.scalar_one_or_none()
    if not prompt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found or user unauthorized.")

    if new_name and new_name != prompt.name:
        if await _find_by_name(db, current_user.id, new_name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'A prompt with the name "{new_name}" already exists.',
            )
        prompt.name = new_name
    if "new_category" in changes:
        prompt.category = (request.new_category or "").strip() or None
    prompt.updated_at = datetime.now(timezone.utc)

    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'A prompt with the name "{new_name}" already exists.',
        )
    logger.info(f"[Prompts] Updated prompt {prompt.id} for user {current_user.id}")
    return {"success": True, "prompt": PromptSummary.model_validate(prompt)}


@router.delete("/prompts", summary="Delete prompt")
async def delete_prompt(
    id: Optional[str] = Query(default=None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Prompt ID query parameter is required for delete.",
        )
    await db.execute(delete(Prompt).where(Prompt.user_id == current_user.id, Prompt.id == id))
    logger.info(f"[Prompts] Deleted prompt {id} for user {current_user.id}")
    return {"success": True}
