"""
Prompt Builder Backend — Template Routes
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
from promptbuilder.models.template import Template
from promptbuilder.schemas.schemas import TemplateResponse, TemplateSave, TemplateSummary, TemplateUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


async def _find_by_name(db: AsyncSession, user_id: str, name: str) -> Optional[Template]:
    result = await db.execute(select(Template).where(Template.user_id == user_id, Template.name == name))
    return result.scalar_one_or_none()


@router.get("/templates", summary="List or fetch templates")
async def get_templates(
    id: Optional[str] = Query(default=None),
    name: Optional[str] = Query(default=None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if id or name:
        query = select(Template).where(Template.user_id == current_user.id)
        query = query.where(Template.id == id) if id else query.where(Template.name == name)
        template = (await db.execute(query)).scalar_one_or_none()
        if not template:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found.")
        return {"template": TemplateResponse.model_validate(template)}

    result = await db.execute(
        select(Template).where(Template.user_id == current_user.id).order_by(Template.updated_at.desc())
    )
    return {"templates": [TemplateSummary.model_validate(t) for t in result.scalars().all()]}


@router.post("/templates", summary="Save template")
async def save_template(
    request: TemplateSave,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Template name is required.")
    if not request.overwrite and await _find_by_name(db, current_user.id, name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Template name exists.")

    logger.info(f"[Templates] Upserting template '{name}' for user {current_user.id}")
    await db.execute(
        upsert(
            db,
            Template,
            {
                "id": str(uuid.uuid4()),
                "user_id": current_user.id,
                "name": name,
                "components": [c.model_dump() for c in request.components],
                "updated_at": datetime.now(timezone.utc),
            },
            index_elements=["user_id", "name"],
            update_columns=["components", "updated_at"],
        )
    )
    template = await _find_by_name(db, current_user.id, name)
    return {"success": True, "template": {"id": template.id, "name": template.name}}


@router.patch("/templates", summary="Rename template")
async def rename_template(
    request: TemplateUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    new_name = request.new_name.strip()
    if not new_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid request body.", "details": "New template name cannot be empty."},
        )

    result = await db.execute(
        select(Template).where(Template.user_id == current_user.id, Template.id == request.id)
    )
    template = result.scalar_one_or_none()
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found or user unauthorized.")

    conflict = f'A template with the name "{new_name}" already exists.'
    if new_name != template.name and await _find_by_name(db, current_user.id, new_name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict)

    template.name = new_name
    template.updated_at = datetime.now(timezone.utc)
    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict)
    return {"success": True, "template": TemplateSummary.model_validate(template)}


@router.delete("/templates", summary="Delete template")
async def delete_template(
    id: Optional[str] = Query(default=None),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Template ID is required.")
    await db.execute(delete(Template).where(Template.user_id == current_user.id, Template.id == id))
    logger.info(f"[Templates] Deleted template {id} for user {current_user.id}")
    return {"success": True}
