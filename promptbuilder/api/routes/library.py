"""
Prompt Builder Backend — Shared Library Routes
Public, read-only catalogue of curated prompts.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from promptbuilder.core.config import settings
from promptbuilder.core.database import get_db
from promptbuilder.models.library_item import SharedLibraryItem
from promptbuilder.schemas.schemas import LibraryItemResponse, LibraryPage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/library",
    response_model=LibraryPage,
    summary="Browse shared library",
    description="Featured items first, then by name. Search matches name and description.",
)
async def list_library_items(
    category: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=settings.LIBRARY_DEFAULT_LIMIT, ge=1, le=settings.LIBRARY_MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[Library] category={category}, search={search}, limit={limit}, offset={offset}")

    filters = []
    if category:
        filters.append(SharedLibraryItem.category == category)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(SharedLibraryItem.name.ilike(pattern), SharedLibraryItem.description.ilike(pattern)))

    total = (await db.execute(select(func.count()).select_from(SharedLibraryItem).where(*filters))).scalar_one()
    result = await db.execute(
        select(SharedLibraryItem)
        .where(*filters)
        .order_by(SharedLibraryItem.is_featured.desc(), SharedLibraryItem.name.asc())
        .offset(offset)
        .limit(limit)
    )
    items = [LibraryItemResponse.model_validate(i) for i in result.scalars().all()]
    logger.info(f"[Library] Returning {len(items)} of {total} items")
    return LibraryPage(items=items, total_count=total)
