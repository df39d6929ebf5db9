"""
Parent dashboard, a read-only view of linked children.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from loguru import logger
from northpole.models.database import get_db
from northpole.models.entities import User
from northpole.models.schemas import ChildResponse, LinkChildRequest, UserResponse
from northpole.services.auth_service import authenticate, require_parent

router = APIRouter(prefix="/api/children", tags=["children"])


@router.get("", response_model=list[ChildResponse])
async def list_children(
    parent: User = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User)
        .options(selectinload(User.chats), selectinload(User.wishlist_items))
        .where(User.parent_id == parent.id)
        .order_by(User.created_at, User.id)
    )
    return result.scalars().all()


@router.post("/link", response_model=UserResponse)
async def link_child(
    req: LinkChildRequest,
    parent: User = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
):
    """Attach a child account to the signed-in parent; the child's password proves consent."""
    child = await authenticate(db, req.username, req.password)
    if child is None:
        raise HTTPException(status_code=401, detail="Invalid child credentials")
    if child.is_parent:
        raise HTTPException(status_code=400, detail="A parent account cannot be linked as a child")

    child.parent_id = parent.id
    await db.commit()

    logger.info(f"Linked child {child.id} to parent {parent.id}")
    return child
