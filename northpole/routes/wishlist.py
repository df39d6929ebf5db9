"""
Wishlist endpoints, scoped to the signed-in child.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from northpole.models.database import get_db
from northpole.models.entities import User, WishlistItem
from northpole.models.schemas import WishlistItemCreate, WishlistItemResponse
from northpole.services.auth_service import get_current_user

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


@router.post("", response_model=WishlistItemResponse)
async def add_item(
    req: WishlistItemCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = WishlistItem(
        user_id=user.id,
        item=req.item,
        category=req.category.value,
        priority=req.priority or 1,
        notes=req.notes,
    )
    db.add(item)
    await db.commit()

    logger.info(f"Wishlist item {item.id} added for user {user.id} ({item.category})")
    return item


@router.get("", response_model=list[WishlistItemResponse])
async def list_items(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(WishlistItem)
        .where(WishlistItem.user_id == user.id)
        .order_by(WishlistItem.priority, WishlistItem.created_at, WishlistItem.id)
    )
    return result.scalars().all()
