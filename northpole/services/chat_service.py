"""
One chat turn: store the child's message, ask Santa, store Santa's reply.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from northpole.models.entities import ChatMessage, User, WishlistItem
from northpole.services.santa_service import (
    ChatContext, SantaGenerator, SantaReply, fallback_reply, sanitize_reply,
)


async def load_context(db: AsyncSession, user_id: int, limit: int, exclude_id: int = None) -> ChatContext:
    """Recent transcript (oldest first) and wishlist for a user."""
    query = select(ChatMessage).where(ChatMessage.user_id == user_id)
    if exclude_id is not None:
        query = query.where(ChatMessage.id != exclude_id)
    query = query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit)
    recent = (await db.execute(query)).scalars().all()

    items = await db.execute(
        select(WishlistItem)
        .where(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.priority, WishlistItem.created_at, WishlistItem.id)
    )

    return ChatContext(
        prior_messages=[
            {"role": "assistant" if m.is_from_santa else "user", "content": m.message}
            for m in reversed(recent)
        ],
        wishlist_items=[w.item for w in items.scalars().all()],
    )


async def run_chat_turn(
    db: AsyncSession,
    user: User,
    text: str,
    generator: SantaGenerator,
    context_limit: int = 10,
) -> ChatMessage:
    # 1. Inbound message
    user_msg = ChatMessage(user_id=user.id, message=text, is_from_santa=False)
    db.add(user_msg)
    await db.flush()

    # 2. Context for the persona
    context = await load_context(db, user.id, context_limit, exclude_id=user_msg.id)

    # 3. Santa's reply; the turn never fails because of the generator
    try:
        reply: SantaReply = await generator.generate(text, context)
        reply = sanitize_reply(reply, text)
    except Exception:
        logger.exception(f"Santa generator failed for user {user.id} — using fallback reply")
        reply = fallback_reply(text)

    # 4. Outbound message, committed together with the inbound one
    santa_msg = ChatMessage(
        user_id=user.id,
        message=reply.message,
        is_from_santa=True,
        tone=reply.tone.value,
        suggestions=reply.suggestions or None,
    )
    db.add(santa_msg)
    await db.commit()

    logger.info(f"Chat turn [user {user.id}]: '{text[:50]}' -> '{reply.message[:50]}' ({reply.tone.value})")
    return santa_msg
