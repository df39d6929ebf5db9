"""
Chat with Santa: text turns, voice turns, and chat history.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from northpole.limiter import chat_rate_limit
from northpole.models.database import get_db
from northpole.models.entities import ChatMessage, User
from northpole.models.schemas import ChatRequest, ChatMessageResponse, VoiceChatResponse
from northpole.services.auth_service import get_current_user
from northpole.services.chat_service import run_chat_turn
from northpole.services.voice_service import encode_audio

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat", response_model=ChatMessageResponse, dependencies=[Depends(chat_rate_limit)])
async def chat(
    req: ChatRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await run_chat_turn(
        db,
        user,
        req.message,
        request.app.state.generator,
        context_limit=request.app.state.settings.CHAT_CONTEXT_MESSAGES,
    )


@router.post("/chat/voice", response_model=VoiceChatResponse, dependencies=[Depends(chat_rate_limit)])
async def voice_chat(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Send recorded audio as the raw request body; Santa answers in text and,
    when speech synthesis is configured, in audio.
    """
    audio = await request.body()
    transcript = (await request.app.state.voice_input.transcribe(audio)).strip()
    if not transcript:
        raise HTTPException(status_code=400, detail="Could not understand the recording. Please try again.")

    santa_msg = await run_chat_turn(
        db,
        user,
        transcript,
        request.app.state.generator,
        context_limit=request.app.state.settings.CHAT_CONTEXT_MESSAGES,
    )
    audio_reply = await request.app.state.voice_output.synthesize(santa_msg.message)

    return VoiceChatResponse(
        transcript=transcript,
        reply=ChatMessageResponse.model_validate(santa_msg),
        audio_base64=encode_audio(audio_reply) or None,
    )


@router.get("/chats", response_model=list[ChatMessageResponse])
async def list_chats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.user_id == user.id)
        .order_by(ChatMessage.created_at, ChatMessage.id)
    )
    return result.scalars().all()
