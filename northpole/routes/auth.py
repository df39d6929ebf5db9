"""
Authentication routes — register, login, logout, current user.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from northpole.models.database import get_db
from northpole.models.entities import User
from northpole.models.schemas import RegisterRequest, LoginRequest, TokenResponse, UserResponse
from northpole.services.auth_service import (
    create_user, authenticate, issue_session, clear_session, get_current_user,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    req: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    existing = await db.execute(select(User).where(User.username == req.username))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Username already exists")

    parent_id = None
    if req.parent_username:
        if req.is_parent:
            raise HTTPException(status_code=400, detail="A parent account cannot have a parent")
        result = await db.execute(select(User).where(User.username == req.parent_username))
        parent = result.scalar_one_or_none()
        if parent is None or not parent.is_parent:
            raise HTTPException(status_code=400, detail="Parent account not found")
        parent_id = parent.id

    user = await create_user(db, req.username, req.password, is_parent=req.is_parent, parent_id=parent_id)

    token = issue_session(response, user, request.app.state.settings)
    logger.info(f"Registered {'parent' if user.is_parent else 'child'} account {user.id}")
    return TokenResponse(access_token=token, user_id=user.id, is_parent=user.is_parent)


@router.post("/login", response_model=TokenResponse)
async def login(
    req: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await authenticate(db, req.username, req.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = issue_session(response, user, request.app.state.settings)
    return TokenResponse(access_token=token, user_id=user.id, is_parent=user.is_parent)


@router.post("/logout")
async def logout(request: Request, response: Response):
    clear_session(response, request.app.state.settings)
    return {"status": "logged_out"}


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return user
