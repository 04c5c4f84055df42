"""Registration and login."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeper.api.dependencies import get_db_session
from bookkeeper.models.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserRead,
)
from bookkeeper.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db_session)):
    user = await AuthService().register(db, payload)
    return RegisterResponse(userId=user.id, message="Registration successful")


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db_session)):
    token, user = await AuthService().login(db, payload)
    return LoginResponse(token=token, user=UserRead.model_validate(user))
