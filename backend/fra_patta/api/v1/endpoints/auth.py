from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime

from fra_patta.core.database import get_db
from fra_patta.core.exceptions import AuthenticationError
from fra_patta.core.security import verify_password, create_access_token
from fra_patta.core.logging_config import logger, set_user_id
from fra_patta.core.rate_limiter import limiter
from fra_patta.core.config import settings
from fra_patta.models.user import User, UserRole
from fra_patta.schemas.auth import UserLogin, LoginResponse, UserResponse
from fra_patta.modules.auth.dependencies import get_current_user


router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login a ministry or NGO user (rate limited)"""
    client_ip = request.client.host if request.client else "unknown"

    query = select(User).where(User.email == credentials.email)
    if credentials.role is not None:
        query = query.where(User.role == credentials.role)
    user = (await db.execute(query)).scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise AuthenticationError("Invalid credentials")

    if user.role == UserRole.NGO and not user.is_approved:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Pending approval",
            client_ip=client_ip
        )
        raise AuthenticationError("Account pending approval")

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    user.last_login = datetime.utcnow()
    await db.commit()

    set_user_id(str(user.id))

    access_token = create_access_token({"sub": str(user.id), "role": user.role.value})

    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    }


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Current authenticated user"""
    return current_user
