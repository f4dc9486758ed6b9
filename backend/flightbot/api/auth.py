"""
Authentication API endpoints.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from ..middleware.rate_limiter import api_limiter, auth_limiter
from ..models import PasswordChange, Token, User, UserCreate, UserLogin, UserUpdate
from ..storage.user_storage import get_user_storage
from ..utils.auth import (
    authenticate_user,
    create_access_token,
    get_current_user,
    get_current_user_id,
    get_password_hash,
    to_public_user,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _issue_token(user: dict) -> Token:
    access_token = create_access_token(data={"sub": user["user_id"], "email": user["email"]})
    return Token(access_token=access_token, token_type="bearer", user=to_public_user(user))


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth_limiter)])
async def register(user_data: UserCreate):
    """
    Register a new user.

    Returns:
        dict: envelope with the new user and an access token

    Raises:
        HTTPException: If the email is already registered
    """
    user_storage = get_user_storage()
    if await user_storage.email_exists(user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email"
        )

    user = await user_storage.create_user(
        user_id=str(uuid.uuid4()),
        name=user_data.name,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        phone=user_data.phone,
    )

    return {
        "success": True,
        "message": "User registered successfully",
        "data": _issue_token(user),
    }


@router.post("/login", dependencies=[Depends(auth_limiter)])
async def login(credentials: UserLogin):
    """
    Login and get access token.

    Raises:
        HTTPException: If authentication fails
    """
    user = await authenticate_user(credentials.email, credentials.password)
    if not user:
        logger.info("Failed login attempt", extra={"extra_fields": {"email": credentials.email}})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_storage().update_user(
        user["user_id"], {"last_login": datetime.now(timezone.utc).isoformat()}
    )

    return {
        "success": True,
        "message": "Login successful",
        "data": _issue_token(user),
    }


@router.get("/profile", dependencies=[Depends(api_limiter)])
async def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": user}}


@router.put("/profile", dependencies=[Depends(api_limiter)])
async def update_profile(
    profile_update: UserUpdate,
    user_id: str = Depends(get_current_user_id)
):
    """
    Update profile fields; only the fields sent are changed.

    Returns:
        dict: envelope with the updated user
    """
    updates = profile_update.model_dump(mode="json", exclude_unset=True)
    user = await get_user_storage().update_user(user_id, updates)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": to_public_user(user)},
    }


@router.put("/change-password", dependencies=[Depends(auth_limiter)])
async def change_password(
    payload: PasswordChange,
    user_id: str = Depends(get_current_user_id)
):
    user_storage = get_user_storage()
    user = await user_storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if not verify_password(payload.current_password, user["hashed_password"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    await user_storage.update_user(user_id, {"hashed_password": get_password_hash(payload.new_password)})
    logger.info(f"Password changed for user {user_id}")

    return {"success": True, "message": "Password changed successfully"}


@router.post("/logout", dependencies=[Depends(api_limiter)])
async def logout(user_id: str = Depends(get_current_user_id)):
    """Tokens are stateless; logging out is the client discarding its token."""
    logger.info(f"User {user_id} logged out")
    return {"success": True, "message": "Logged out successfully"}
