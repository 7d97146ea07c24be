"""
Header-based identity for the API

Authentication itself is handled upstream (gateway / session layer);
requests reach this service with the resolved user id in `X-User-Id`.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import get_user_by_id
from src.database.engine import get_session
from src.database.models import User


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
) -> User:
    """
    Resolve the calling user

    Raises:
        HTTPException: 401 if the header is missing/invalid or the user
            is unknown or disabled
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    try:
        user_id = int(x_user_id)
    except ValueError:
        logger.warning(f"Invalid X-User-Id header: {x_user_id}")
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")

    user = await get_user_by_id(session, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Unknown user")

    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    if not user.is_staff:
        logger.warning(f"User {user.id} tried a staff-only action")
        raise HTTPException(status_code=403, detail="Staff access required")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        logger.warning(f"User {user.id} tried an admin-only action")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
