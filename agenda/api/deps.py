from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.db import get_session
from agenda.core.security import decode_access_token
from agenda.models.business import Business
from agenda.models.user import User

security = HTTPBearer(auto_error=False)


def refresh_header(x_refresh_token: str | None = Header(default=None, alias="X-Refresh-Token")) -> str | None:
    """Extract X-Refresh-Token header for logout/refresh endpoints."""
    return x_refresh_token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    session: AsyncSession = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid authorization header")
    user_id = decode_access_token(credentials.credentials)
    if not user_id or not user_id.isdigit():
        raise _unauthorized("Invalid or expired token")
    user = await session.get(User, int(user_id))
    if not user:
        raise _unauthorized("User not found")
    return user


async def get_business_or_404(
    business_id: int,
    session: AsyncSession = Depends(get_session),
) -> Business:
    business = await session.get(Business, business_id)
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return business


async def get_owned_business(
    business: Business = Depends(get_business_or_404),
    current_user: User = Depends(get_current_user),
) -> Business:
    if business.owner_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the business owner can do this",
        )
    return business
