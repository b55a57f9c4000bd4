from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import decode_token, token_subject
from app.models.user import User

optional_security = HTTPBearer(auto_error=False)


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
) -> User:
    """
    Resolve the authenticated user from the access token.

    The token is read from the ``Authorization: Bearer`` header first, then
    from the ``access_token`` httpOnly cookie set at login.
    """
    token = credentials.credentials if credentials else request.cookies.get("access_token")
    if not token:
        raise unauthorized("Not authenticated")

    claims = decode_token(token, "access")
    if claims is None:
        raise unauthorized("Invalid token")

    user_id = token_subject(claims)
    if user_id is None:
        raise unauthorized("Invalid user ID in token")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise unauthorized("User not found or inactive")
    return user
