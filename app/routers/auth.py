import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.deps import unauthorized
from app.core.rate_limit import limiter
from app.core.redis import (
    blacklist_token,
    clear_login_failures,
    is_blacklisted,
    is_locked_out,
    record_login_failure,
)
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    seconds_until_expiry,
    token_subject,
    verify_password,
)
from app.models.user import User
from app.routers.categories import default_categories_for
from app.schemas.user import TokenResponse, UserCreate, UserLogin, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def _issue_tokens(response: Response, user: User) -> TokenResponse:
    """Set both auth cookies and return the access token in the body as well."""
    access_token = create_access_token(user.id)
    cookie_opts = {
        "httponly": True,
        # lax in development so the frontend on another localhost port still sends them
        "secure": not settings.is_development,
        "samesite": "lax" if settings.is_development else "strict",
        "path": "/",
    }
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=settings.access_token_expire_minutes * 60,
        **cookie_opts,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        create_refresh_token(user.id),
        max_age=settings.refresh_token_expire_days * 86400,
        **cookie_opts,
    )
    return TokenResponse(access_token=access_token, user=UserResponse.model_validate(user))


async def _revoke(claims: dict) -> None:
    if claims.get("jti"):
        await blacklist_token(claims["jti"], seconds_until_expiry(claims))


@router.post("/register", response_model=UserResponse, status_code=201)
@limiter.limit("5/hour")
async def register(request: Request, payload: UserCreate, db: AsyncSession = Depends(get_db)):
    taken = await db.execute(
        select(User.username, User.email).where(
            or_(User.username == payload.username, User.email == payload.email)
        )
    )
    clash = taken.first()
    if clash is not None:
        detail = "Username already taken" if clash.username == payload.username else "Email already registered"
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    user = User(
        username=payload.username,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        phone=payload.phone,
    )
    db.add(user)
    await db.flush()

    db.add_all(default_categories_for(user.id))
    await db.flush()
    await db.refresh(user)
    logger.info("Registered user %s with default categories", user.id)
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute;30/hour")
async def login(
    request: Request,
    payload: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    if await is_locked_out(payload.username):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                "Account temporarily locked due to too many failed attempts. "
                f"Try again in {settings.login_lockout_minutes} minutes."
            ),
        )

    result = await db.execute(
        select(User).where(or_(User.username == payload.username, User.email == payload.username))
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(payload.password, user.hashed_password):
        # Unknown logins are counted as well
        attempts = await record_login_failure(payload.username)
        logger.info("Failed login for %r (%d in window)", payload.username, attempts)
        raise unauthorized("Incorrect username or password")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    await clear_login_failures(payload.username)
    return _issue_tokens(response, user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Exchange the refresh cookie for a fresh token pair; the old refresh token is revoked."""
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise unauthorized("No refresh token")

    claims = decode_token(token, "refresh")
    user_id = token_subject(claims) if claims else None
    if user_id is None:
        raise unauthorized("Invalid refresh token")
    if claims.get("jti") and await is_blacklisted(claims["jti"]):
        raise unauthorized("Token has been revoked")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise unauthorized("User not found or inactive")

    await _revoke(claims)
    return _issue_tokens(response, user)


@router.post("/logout", status_code=204)
async def logout(request: Request, response: Response):
    token = request.cookies.get(REFRESH_COOKIE)
    claims = decode_token(token, "refresh") if token else None
    if claims:
        await _revoke(claims)

    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")
