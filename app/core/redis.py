"""
Redis-backed auth state: revoked refresh tokens and failed-login counters.

Keys
────
  rt_blacklist:<jti>     "1", expires with the refresh token itself
  login_fails:<login>    failure count, expires ``login_lockout_minutes``
                         after the first failure in the window
"""
import redis.asyncio as aioredis

from app.core.config import settings

_client: aioredis.Redis | None = None

_BLACKLIST_PREFIX = "rt_blacklist:"
_FAIL_PREFIX = "login_fails:"


def get_redis() -> aioredis.Redis:
    global _client
    if _client is None:
        _client = aioredis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def _fail_key(login: str) -> str:
    # Logins are matched case-insensitively, so "Alice" and "alice" share a counter
    return f"{_FAIL_PREFIX}{login.strip().lower()}"


# ─── Refresh-token revocation ──────────────────────────────────────────────────

async def blacklist_token(jti: str, ttl_seconds: int) -> None:
    if ttl_seconds > 0:
        await get_redis().set(f"{_BLACKLIST_PREFIX}{jti}", "1", ex=ttl_seconds)


async def is_blacklisted(jti: str) -> bool:
    return bool(await get_redis().exists(f"{_BLACKLIST_PREFIX}{jti}"))


# ─── Login lockout ─────────────────────────────────────────────────────────────

async def record_login_failure(login: str) -> int:
    """Count one failed login; the window starts at the first failure. Returns the count."""
    key = _fail_key(login)
    async with get_redis().pipeline(transaction=True) as pipe:
        pipe.incr(key)
        pipe.expire(key, settings.login_lockout_minutes * 60, nx=True)
        count, _ = await pipe.execute()
    return int(count)


async def is_locked_out(login: str) -> bool:
    count = await get_redis().get(_fail_key(login))
    return count is not None and int(count) >= settings.login_max_attempts


async def clear_login_failures(login: str) -> None:
    await get_redis().delete(_fail_key(login))
