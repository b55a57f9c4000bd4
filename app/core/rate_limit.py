from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# One limiter for the whole app: the middleware applies ``rate_limit_default``
# to every route and ``@limiter.limit`` adds stricter per-route limits.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    storage_uri=settings.limiter_storage_uri,
    enabled=settings.rate_limit_enabled,
)
