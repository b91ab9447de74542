"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, constants) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------
INVALID_CREDENTIALS_RESPONSE = HTTPException(
    status_code=401, detail="Email or password is incorrect"
)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from gamekeeper.api.routes.auth import router as auth_router  # noqa: E402
from gamekeeper.api.routes.games import router as games_router  # noqa: E402
from gamekeeper.api.routes.sessions import router as sessions_router  # noqa: E402
from gamekeeper.api.routes.friends import router as friends_router  # noqa: E402
from gamekeeper.api.routes.users import router as users_router  # noqa: E402
from gamekeeper.api.routes.profile import router as profile_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(games_router)
router.include_router(sessions_router)
router.include_router(friends_router)
router.include_router(users_router)
router.include_router(profile_router)
