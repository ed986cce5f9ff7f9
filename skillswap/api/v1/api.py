from fastapi import APIRouter
from ...core.config import get_settings
from .endpoints import auth, swaps, ratings, users

def build_router() -> APIRouter:
    settings = get_settings()
    router = APIRouter(prefix=settings.api_v1_prefix)

    # Include all endpoint routers
    router.include_router(auth.router)
    router.include_router(swaps.router)
    router.include_router(ratings.router)
    router.include_router(users.router)

    if settings.environment == "development":
        router.include_router(auth.dev_router)

    return router
