"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter for routers that are fully private. Routers that
mix public and role-gated endpoints (auth, users, topics) guard per
route instead, so that a role guard, not the generic 401, answers an
unauthenticated call to an admin route.
"""

from fastapi import APIRouter, Depends

from peerconnect.api.auth import router as auth_router
from peerconnect.api.chat import router as chat_router
from peerconnect.api.groups import router as groups_router
from peerconnect.api.health import router as health_router
from peerconnect.api.meetings import router as meetings_router
from peerconnect.api.notifications import router as notifications_router
from peerconnect.api.resources import router as resources_router
from peerconnect.api.topics import router as topics_router
from peerconnect.api.uploads import router as uploads_router
from peerconnect.api.users import router as users_router
from peerconnect.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api")

# Open or per-route guarded
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(topics_router, tags=["topics"])

# Protected routes — require a valid access token
api_router.include_router(groups_router, tags=["groups"], dependencies=_auth)
api_router.include_router(meetings_router, tags=["meetings"], dependencies=_auth)
api_router.include_router(resources_router, tags=["resources"], dependencies=_auth)
api_router.include_router(notifications_router, tags=["notifications"], dependencies=_auth)
api_router.include_router(chat_router, tags=["chat"], dependencies=_auth)
api_router.include_router(uploads_router, tags=["uploads"], dependencies=_auth)
