"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Authentication is applied at the include_router level using
FastAPI's dependencies parameter. Authorization (which role may do
what) is declared per route with require("capability") from
tnkr.auth.policy. Health and auth routers are open.
"""

from fastapi import APIRouter, Depends

from tnkr.api.auth import router as auth_router
from tnkr.api.chat import router as chat_router
from tnkr.api.health import router as health_router
from tnkr.api.requests import router as requests_router
from tnkr.api.technicians import router as technicians_router
from tnkr.api.users import router as users_router
from tnkr.auth.dependencies import get_current_user

# All protected routers require a valid JWT
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes (/auth/me checks the token itself)
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(requests_router, tags=["requests"], dependencies=_auth)
api_router.include_router(technicians_router, tags=["technicians"], dependencies=_auth)
api_router.include_router(chat_router, tags=["chat"], dependencies=_auth)
