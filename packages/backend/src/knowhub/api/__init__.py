"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. Health stays open for load balancers.
"""

from fastapi import APIRouter, Depends

from knowhub.api.events import router as events_router
from knowhub.api.health import router as health_router
from knowhub.auth.dependencies import get_current_user

_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes — require valid JWT
api_router.include_router(events_router, tags=["events"], dependencies=_auth)
