"""
API Router
"""

from fastapi import APIRouter

from bazaar.api.health import router as health_router
from bazaar.social.api import router as social_router

api_router = APIRouter()

# Auth is enforced per route: relationship and profile reads accept guests
api_router.include_router(health_router)
api_router.include_router(social_router)
