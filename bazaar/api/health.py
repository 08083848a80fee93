"""
Health check endpoints
"""

from fastapi import APIRouter

from bazaar.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "env": settings.env}
