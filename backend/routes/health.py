"""
Health check endpoint.

Reports database connectivity and whether the app context (change feed,
backends, location client) has been built by the lifespan.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    context = getattr(request.app.state, "context", None)
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "database_connected": False,
                "error": str(e),
            },
        )
    return {
        "status": "healthy" if context is not None else "starting",
        "database_connected": True,
        "demo_mode": bool(context and context.local is not None),
        "feed": context.feed.get_status() if context is not None else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
