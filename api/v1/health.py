"""Health and database connectivity check endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.deps import get_db

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and environment information
    """
    return {
        "status": "ok",
        "env": config.settings.ENV,
    }


@router.get("/health/db")
async def db_check(db: AsyncSession = Depends(get_db)):
    """
    Check database connectivity.

    Raises:
        HTTPException: If database connection fails
    """
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return {"db": "ok"}
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Database connection failed: {str(e)}",
        )
