"""
Admin endpoints for local development.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reset")
async def reset(db: AsyncSession = Depends(get_db)):
    """Wipe every user (and, by cascade, their videos and tokens).

    Only available when PLATFORM is "dev".
    """
    if settings.PLATFORM != "dev":
        raise HTTPException(status_code=403, detail="Reset is only allowed in dev environment.")

    await db.execute(delete(User))
    await db.commit()

    logger.warning("Database reset to initial state")
    return {"message": "Database reset to initial state"}
