"""
Pydantic schemas for the Video API.

Schemas define the shape of data flowing through the API:
- Request schemas: what the client sends us
- Response schemas: what we send back

These are SEPARATE from SQLAlchemy models on purpose.
Models = database shape. Schemas = API shape.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


# --- Request Schemas ---

class VideoCreateRequest(BaseModel):
    """Draft video record, before any files are attached."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""


# --- Response Schemas ---

class VideoResponse(BaseModel):
    """What we return when a client asks about a video.

    video_url is always a presigned URL (or null) on the way out,
    never the raw "<bucket>,<key>" reference stored in the database.
    """
    id: UUID
    created_at: datetime
    updated_at: datetime
    title: str
    description: str
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    user_id: UUID

    model_config = {"from_attributes": True}
