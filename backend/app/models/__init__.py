from app.models.models import (
    Base,
    RefreshToken,
    User,
    Video,
)

__all__ = [
    "Base",
    "User",
    "RefreshToken",
    "Video",
]
