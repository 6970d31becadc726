"""
User model for authenticated callers.
"""

from typing import Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated user."""

    id: str = Field(..., min_length=1, description="User identity")
    email: Optional[str] = None
    display_name: Optional[str] = None
