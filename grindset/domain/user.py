"""User domain models."""

from pydantic import BaseModel, Field


class User(BaseModel):
    """User data transfer object."""

    id: str = Field(..., description="Unique user ID")
    username: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Email address, unique per user")
    avatar: str = Field(default="", description="Avatar URL")
