"""
Authentication schemas.

Users are managed by an external identity provider; the API only sees the
claims of a verified bearer token.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserInfo(BaseModel):
    """Authenticated caller."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "email": "user@example.com",
            }
        }
    )

    id: str = Field(..., min_length=1, description="User id (the token's ``sub`` claim)")
    email: str | None = Field(default=None, description="User email address, when the token carries one")
