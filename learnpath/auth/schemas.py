"""Pydantic schemas for caller identity."""

from uuid import UUID

from pydantic import BaseModel


class AuthenticatedUser(BaseModel):
    """Caller identity taken from a validated access token."""

    id: UUID
    email: str | None = None
    role: str | None = None
