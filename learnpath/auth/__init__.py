"""Caller identity: bearer token validation."""

from learnpath.auth.dependencies import CurrentUser, get_current_user
from learnpath.auth.schemas import AuthenticatedUser
from learnpath.auth.security import create_access_token, decode_access_token


__all__ = [
    "AuthenticatedUser",
    "CurrentUser",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
]
