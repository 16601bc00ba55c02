"""Async client layer: API wrapper plus the auth and data state holders."""

from client.api import ShelfApiClient, ShelfApiError
from client.auth_context import AuthContext, AuthSession, AuthUser
from client.data_context import DataContext

__all__ = [
    "AuthContext",
    "AuthSession",
    "AuthUser",
    "DataContext",
    "ShelfApiClient",
    "ShelfApiError",
]
