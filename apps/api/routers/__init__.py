"""Routers package."""

from . import (
    health,
    auth,
    contents,
    books,
    locations,
    profile,
    map,
)
