"""Routers package."""

from . import (
    health,
    collections,
    collection_items,
)
