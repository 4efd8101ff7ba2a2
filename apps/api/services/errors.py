"""Domain error taxonomy for collections and enrichment."""

from __future__ import annotations


class CollectionsError(RuntimeError):
    """Base class for errors raised by the collections core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CollectionsError):
    """Client-correctable input problem (bad visibility, disallowed scheme...)."""


class AuthorizationError(CollectionsError):
    """Actor can see the target but lacks rights for the operation."""

    def __init__(self, message: str = "user not authorized to perform that action") -> None:
        super().__init__(message)


class NotFoundError(CollectionsError):
    """Target is absent, soft-deleted, or concealed from the actor."""


class TransientFetchError(CollectionsError):
    """Remote fetch failed; raised inside the enrichment worker only."""
