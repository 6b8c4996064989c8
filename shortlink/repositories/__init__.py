"""Repository layer for the link service.

Repository classes abstract database operations and keep SQL out of the
service layer.
"""

from shortlink.repositories.base import (
    BaseRepository,
    DuplicateEntityError,
    EntityAccessError,
    EntityNotFoundError,
    RepositoryError,
)
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkFilter, LinkRepository, SortOrder

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "EntityNotFoundError",
    "EntityAccessError",
    "DuplicateEntityError",
    "LinkRepository",
    "LinkFilter",
    "SortOrder",
    "ClickRepository",
]
