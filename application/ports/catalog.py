"""Application-owned book catalog port.

The order core only needs a price/title snapshot per book; the catalog
itself is owned by another service.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.orders import BookSnapshot


@runtime_checkable
class BookCatalog(Protocol):
    async def get_book(self, book_id: str) -> BookSnapshot:
        """Raises BookNotFoundException when the book does not exist."""
        ...
