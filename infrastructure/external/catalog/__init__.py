"""Book catalog adapters."""
from .http_catalog import HttpBookCatalog

__all__ = ["HttpBookCatalog"]
