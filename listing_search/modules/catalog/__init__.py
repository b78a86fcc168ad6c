# Catalog source for the search pipeline

from .client import CatalogClient, CatalogError

__all__ = ["CatalogClient", "CatalogError"]
