"""
Services layer for business logic.

This package contains service classes that handle business logic
and coordinate between different layers of the application.
"""

from .catalog_service import CatalogService
from .garden_service import GardenService
from .inventory_service import CurrencyGateway, DatabaseInventoryGateway, InventoryGateway
from .lifecycle_service import LifecycleService

__all__ = [
    "CatalogService",
    "CurrencyGateway",
    "DatabaseInventoryGateway",
    "GardenService",
    "InventoryGateway",
    "LifecycleService",
]
