"""PlanCatalog web route modules.

Each module exports a `router` object (APIRouter instance) included by
plancatalog.web.app.
"""

from plancatalog.web.routes import bom, catalog_sync, health, placements

__all__ = [
    "bom",
    "catalog_sync",
    "health",
    "placements",
]
