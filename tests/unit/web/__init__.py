"""Unit tests for PlanCatalog web route modules.

Each route module has a corresponding test file:
    tests/unit/web/
    ├── test_app.py                   # App wiring, middleware
    ├── test_routes_bom.py            # Floorplan BOM routes
    ├── test_routes_catalog_sync.py   # Catalog upload and sync
    ├── test_routes_health.py         # Health check
    └── test_routes_placements.py     # Placement routes

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Mock database sessions and services
    - Test request/response validation
    - Test error to status code mapping
"""
