"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Learn: Auth is applied per route for products (reads are public, writes
require a token), so the products router is mounted without router-level
dependencies.
"""

from fastapi import APIRouter

from vitrine.api.health import router as health_router
from vitrine.api.products import router as products_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(products_router, tags=["products"])
