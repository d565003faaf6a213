# This file makes the 'routes' directory a Python package.

from fastapi import APIRouter

from .learning_routes import router as learning_router

# Main API router; every feature router is mounted under the /api/v1 prefix
api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(learning_router)

__all__ = [
    "api_router_v1" # Export the main router
]
