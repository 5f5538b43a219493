"""API v1 routers."""

from fastapi import APIRouter

from devicelab.api.v1 import health, runs

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(runs.router, prefix="/runs", tags=["runs"])
