"""Health check endpoints."""

import asyncio
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
from fastapi import APIRouter, status
from sqlalchemy import func, select

from devicelab.config import settings
from devicelab.db.session import AsyncSessionLocal
from devicelab.models.test_run import TestRun
from devicelab.services.storage_service import storage_service

router = APIRouter()


async def _probe(check: Callable[[], Awaitable[str]]) -> dict[str, Any]:
    # Health checks report failures instead of raising them.
    try:
        return {"status": "healthy", "message": await check()}
    except Exception as e:
        return {"status": "unhealthy", "message": str(e)}


async def check_database() -> dict[str, Any]:
    """Check that the test run store answers queries."""

    async def count_test_runs() -> str:
        async with AsyncSessionLocal() as db:
            count = await db.scalar(select(func.count()).select_from(TestRun))
        return f"{count} cached test runs"

    return await _probe(count_test_runs)


async def check_storage() -> dict[str, Any]:
    """Check that the blob store holding APKs and results is reachable."""

    async def list_buckets() -> str:
        await storage_service.check_connection()
        return f"Storage root {storage_service.root.uri} reachable"

    return await _probe(list_buckets)


async def check_redis() -> dict[str, Any]:
    """Check the Celery broker."""

    async def ping() -> str:
        client = redis.from_url(settings.REDIS_URL)
        try:
            await client.ping()
        finally:
            await client.aclose()
        return "Broker reachable"

    return await _probe(ping)


@router.get("", status_code=status.HTTP_200_OK)
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/detailed", status_code=status.HTTP_200_OK)
async def detailed_health_check() -> dict[str, Any]:
    """Status of the test run store, blob storage and task broker."""
    components = dict(
        zip(
            ("database", "storage", "redis"),
            await asyncio.gather(check_database(), check_storage(), check_redis()),
        )
    )
    all_healthy = all(component["status"] == "healthy" for component in components.values())
    return {
        "status": "healthy" if all_healthy else "degraded",
        "components": components,
    }
