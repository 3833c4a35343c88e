"""
Health check endpoints with dependency monitoring

Provides two endpoints:
- GET /api/v1/health - Basic health check
- GET /api/v1/health/dependencies - Freshdesk and storage status
"""
import asyncio
import time
from datetime import datetime
from typing import Dict, Optional

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from support_intel.pipeline import Pipeline, get_pipeline
from support_intel.utils.datetime_utils import utc_now
from support_intel.utils.errors import AppError
from support_intel.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/health", tags=["health"])

APP_VERSION = "1.0.0"

# Application start time for uptime calculation
APP_START_TIME = time.time()

CHECK_TIMEOUT_SECONDS = 5.0


class HealthResponse(BaseModel):
    """Basic health check response"""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=utc_now, description="Check timestamp")
    version: str = Field(..., description="Application version")
    uptime_seconds: float = Field(..., description="Application uptime in seconds")


class DependencyStatus(BaseModel):
    """Status of a single dependency"""
    name: str = Field(..., description="Dependency name")
    status: str = Field(..., description="Status: healthy, degraded, unhealthy")
    latency_ms: Optional[float] = Field(None, description="Response latency in milliseconds")
    error_message: Optional[str] = Field(None, description="Error message if unhealthy")


class DependencyHealth(BaseModel):
    """Dependency health check response"""
    overall_status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    dependencies: Dict[str, DependencyStatus] = Field(..., description="Individual dependency statuses")
    checked_at: datetime = Field(default_factory=utc_now, description="Check timestamp")


async def check_freshdesk(pipeline: Pipeline) -> DependencyStatus:
    """Single unretried request to the Freshdesk groups endpoint"""
    try:
        credentials = pipeline.client.credentials.current()
    except AppError as e:
        return DependencyStatus(name="freshdesk", status="degraded", error_message=e.message)

    start = time.time()
    try:
        async with httpx.AsyncClient(timeout=CHECK_TIMEOUT_SECONDS, transport=pipeline.client.transport) as client:
            response = await client.get(
                f"{credentials.base_url}/groups",
                params={"per_page": 1},
                auth=(credentials.api_key, "X")
            )
    except httpx.HTTPError as e:
        logger.error(f"Freshdesk health check failed: {e}")
        return DependencyStatus(name="freshdesk", status="unhealthy", error_message=str(e))

    latency = round((time.time() - start) * 1000, 2)
    if response.status_code == 429:
        return DependencyStatus(name="freshdesk", status="degraded", latency_ms=latency, error_message="Rate limited")
    if not response.is_success:
        return DependencyStatus(
            name="freshdesk",
            status="unhealthy",
            latency_ms=latency,
            error_message=f"HTTP {response.status_code}"
        )
    return DependencyStatus(name="freshdesk", status="healthy", latency_ms=latency)


async def check_storage(pipeline: Pipeline) -> DependencyStatus:
    """Point lookup against the system config store"""
    start = time.time()
    try:
        await asyncio.wait_for(
            asyncio.to_thread(pipeline.sync_service.current_watermark),
            timeout=CHECK_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        logger.error("Storage health check timed out")
        return DependencyStatus(
            name="storage",
            status="unhealthy",
            error_message=f"Request timed out after {CHECK_TIMEOUT_SECONDS:.0f} seconds"
        )
    except AppError as e:
        logger.error(f"Storage health check failed: {e}")
        return DependencyStatus(name="storage", status="unhealthy", error_message=e.message)

    return DependencyStatus(name="storage", status="healthy", latency_ms=round((time.time() - start) * 1000, 2))


@router.get("", response_model=HealthResponse)
async def health_check():
    """Basic liveness check"""
    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        uptime_seconds=round(time.time() - APP_START_TIME, 2)
    )


@router.get("/dependencies", response_model=DependencyHealth)
async def dependency_health(pipeline: Pipeline = Depends(get_pipeline)):
    """
    Check Freshdesk and storage connectivity

    Overall status is the worst individual status.
    """
    freshdesk, storage = await asyncio.gather(check_freshdesk(pipeline), check_storage(pipeline))
    dependencies = {"freshdesk": freshdesk, "storage": storage}

    statuses = {d.status for d in dependencies.values()}
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return DependencyHealth(overall_status=overall, dependencies=dependencies)
