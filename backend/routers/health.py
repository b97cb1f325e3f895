"""
Health & Configuration Status

Endpoints:
- GET /api - Service banner
- GET /api/health - Database + configuration check (503 when the database is down)
- GET /api/health/ready - Readiness probe
- GET /api/health/live - Liveness probe (no dependency checks)
- GET /api/config/status - Which variables are set (never their values)
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from config import get_settings, validate_environment
from database import check_connection

router = APIRouter(tags=["Health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def root():
    settings = get_settings()
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health")
async def health_check():
    settings = get_settings()
    env_status = validate_environment()
    database_up = await check_connection()

    body = {
        "status": "healthy" if database_up else "unhealthy",
        "timestamp": _now(),
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {
            "database": {"status": "connected" if database_up else "disconnected", "type": "postgresql"},
            "configuration": {
                "status": "valid" if env_status["valid"] else "invalid",
                "warnings": len(env_status["warnings"]),
                "errors": len(env_status["errors"]),
            },
        },
    }

    if not database_up:
        raise HTTPException(status_code=503, detail=body)
    return body


@router.get("/health/ready")
async def readiness_check():
    if not await check_connection():
        raise HTTPException(status_code=503, detail={"status": "not_ready"})
    return {"status": "ready", "timestamp": _now()}


@router.get("/health/live")
async def liveness_check():
    return {"status": "alive", "timestamp": _now()}


@router.get("/config/status")
async def config_status():
    settings = get_settings()
    env_status = validate_environment()
    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.debug_enabled,
        "cors_origins_count": len(settings.cors_origins_list),
        "configuration_valid": env_status["valid"],
        "warnings": env_status["warnings"],
        "variables": env_status["variables"],
        "errors": ["Hidden in production"] if settings.is_production else env_status["errors"],
    }
