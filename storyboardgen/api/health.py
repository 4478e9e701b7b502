"""
Health Check Endpoints
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storyboardgen.core.config import settings

router = APIRouter()


def missing_configuration():
    """Names of the settings generation cannot run without."""
    required = {
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_SERVICE_KEY": settings.supabase_service_key,
        "GEMINI_API_KEY": settings.gemini_api_key,
        "OUTPUT_BUCKET": settings.output_bucket,
    }
    return [name for name, value in required.items() if not value]


@router.get("/health")
async def health_check():
    """Liveness: the process is serving."""
    return {"status": "healthy", "service": "storyboardgen-api"}


@router.get("/ready")
async def readiness_check():
    """Readiness: the Supabase project and the image model are configured."""
    missing = missing_configuration()
    if missing:
        return JSONResponse(status_code=503, content={"status": "not_ready", "missing": missing})
    return {"status": "ready", "environment": settings.environment}
