"""
StoryboardGen FastAPI Backend

Main application entry point with ASGI server.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import uvicorn

from storyboardgen.core.config import settings
from storyboardgen.core.logging import setup_logging, get_logger
from storyboardgen.api import generation, usage, projects, caption_settings, webhooks, health
from storyboardgen.api.deps import limiter

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging(settings.log_level)
    logger.info(f"Starting StoryboardGen API ({settings.environment})...")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set - generation requests will fail")
    yield
    logger.info("Shutting down StoryboardGen API...")


app = FastAPI(
    title="StoryboardGen API",
    description="Consistent-character storyboard generation backend",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(generation.router, prefix="/api/generation", tags=["Generation"])
app.include_router(usage.router, prefix="/api/usage", tags=["Usage"])
app.include_router(projects.router, prefix="/api/projects", tags=["Projects"])
app.include_router(caption_settings.router, prefix="/api/caption-settings", tags=["Caption Settings"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "StoryboardGen API",
        "version": "1.0.0",
        "status": "running"
    }


def run():
    """Run the server."""
    uvicorn.run(
        "storyboardgen.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
