"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from legacy_keeper.api.health import router as health_router
from legacy_keeper.api.workflows import router as workflows_router
from legacy_keeper.config import settings

app = FastAPI(
    title=settings.APP_NAME,
    description="Cognitive offboarding: find undocumented expertise and archive it before it leaves",
    version="0.1.0",
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(workflows_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic application info."""
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }
