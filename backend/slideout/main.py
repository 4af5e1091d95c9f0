"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .api.routes import analyze, generate, leveling

# Get settings
settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Procedural level generator for the tile-sliding puzzle: generation, board analysis and level curves",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(generate.router)
app.include_router(analyze.router)
app.include_router(leveling.router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Slideout Level Generator API",
        "endpoints": {
            "generate": "/api/generate",
            "analyze": "/api/analyze",
            "hint": "/api/analyze/hint",
            "leveling_config": "/api/leveling/config",
            "leveling_level": "/api/leveling/level/{level_number}",
            "leveling_progression": "/api/leveling/progression",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "strategy": settings.generator_strategy,
    }


if __name__ == "__main__":
    import os
    import uvicorn

    # reload mode (debug) doesn't support workers
    worker_count = 1 if settings.debug else min(4, os.cpu_count() or 4)

    uvicorn.run(
        "slideout.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=worker_count,
    )
