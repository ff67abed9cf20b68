"""Health check endpoints."""

from fastapi import APIRouter

from colormunch import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check if the relay is running."""
    return {"status": "healthy", "message": "ColorMunch relay is running"}


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "ColorMunch Relay",
        "version": __version__,
        "description": "Reverse proxy for the Kuler themes API",
    }
