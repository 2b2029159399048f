"""
Central API Router
==================
Combines all sub-routers into a single API router with the /api prefix.

Usage in main.py:
    from api.router import api_router
    app.include_router(api_router, prefix="/api")

Router Structure:
    /api
    └── /documentanalyzer   - Drive document analysis
"""

from fastapi import APIRouter

from api.analyzer import router as analyzer_router

# =============================================================================
# MAIN API ROUTER
# =============================================================================

api_router = APIRouter()

# -----------------------------------------------------------------------------
# Document Analyzer Router
# Endpoints:
#   POST   /documentanalyzer          - Analyze a drive document
#   GET    /documentanalyzer/status   - Analyzer status
# -----------------------------------------------------------------------------
api_router.include_router(
    analyzer_router,
    prefix="/documentanalyzer",
    tags=["Document Analyzer"],
    responses={
        404: {"description": "Document not found"},
        502: {"description": "Document analysis failed"}
    }
)


# =============================================================================
# API INFO ENDPOINT (Always Available)
# =============================================================================

@api_router.get(
    "/",
    tags=["API Info"],
    summary="API Information",
    description="Returns information about the API and available endpoints."
)
async def api_info():
    """Returns API information and available endpoint groups."""
    return {
        "api_version": "v1",
        "title": "Document Analyzer API",
        "description": "Structured data extraction from drive documents",
        "endpoints": {
            "documentanalyzer": {
                "prefix": "/api/documentanalyzer",
                "description": "Submit a drive item for JSON extraction"
            }
        },
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        }
    }
