"""
FastAPI Application Entry Point
===============================
Main application setup with CORS, routers, and lifecycle management.

The extraction agent is created once at startup and deleted at shutdown.

Usage:
    uvicorn main:app --reload --port 8000
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import logging
import time

from config import settings
from services.agent_manager import AgentLifecycleManager, load_prompt
from services.document_service import DocumentService
from services.errors import AnalysisTimeoutError, BackendError, ConfigurationError
from services.providers import create_agent_backend, create_file_store, create_token_provider

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


async def close_clients(clients):
    """Close remote clients, newest first; failures are logged, never raised."""
    for client in reversed(clients):
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"Client cleanup skipped: {e}")


# =============================================================================
# APPLICATION LIFESPAN (Startup/Shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Creates the remote clients and the extraction agent on startup,
    deletes the agent and closes clients on shutdown.
    """
    # === STARTUP ===
    logger.info("=" * 50)
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"   Environment: {settings.APP_ENV}")
    logger.info(f"   Debug: {settings.DEBUG}")
    logger.info("=" * 50)

    clients = []
    try:
        instructions = load_prompt(settings.SYSTEM_PROMPT_PATH)
        tokens = create_token_provider(settings)
        clients.append(tokens)
        backend = create_agent_backend(settings, tokens)
        clients.append(backend)
        file_store = create_file_store(settings, tokens)
        clients.append(file_store)

        agents = AgentLifecycleManager(backend)
        await agents.initialize(settings.FOUNDRY_DEPLOYMENT_NAME, instructions)
    except ConfigurationError as e:
        logger.error(f"Startup configuration error: {e}")
        await close_clients(clients)
        raise
    except Exception as e:
        logger.error(f"Agent creation failed: {e}")
        await close_clients(clients)
        raise

    app.state.agents = agents
    app.state.document_service = DocumentService(backend, agents)
    app.state.file_store = file_store
    logger.info(f"Agent ready: {agents.handle.id} ({agents.agent_name})")
    logger.info("Application startup complete")
    logger.info(f"API Docs: http://localhost:{settings.BACKEND_PORT}/docs")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down application...")

    await agents.teardown()

    await close_clients(clients)

    app.state.document_service = None
    app.state.file_store = None
    logger.info("Application shutdown complete")


# =============================================================================
# OPENAPI TAGS DOCUMENTATION
# =============================================================================

tags_metadata = [
    {
        "name": "Health",
        "description": "Health check and system status endpoints.",
    },
    {
        "name": "Document Analyzer",
        "description": "Extract structured JSON from SharePoint / OneDrive documents with an LLM agent.",
    },
]


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## Document Analyzer API

    Extract structured JSON from drive documents using an LLM agent.

    ### Workflow
    1. Submit a drive ID, item ID, JSON schema and instructions
    2. The document is downloaded and uploaded to the agent as a temporary file
    3. The agent run is polled to completion
    4. The agent's JSON reply is returned; temporary resources are removed
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE
# =============================================================================

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Request duration in seconds"""
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.4f}"
    return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report which DocumentInfo fields were missing or malformed"""
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid document analysis request",
            "errors": errors
        }
    )


@app.exception_handler(BackendError)
async def backend_exception_handler(request: Request, exc: BackendError):
    """Backend failures that escaped a router"""
    logger.error(f"Backend error ({exc.kind.value}, {exc.service}): {exc}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND if exc.is_source_not_found else status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": "The specified document was not found." if exc.is_source_not_found else "Document analysis failed.",
            "error_kind": exc.kind.value,
            "call_id": exc.call_id
        }
    )


@app.exception_handler(AnalysisTimeoutError)
async def timeout_exception_handler(request: Request, exc: AnalysisTimeoutError):
    """Agent runs that did not finish in time"""
    logger.error(f"Analysis timeout: {exc}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={
            "detail": "Document analysis timed out.",
            "error_kind": "timeout",
            "call_id": exc.call_id
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.exception(f"An error of type {type(exc).__name__} occurred while processing the request: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An unknown error occurred while processing the document.",
            "message": str(exc) if settings.DEBUG else "An unexpected error occurred"
        }
    )


# =============================================================================
# ROOT ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
async def root():
    """Service name and entry points"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "analyzer": "/api/documentanalyzer",
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint.
    Reports whether the extraction agent exists and the backends are configured.
    """
    health = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.APP_ENV,
        "debug": settings.DEBUG,
        "checks": {}
    }

    service = getattr(request.app.state, "document_service", None)
    if service is not None:
        health["checks"]["agent"] = service.get_status()["agent"]
        if not health["checks"]["agent"]["initialized"]:
            health["status"] = "degraded"
    else:
        health["checks"]["agent"] = {"status": "error", "message": "not initialized"}
        health["status"] = "degraded"

    health["checks"]["configuration"] = {
        "foundry_endpoint": bool(settings.FOUNDRY_ENDPOINT),
        "deployment": settings.FOUNDRY_DEPLOYMENT_NAME or None,
        "system_prompt": settings.SYSTEM_PROMPT_PATH.is_file()
    }

    return health


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

from api.router import api_router
app.include_router(api_router, prefix="/api")


# =============================================================================
# DEV ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
