"""
Academic Records API

Main FastAPI application exposing role-scoped grade management and
academic reports.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api import (
    reports_router,
    grades_router,
    assessments_router,
    assignments_router,
    classes_router,
    rules_router,
)


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --------------- Lifespan ---------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler: initialise the database on startup."""
    logger.info("Initializing database")
    init_db()
    logger.info("Database initialized")
    yield


# --------------- FastAPI app ---------------

app = FastAPI(
    title="Academic Records API",
    description="""
API for grades, assessments and academic reports of a school network.

## Roles
- **Admin**: network-wide access
- **Coordinator**: full access within their school
- **Teacher**: read access within their school; grades and assessments
  only for the classes they teach
- **Student**: their own grades and report card

Every request carries the authenticated user id in the `X-User-Id` header.
Denials return 403 with a machine-readable `code`.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler. Internal details are logged, not returned."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"message": "Internal error", "code": "INTERNAL_ERROR"}}
    )


# Include routers
app.include_router(reports_router)
app.include_router(grades_router)
app.include_router(assessments_router)
app.include_router(assignments_router)
app.include_router(classes_router)
app.include_router(rules_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API health check."""
    return {
        "status": "online",
        "service": "Academic Records API",
        "version": "1.0.0"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
