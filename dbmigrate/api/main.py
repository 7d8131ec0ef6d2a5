"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..exceptions import ConfigurationError, ConnectorError, UnsupportedDatabaseError
from .dependencies import shutdown_job_manager
from .routes import connect, discover, mapping, migrate, preview, schema

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_job_manager()


app = FastAPI(
    title="dbmigrate API",
    description="API for migrating data between databases",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.environ.get("DBMIGRATE_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": str(exc), "errors": exc.errors},
    )


@app.exception_handler(UnsupportedDatabaseError)
async def unsupported_database_handler(request: Request, exc: UnsupportedDatabaseError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.exception_handler(ConnectorError)
async def connector_error_handler(request: Request, exc: ConnectorError):
    logger.error(f"Connector error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})


# Include routers
app.include_router(connect.router, prefix="/api/connect", tags=["connect"])
app.include_router(discover.router, prefix="/api/discover", tags=["discover"])
app.include_router(schema.router, prefix="/api/schema", tags=["schema"])
app.include_router(preview.router, prefix="/api/preview", tags=["preview"])
app.include_router(mapping.router, prefix="/api/mapping", tags=["mapping"])
app.include_router(migrate.router, prefix="/api/migrate", tags=["migrate"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
