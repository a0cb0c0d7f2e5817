"""
Main FastAPI application.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalogue.auth_client import SupabaseAuthClient
from catalogue.config import settings
from catalogue.database import create_tables
from catalogue.errors import CatalogueError
from catalogue.extraction import GeminiExtractionClient
from catalogue.routers import auth, service
from catalogue.storage_client import SupabaseStorageClient


def configure_logging(level: str) -> None:
    """Send every module's log records to stdout in one format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )


configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and the external clients; close the clients on shutdown."""
    # Startup
    logger.info("Creating database tables...")
    await create_tables()
    logger.info("Database ready")

    app.state.auth_client = SupabaseAuthClient(
        settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, timeout=settings.HTTP_TIMEOUT
    )
    app.state.storage_client = SupabaseStorageClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        bucket=settings.STORAGE_BUCKET,
        timeout=settings.HTTP_TIMEOUT,
    )
    app.state.extraction_client = GeminiExtractionClient(
        settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        base_url=settings.GEMINI_API_BASE,
        timeout=settings.HTTP_TIMEOUT,
    )
    logger.info("Using model %s, storage bucket %s", settings.GEMINI_MODEL, settings.STORAGE_BUCKET)
    logger.info("Server started successfully")

    yield

    # Shutdown
    logger.info("Server shutting down...")
    await app.state.extraction_client.close()
    await app.state.storage_client.close()
    await app.state.auth_client.close()


# Create FastAPI app
app = FastAPI(
    title="Product Catalogue API",
    description="Extracts product data from images and stores it in the catalogue",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CatalogueError)
async def catalogue_error_handler(request: Request, exc: CatalogueError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies are a 400 with the usual error shape."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "detailedError": str(exc.errors())},
    )


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(service.router, prefix="/service", tags=["service"])


@app.get("/")
async def root() -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Product Catalogue API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check() -> dict:
    """Detailed health check."""
    return {"status": "healthy", "model": settings.GEMINI_MODEL, "bucket": settings.STORAGE_BUCKET}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "catalogue.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG
    )
