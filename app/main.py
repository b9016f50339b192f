"""FastAPI application entry point"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from app.api.endpoints import documents, health, search, topics
from app.api.endpoints import settings as settings_router
from app.database.session import engine
from app.database.base import Base
from app.config import settings
from app.utils.logger import setup_logging
from app.exceptions import CortexException
from app.rag.config import rag_config
from app.schemas.response import ErrorResponse
from app import models  # noqa: F401  registers all tables on Base.metadata

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    - Startup: Initialize database tables
    - Shutdown: log only
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(
        f"Builtin LLM: {settings.BUILTIN_LLM_MODEL}, "
        f"embedding: {settings.BUILTIN_EMBEDDING_MODEL} ({settings.BUILTIN_EMBEDDING_DIMENSIONS} dims)"
    )
    logger.info(
        f"Chunking {rag_config.chunk_min_size}-{rag_config.chunk_max_size} chars, "
        f"merge batches {rag_config.merge_batch_min}-{rag_config.merge_batch_max}"
    )

    # Create database tables
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")
    except Exception as e:
        logger.error(f"Database initialization error: {str(e)}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Document chunking, topic extraction, semantic merging and retrieval",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(documents.router, prefix="/api", tags=["documents"])
app.include_router(topics.router, prefix="/api", tags=["topics"])
app.include_router(search.router, prefix="/api", tags=["search"])
app.include_router(settings_router.router, prefix="/api", tags=["settings"])


# Exception handlers
@app.exception_handler(CortexException)
async def cortex_exception_handler(request: Request, exc: CortexException):
    """Handle pipeline exceptions not translated by an endpoint"""
    logger.error(f"Pipeline exception: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=exc.__class__.__name__,
            detail=str(exc),
            category=getattr(exc, "category", None)
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="InternalServerError",
            detail="An unexpected error occurred"
        ).model_dump()
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
