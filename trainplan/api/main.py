"""
FastAPI Application

Main entry point for the training planner web API.
"""

from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from trainplan.api.routes import plans, readiness, validation
from trainplan.config import get_settings
from trainplan.errors import PersistenceError, RaceWindowError, TrainPlanError
from trainplan.logging_config import setup_logger

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger(level=settings.log_level, log_file=settings.log_file)
    logger.info("Training planner API started")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Endurance Training Planner API",
    description="Week-by-week training plan synthesis with rule-checked weeks and readiness scoring",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(plans.router, prefix="/api", tags=["Plans"])
app.include_router(validation.router, prefix="/api", tags=["Validation"])
app.include_router(readiness.router, prefix="/api", tags=["Readiness"])


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint - API information."""
    return {
        "name": "Endurance Training Planner API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "trainplan-api"}


# Global exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "message": str(exc.detail)},
    )


@app.exception_handler(RaceWindowError)
async def race_window_handler(request, exc: RaceWindowError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Race Window",
            "message": str(exc),
            "total_weeks": exc.total_weeks,
            "min_weeks": exc.min_weeks,
            "max_weeks": exc.max_weeks,
        },
    )


@app.exception_handler(PersistenceError)
async def persistence_handler(request, exc: PersistenceError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Storage Unavailable", "message": str(exc)},
    )


@app.exception_handler(TrainPlanError)
async def train_plan_error_handler(request, exc: TrainPlanError):
    """Handle domain errors that escape a route."""
    logger.error(f"Unhandled training plan error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": type(exc).__name__, "message": str(exc)},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "trainplan.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
