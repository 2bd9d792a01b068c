"""
StudyLoop - learning-cycle task engine: split workloads, mistake reviews and final checks.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager

from studyloop.database import init_db
from studyloop.routes import tasks, workloads, distributions
from studyloop.exceptions import register_exception_handlers
from studyloop.logging_config import setup_logging, get_logger

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting StudyLoop API...")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down StudyLoop API...")


app = FastAPI(
    title="StudyLoop",
    description="Learning-cycle task engine with mistake-driven reviews and automatic final checks",
    version="0.1.0",
    lifespan=lifespan,
)

# Register custom exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(workloads.router, prefix="/workloads", tags=["Workloads"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(distributions.router, prefix="/distributions", tags=["Distributions"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
