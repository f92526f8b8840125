"""
Club Events Participation & Feedback Service - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from clubhub.core.config import settings
from clubhub.core.db import engine, Base
from clubhub.core.errors import DomainError, StoreError
from clubhub.api import routes_analytics, routes_events, routes_feedback, ws
from clubhub.utils.responses import domain_error_response, error_response, field_errors
import clubhub.models  # noqa: F401  registers the tables on Base

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if not settings.USE_FIREBASE:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Club Events Participation & Feedback Service",
    description="Event registration, waitlists, attendance and feedback analytics for clubs",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return domain_error_response(exc)

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.message)
    return error_response(message="Internal storage error", error_code=exc.kind, status_code=500)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(
        message="Invalid input",
        error_code="validation_error",
        details={"errors": field_errors(exc.errors())},
        status_code=422
    )

# Include routers
app.include_router(routes_events.router, tags=["events"])
app.include_router(routes_feedback.router, tags=["feedback"])
app.include_router(routes_analytics.router, tags=["analytics"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

@app.get("/health")
async def health():
    return {"status": "ok"}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
