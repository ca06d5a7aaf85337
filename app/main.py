import logging
import os

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.db.db import SessionLocal, init_db
from app.routes import (
    merchants_router,
    features_router,
    recommendation_router,
    categories_router,
)
from app.services import ServiceError, seed_merchant_knowledge

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler - runs on startup and shutdown"""
    # Startup
    init_db()
    with SessionLocal() as db:
        seed_merchant_knowledge(db)
    yield
    # Shutdown


app = FastAPI(
    title="CardMatch API",
    version="0.1.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# CORS middleware - MUST be added first before other middlewares
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, message: str, details: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details,
            }
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):  # type: ignore[override]
    """Handle validation errors with HTTP 400 to keep one error status for bad payloads."""
    return _error_response(400, "VALIDATION_ERROR", "Invalid request payload.", {"errors": jsonable_encoder(exc.errors())})


@app.exception_handler(ServiceError)
async def service_exception_handler(request, exc: ServiceError):  # type: ignore[override]
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):  # type: ignore[override]
    """Handle general exceptions - log and return 500 error"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "INTERNAL_SERVER_ERROR", "Internal server error.", {})


# Register routers
app.include_router(merchants_router)
app.include_router(features_router)
app.include_router(recommendation_router)
app.include_router(categories_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
