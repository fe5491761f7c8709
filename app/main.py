"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.admin_routes import router as admin_router
from app.api.auth_routes import router as auth_router
from app.api.catalog_routes import router as catalog_router
from app.api.payment_routes import router as payment_router
from app.api.token_routes import router as token_router
from app.domain.exceptions import BookSwapError
from app.infrastructure.database.connection import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
# Validation error types raised when the body is not a JSON object at all.
NOT_AN_OBJECT = {"model_type", "model_attributes_type", "dict_type"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting BookSwap application")
    await init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutting down BookSwap application")


app = FastAPI(
    title="BookSwap",
    description="Used-book marketplace with a token economy",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=CORS_ALLOW_HEADERS,
)


@app.exception_handler(BookSwapError)
async def bookswap_error_handler(request: Request, exc: BookSwapError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report the first failing field with its own message as a 400."""
    errors = exc.errors()
    if not errors:
        message = "Invalid request"
    elif errors[0]["type"] in NOT_AN_OBJECT:
        message = "Request body must be a JSON object"
    else:
        message = errors[0].get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(catalog_router)
app.include_router(token_router)
app.include_router(payment_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
