"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from esmc import __version__
from esmc.api.middleware import LoggingContextMiddleware
from esmc.api.routes import halt, health, lessons, synthesis, tier
from esmc.core.config import get_settings
from esmc.core.exceptions import ESMCError
from esmc.core.logging_config import LoggingConfig

LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")
    yield
    logger.info(f"Shutting down {settings.app_name}...")


_settings = get_settings()
app = FastAPI(
    title=_settings.app_name,
    description="Proactive halt checkpoint, lessons ledger and technical synthesis",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(LoggingContextMiddleware)


@app.exception_handler(ESMCError)
async def esmc_exception_handler(request: Request, exc: ESMCError):
    """Domain errors become 400s with the error payload"""
    logger.warning(
        f"Request rejected: {exc.message}",
        extra={"error_type": type(exc).__name__, "path": request.url.path}
    )
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input", "details": exc.errors(include_context=False, include_input=False)}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query parameters are 400s, not 422s"""
    details = [
        {key: value for key, value in error.items() if key not in ("input", "ctx")}
        for error in exc.errors()
    ]
    logger.warning(
        f"Invalid request: {len(details)} validation error(s)",
        extra={"path": request.url.path}
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input", "details": jsonable_encoder(details)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to log all unhandled errors"""
    if isinstance(exc, FastAPIHTTPException):
        raise exc

    logger.error(
        "Unhandled exception",
        exc_info=True,
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )


app.include_router(health.router)
app.include_router(halt.router)
app.include_router(lessons.router)
app.include_router(synthesis.router)
app.include_router(tier.router)
