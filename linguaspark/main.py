"""
Main FastAPI application with middleware, error mapping and monitoring
"""
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
import uuid
from contextlib import asynccontextmanager

from linguaspark.config import settings
from linguaspark.core.cache import get_extraction_store
from linguaspark.core.error_classifier import error_classifier
from linguaspark.core.exceptions import ErrorType, LinguaSparkException
from linguaspark.core.logging import get_logger, setup_logging, request_id_var
from linguaspark.routes import admin_routes, extraction_routes, lesson_routes, public_lesson_routes
from linguaspark.db import check_database, engine

SERVICE_VERSION = "1.0.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging()
    logger.info("LinguaSpark service starting up",
                environment=settings.environment.value,
                debug=settings.debug,
                extraction_backend=get_extraction_store().backend)

    yield

    logger.info("LinguaSpark service shutting down")
    await get_extraction_store().close()
    await engine.dispose()


app = FastAPI(
    title="LinguaSpark Lesson Service",
    version=SERVICE_VERSION,
    description="Generates structured language lessons from web page text",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""
    start_time = time.time()

    logger.info("request_received",
                method=request.method,
                path=request.url.path,
                client=request.client.host if request.client else None)

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error("request_failed",
                     method=request.method,
                     path=request.url.path,
                     error=str(e),
                     duration_seconds=time.time() - start_time)
        raise

    duration = time.time() - start_time
    logger.info("request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_seconds=duration)
    response.headers["X-Process-Time"] = str(duration)
    return response


# Registered last so it runs first and the request id is bound before logging
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def error_body(code: str, error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "code": code,
        "message": message,
        "details": details or {},
        "request_id": request_id_var.get(),
    }


@app.exception_handler(LinguaSparkException)
async def handle_linguaspark_exception(request: Request, exc: LinguaSparkException):
    """Map typed service errors to their status code"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("Application error",
        error=exc.message,
        code=exc.error_type.value,
        details=exc.details,
        path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_type.value, exc.message, exc.message, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    """Malformed request bodies use the same error shape as service validation"""
    errors = [
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body(ErrorType.VALIDATION_ERROR.value, "Invalid request", "; ".join(errors),
                           {"errors": errors}),
    )


@app.exception_handler(Exception)
async def handle_generic_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    classified = error_classifier.classify_error(exc, {"path": request.url.path})
    logger.error("Unexpected error",
                 error=str(exc),
                 error_type=type(exc).__name__,
                 error_id=classified.error_id,
                 path=request.url.path)

    user_message = error_classifier.generate_user_message(classified)
    body = error_body(
        ErrorType.UNKNOWN.value,
        "Internal server error",
        str(exc) if settings.debug else user_message["message"],
        {"actionable_steps": user_message["actionable_steps"]},
    )
    body["error_id"] = classified.error_id
    return JSONResponse(status_code=500, content=body)


app.include_router(lesson_routes.router)
app.include_router(extraction_routes.router)
app.include_router(public_lesson_routes.router)
app.include_router(admin_routes.router)


@app.get("/health")
async def health():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "linguaspark",
        "version": SERVICE_VERSION,
        "environment": settings.environment.value
    }


@app.get("/health/ready")
async def readiness():
    """Readiness check with database connectivity"""
    checks = {"extraction_store": get_extraction_store().backend}
    try:
        await check_database()
    except Exception as e:
        logger.error("Readiness check failed", error=str(e))
        checks["database"] = "failed"
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "checks": checks, "error": str(e)}
        )

    checks["database"] = "ok"
    return {"status": "ready", "checks": checks}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "LinguaSpark Lesson Service",
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
