"""
Identity Service - FastAPI Application
Context-aware identity resolution for TrueNamePath
"""

import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.utils.logger import init_logging
from identity_service.config import get_app_config
from identity_service.routes import auth, oauth, identity
from identity_service.utils.dependencies import get_database
from identity_service.utils.database import init_database, close_database
from identity_service.utils.redis_session import close_redis_client
from identity_service.utils.responses import error_body, default_error_code

init_logging()
logger = logging.getLogger(__name__)

config = get_app_config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("Identity Service starting up...")
    config.log_config()

    await init_database()

    logger.info("Identity Service startup complete")

    yield

    logger.info("Identity Service shutting down...")
    await close_redis_client()
    await close_database()


app = FastAPI(
    title="Identity Service",
    description="Context-aware identity resolution for TrueNamePath",
    version=config.service_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    """Tag every request with an id echoed in the response envelope"""
    request.state.request_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:16]}"
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTPException in the error envelope"""
    if isinstance(exc.detail, dict):
        code = exc.detail.get("code") or default_error_code(exc.status_code)
        message = exc.detail.get("message", "")
        details = exc.detail.get("details")
    else:
        code = default_error_code(exc.status_code)
        message = str(exc.detail)
        details = None

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message, details, request),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation failures share the error envelope"""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": error.get("msg"),
            "code": error.get("type")
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("VALIDATION_ERROR", "Invalid request data", details, request)
    )


@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "version": config.service_version
    }


@app.get("/health/database")
async def database_health_check(db=Depends(get_database)):
    """Database connection health check"""
    try:
        await db.fetchval("SELECT 1")
        return {
            "status": "healthy",
            "database": "connected"
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection failed"
        )


app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(oauth.router, prefix="/api/oauth", tags=["OAuth"])
app.include_router(identity.router, prefix="/api", tags=["Identity"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Identity Service",
        "version": config.service_version,
        "description": "Context-aware identity resolution",
        "docs": "/docs"
    }
