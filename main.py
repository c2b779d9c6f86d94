import time
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from educonnect.core.config import settings
from educonnect.core.logging_config import setup_logging, get_logger, new_request_id, request_id_var, RequestLogger
from educonnect.core.middleware import SecurityHeadersMiddleware
from educonnect.core.rate_limit import limiter
from educonnect.db.database import init_db
from educonnect.services.file_storage import upload_dir
from educonnect.api.routes import auth, admin, teacher, student, notifications, upload, ai

# Initialize logging first (auto-determines level based on environment)
setup_logging(
    app_name="educonnect",
    log_level=settings.log_level,  # Empty = auto (DEBUG in dev, WARNING in prod)
    environment=settings.environment,
    enable_console=True,
    enable_file=settings.log_to_file,
)

logger = get_logger(__name__)
request_logger = RequestLogger(get_logger("educonnect.requests"))

logger.info("Starting EduConnect application...")

init_db()
logger.info("Database tables created/verified")


app = FastAPI(
    title=settings.app_name,
    description="School messaging between teachers and students",
    version="0.1.0",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Global exception handler, logs full tracebacks for 500 errors
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions, log full traceback, return 500."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {exc}\n"
        f"{traceback.format_exc()}"
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag the request with an id and log it with timing."""
    request_id = (request.headers.get("x-request-id") or new_request_id())[:64]
    token = request_id_var.set(request_id)
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"

    try:
        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        # Set by get_current_user on authenticated routes
        user_id = getattr(request.state, "user_id", None)

        request_logger.log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            client_ip=client_ip,
            user_id=user_id,
        )
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = request_id
    return response


# CORS middleware (never use wildcard with credentials)
if settings.allowed_origins:
    cors_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
else:
    cors_origins = [
        "http://localhost:5173",
        "http://localhost:8000",
        settings.frontend_url,
    ]
    if settings.environment == "production":
        cors_origins = [settings.frontend_url]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.add_middleware(SecurityHeadersMiddleware)

app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(teacher.router, prefix="/api")
app.include_router(student.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")
app.include_router(upload.router, prefix="/api")
app.include_router(ai.router, prefix="/api")

logger.info("API routes registered at /api")

# Uploaded attachments are served as-is; SecurityHeadersMiddleware sandboxes them
app.mount("/uploads", StaticFiles(directory=upload_dir(), check_dir=False), name="uploads")


@app.get("/health")
def health_check():
    logger.debug("Health check requested")
    return {"status": "healthy"}


@app.get("/")
def root():
    return {"message": "EduConnect API", "app": settings.app_name, "docs": "/docs"}


@app.on_event("startup")
async def startup_event():
    from educonnect.services.system_settings_service import init_system_settings
    from educonnect.services.scheduler import start_scheduler

    init_system_settings()
    start_scheduler()
    logger.info("EduConnect application started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    from educonnect.services.scheduler import stop_scheduler
    stop_scheduler()
    logger.info("EduConnect application shutting down")
