"""
FastAPI main application for the SmartBook scheduling service.
"""
import asyncio
import logging
import time
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from smartbook.config import get_settings
from smartbook.db import init_db, test_db_connection, test_redis_connection
from smartbook.routes.auth import router as auth_router
from smartbook.routes.users import router as users_router
from smartbook.routes.appointments import router as appointments_router
from smartbook.routes.calendar_integrations import router as calendar_router
from smartbook.routes.ai_suggestions import router as ai_suggestions_router
from smartbook.routes.notifications import router as notifications_router
from smartbook.services.background_jobs import reminder_loop

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="SmartBook",
    description="Appointment scheduling with AI slot recommendations",
    version="1.0.0"
)

settings = get_settings()

# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(appointments_router)
app.include_router(calendar_router)
app.include_router(ai_suggestions_router)
app.include_router(notifications_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    """Log method, path, status and duration of API calls."""
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} in {duration_ms:.0f}ms")
    return response


@app.get("/health")
async def health_check():
    """Health check endpoint with database and Redis status."""
    db_status = test_db_connection()
    redis_status = test_redis_connection()

    return {
        "status": "healthy" if db_status and redis_status else "degraded",
        "service": "smartbook",
        "database": "connected" if db_status else "disconnected",
        "redis": "connected" if redis_status else "disconnected"
    }


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info("Starting SmartBook...")

    init_db()

    if settings.seed_demo_data:
        from smartbook.seed import seed_demo_data
        seed_demo_data()

    if not test_redis_connection():
        logger.warning("Redis connection failed. Logins and queued notifications will not work.")

    if settings.reminders_enabled:
        app.state.reminder_task = asyncio.create_task(reminder_loop(settings.reminder_interval_minutes))
    else:
        app.state.reminder_task = None

    logger.info("Application ready!")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down SmartBook...")
    task = getattr(app.state, "reminder_task", None)
    if task is not None:
        task.cancel()


if __name__ == "__main__":
    uvicorn.run(
        "smartbook.main:app",
        host="0.0.0.0",
        port=5000,
        reload=settings.debug,
        log_level="info"
    )
