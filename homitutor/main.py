from fastapi import FastAPI, Request
from datetime import datetime
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from homitutor.logger import logger
from homitutor.config import get_settings
from homitutor.database.database import init_db

### ROUTERS
from homitutor.routers.admin import router as admin_router
from homitutor.routers.authentication import router as auth_router, limiter
from homitutor.routers.booking import router as booking_router
from homitutor.routers.catalog import router as catalog_router
from homitutor.routers.chat import router as chat_router
from homitutor.routers.course import router as course_router
from homitutor.routers.schedule import router as schedule_router
from homitutor.routers.student import router as student_router
from homitutor.routers.tutor import router as tutor_router
from homitutor.routers.user import router as user_router
from homitutor.routers.verification import router as verification_router


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging all HTTP requests and responses.

    Logs request method, URL, response status, and timing information.
    Handles errors by logging exceptions.
    """
    async def dispatch(self, request: Request, call_next):
        # Log request
        start_time = datetime.now()
        logger.info(f"Request: {request.method} {request.url}")

        try:
            response = await call_next(request)
            # Log response
            duration = (datetime.now() - start_time).total_seconds()
            logger.info(f"Response: {response.status_code} - Duration: {duration:.3f}s")
            return response
        except Exception as e:
            # Log error
            logger.error(f"Error processing request: {str(e)}")
            raise

settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# Add CORS middleware with environment configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
    max_age=3600
)

# Include routers
app.include_router(auth_router, prefix=settings.api_prefix, tags=['authentication'])
app.include_router(verification_router, prefix=settings.api_prefix, tags=['verification'])
app.include_router(user_router, prefix=settings.api_prefix, tags=['users'])
app.include_router(catalog_router, prefix=settings.api_prefix, tags=['catalog'])
app.include_router(tutor_router, prefix=settings.api_prefix, tags=['tutors'])
app.include_router(course_router, prefix=settings.api_prefix, tags=['courses'])
app.include_router(booking_router, prefix=settings.api_prefix, tags=['bookings'])
app.include_router(chat_router, prefix=settings.api_prefix, tags=['conversations'])
app.include_router(student_router, prefix=settings.api_prefix, tags=['students'])
app.include_router(schedule_router, prefix=settings.api_prefix, tags=['schedules'])
app.include_router(admin_router, prefix=settings.api_prefix, tags=['admin'])

@app.get("/")
def read_root():
    """
    Root endpoint returning API welcome message.

    Returns:
    - dict: Welcome message
    """
    return {"message": "Welcome to the HomiTutor API!"}

@app.get("/health")
def health():
    return {"status": "ok", "version": settings.app_version}

@app.on_event("startup")
async def startup_event():
    """
    Application startup handler.
    Creates missing tables and logs startup.
    """
    init_db()
    logger.info("Server starting up...")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Server shutting down...")

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host=settings.app_host, port=settings.app_port)
