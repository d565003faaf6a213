from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from learnpath.core.config import settings # Loads learnpath/.env on import

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Import core components
from learnpath.core.firebase_config import initialize_firebase_app
from learnpath.core.database import create_db_and_tables
from learnpath.core.exceptions import NotEnrolledError, ContentNotFoundError, ProgressWriteError
from learnpath.routes import api_router_v1 # Import the main API router


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Course progress aggregation and content navigation for enrolled learners.",
    version="0.1.0",
)

# --- Event Handlers ---
@app.on_event("startup")
async def startup_event():
    logger.info("Application startup...")
    try:
        initialize_firebase_app()
        logger.info("Firebase Admin SDK initialized successfully during startup.")
    except Exception as e:
        logger.error(f"Critical error during Firebase initialization on startup: {e}", exc_info=True)

    # Development convenience; production schemas are managed by Alembic migrations.
    try:
        logger.info("Attempting to create database tables if they don't exist (dev mode)...")
        create_db_and_tables()
        logger.info("Database tables checked/created.")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown...")

# --- Middleware ---
logger.info(f"Allowed CORS origins: {settings.CORS_ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error Handlers ---
@app.exception_handler(NotEnrolledError)
async def not_enrolled_exception_handler(request: Request, exc: NotEnrolledError):
    # Fatal for this request only: the caller sends the learner back to the course list
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": str(exc), "redirect_to": settings.COURSE_LIST_PATH},
    )

@app.exception_handler(ContentNotFoundError)
async def content_not_found_exception_handler(request: Request, exc: ContentNotFoundError):
    logger.info(f"Not found for {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )

@app.exception_handler(ProgressWriteError)
async def progress_write_exception_handler(request: Request, exc: ProgressWriteError):
    # Only reached by explicit writes (quiz attempts); navigation paths recover on their own
    logger.error(f"Progress write failed for {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Progress could not be saved. Please try again."},
    )

# Global Error Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception for request {request.method} {request.url}: {exc}", exc_info=True)
    # Avoid exposing detailed error messages in production for generic exceptions
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected internal server error occurred."},
    )

# --- API Routers ---
app.include_router(api_router_v1) # e.g. /api/v1/learn/...

@app.get("/", tags=["Root"])
async def read_root():
    """
    Root endpoint to check if the API is running.
    """
    return {"message": "LearnPath progress API is running. Navigate to /docs for API documentation."}

# --- Main execution (for development) ---
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")
    log_level = os.getenv("UVICORN_LOG_LEVEL", "info")

    logger.info(f"Starting Uvicorn server on {host}:{port} with log level {log_level}")
    uvicorn.run(app, host=host, port=port, log_level=log_level)
