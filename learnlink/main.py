import logging
import os
import sys

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnlink.database import engine
from learnlink.exceptions import LearnLinkError
from learnlink.models import Base
from learnlink.routers import community, dashboard, notifications, resources, users
from learnlink.settings import settings

# Configure logging
_handlers = [logging.StreamHandler(sys.stdout)]
if settings.log_file:
    _handlers.append(logging.FileHandler(settings.log_file))
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
    handlers=_handlers,
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LearnLink API")


@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


"""
Configure CORS using origins from centralized settings.
"""
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# Warn if CORS is insecure in production
env = os.getenv("ENV", "development")
if env == "production" and (not settings.cors_origins or "*" in [str(origin) for origin in settings.cors_origins]):
    logging.warning("CORS is set to allow all origins in production! This is a security risk. Set CORS_ORIGINS to trusted domains only.")


app.include_router(users.router)
app.include_router(resources.router)
app.include_router(community.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)


@app.get("/")
def read_root():
    logger.info("Root endpoint accessed.")
    return {"message": "Welcome to the LearnLink API"}


@app.exception_handler(RequestValidationError)
async def custom_validation_exception_handler(request: Request, exc: RequestValidationError):
    return await request_validation_exception_handler(request, exc)


# Domain errors raised by the core modules
@app.exception_handler(LearnLinkError)
async def learnlink_exception_handler(request: Request, exc: LearnLinkError):
    logger.warning(f"{type(exc).__name__}: {exc.message} (status: {exc.status_code}) at {request.url}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.message})


# Global error handler for HTTPException
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTPException: {exc.detail} (status: {exc.status_code}) at {request.url}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.detail})


# Global error handler for generic exceptions
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc} at {request.url}")
    return JSONResponse(status_code=500, content={"success": False, "detail": "Internal server error"})
