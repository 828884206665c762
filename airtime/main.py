from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

from airtime.config import load_settings_from_db, settings
from airtime.database import init_db
from airtime.errors import AirtimeError
from airtime.routers import api_router, schedule_router
from airtime.scheduler import start_scheduler, stop_scheduler, update_schedule_from_settings
from airtime.version import __version__

logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()
    await load_settings_from_db()
    start_scheduler()
    update_schedule_from_settings()
    logger.info(f"Airtime {__version__} started")
    yield
    # Shutdown
    stop_scheduler()


app = FastAPI(title="Airtime", version=__version__, lifespan=lifespan)


@app.exception_handler(AirtimeError)
async def airtime_error_handler(request: Request, exc: AirtimeError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    content = {"error": exc.message, "code": exc.code}
    if getattr(exc, "retryable", False):
        content["retryable"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=422, content={"error": problems, "code": "validation_error"})


# Include routers
app.include_router(schedule_router, prefix="/api/schedule", tags=["schedule"])
app.include_router(api_router, prefix="/api", tags=["api"])


@app.get("/health")
async def health():
    return {"status": "healthy", "version": __version__}
