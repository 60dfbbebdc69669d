import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from .config import BASE_DIR, settings
from .database import engine
from .models import Base
from .redis_client import redis_client
from .routers import appointments, availability, public, shift
from .services.scheduling.errors import (
    ConflictError,
    InvalidStatusError,
    NoStaffAvailableError,
    NotFoundError,
    PhoneMismatchError,
    SchedulingError,
    ValidationError,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    InvalidStatusError: 400,
    PhoneMismatchError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    NoStaffAvailableError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    if engine.dialect.name == "sqlite":
        (BASE_DIR / "data").mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
    logger.info(f"Salon scheduler started ({engine.dialect.name})")
    yield


app = FastAPI(title="Salon Scheduler API", lifespan=lifespan)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    logger.info(f"{request.method} {request.url.path} → {status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(availability.router)
app.include_router(appointments.router)
app.include_router(shift.router)
app.include_router(public.router)


@app.get("/health")
def health():
    try:
        redis_ok = redis_client.ping()
    except RedisError as e:
        logger.warning(f"Redis unavailable: {e}")
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}
