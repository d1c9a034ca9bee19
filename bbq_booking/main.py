import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bbq_booking.core.config import settings
from bbq_booking.core.errors import ReservationError, StorageError
from bbq_booking.core.logging_config import setup_logging
from bbq_booking.api.v1.api import api_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:3000", "http://localhost:3000",
    "http://127.0.0.1:8080", "http://localhost:8080",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    if isinstance(exc, StorageError):
        logger.error("storage error on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message, "code": exc.code})
    content = {"detail": exc.message, "code": exc.code}
    slots = getattr(exc, "slots", None)
    if slots:
        content["slots"] = slots
    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
