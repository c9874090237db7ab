import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from app.db.init_db import create_database
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.core.config import settings
from app.core.errors import BookingError
from app.api.v1.router import api_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _slot_cleanup_loop() -> None:
    """Background task: mark past physical slots unavailable every 60 seconds."""
    from app.utils.timeslots import deactivate_past_slots

    while True:
        try:
            db = SessionLocal()
            try:
                count = deactivate_past_slots(db)
                if count:
                    logger.info("Deactivated %d past slot(s).", count)
            finally:
                db.close()
        except Exception:
            logger.exception("Error during past-slot cleanup.")
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists and create tables
    create_database()
    Base.metadata.create_all(bind=engine)

    # Run an immediate cleanup, then keep running in the background
    cleanup_task = asyncio.create_task(_slot_cleanup_loop())
    yield

    # Shutdown: cancel background task
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": f"{location}: {message}" if location else message,
        },
    )


app.include_router(api_router, prefix=settings.API_V1_STR)

# Generated ticket PDFs are served from here; the directory is created on first ticket
app.mount("/tickets", StaticFiles(directory=settings.TICKETS_DIR, check_dir=False), name="tickets")


@app.get("/")
def read_root():
    return {"Hello": settings.PROJECT_NAME}
