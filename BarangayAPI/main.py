import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .config import SWEEP_SCHEDULER_ENABLED
from .database import engine, Base
from .errors import LifecycleError
from .routes import requests_router, blotter_router, announcements_router, notifications_router, events_router
from .scheduler import scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    logger.info("App startup event")
    if SWEEP_SCHEDULER_ENABLED:
        scheduler.start()
    yield
    # Shutdown logic
    scheduler.stop(timeout=5)
    logger.info("App shutdown event")


app = FastAPI(lifespan=lifespan)

# Create all the tables in the database (make sure models are imported)
Base.metadata.create_all(bind=engine)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Document request routes
app.include_router(requests_router)

# Blotter case routes
app.include_router(blotter_router)

# Announcement routes
app.include_router(announcements_router)

# Notification routes
app.include_router(notifications_router)

# Live lifecycle events (SSE)
app.include_router(events_router)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Root endpoint for testing
@app.get("/")
def read_root():
    return {"message": "Welcome to the Barangay API"}


# Run the application (for development)
if __name__ == "__main__":
    uvicorn.run("BarangayAPI.main:app", host="0.0.0.0", port=8000, log_level="debug")
