from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formdesk.api.pages import router as pages_router
from formdesk.api.router import api_router
from formdesk.core.config import get_settings
from formdesk.db.base import StoreError
from formdesk.db.supabase import SupabaseStore, create_supabase_client

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup - verify the backend is reachable
    if settings.VERIFY_BACKEND_ON_STARTUP:
        try:
            SupabaseStore(create_supabase_client(settings)).count("forms")
            logger.info("Backend connection successful")
        except StoreError as e:
            logger.error("Failed to connect to backend: %s", e.message)
            raise
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Backend call failed on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=500, content={"detail": exc.message})


app.include_router(api_router, prefix="/api")
app.include_router(pages_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
