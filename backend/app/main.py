import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from app.api import auth, public, tasks
from app.api.error_handling import register_exception_handlers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("app").setLevel(logging.DEBUG)
from app.config import settings, warn_insecure_defaults
from app.db.session import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    warn_insecure_defaults(settings)
    await init_db()
    logger.info("Database ready")
    yield
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title="Coral Auth API",
    description="Access/refresh token authentication with per-user session records, plus encrypted tasks",
    version="1.0.0",
    lifespan=lifespan,
)
register_exception_handlers(app)

_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(public.router)
app.include_router(auth.router)
app.include_router(tasks.router)


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
def root() -> str:
    return "Hello World!"


@app.get("/health")
def health():
    return {"status": "ok"}


def run() -> None:
    """Console entry point: serve the app with uvicorn on the configured host/port."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
