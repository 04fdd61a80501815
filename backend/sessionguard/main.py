"""SessionGuard - session and CSRF protected backend API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sessionguard.api.middleware import SessionGateMiddleware
from sessionguard.config import get_settings
from sessionguard.database import SessionLocal
from sessionguard.services.session_auth import build_sql_session_auth

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: Create tables
    from sessionguard.database import Base, engine

    # Import all models so they're registered with Base
    from sessionguard import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.app_name} started")

    yield


app = FastAPI(
    title=settings.app_name,
    description="Rotating session and CSRF authentication for the backend API",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.session_auth = build_sql_session_auth(settings, SessionLocal)

# Added first so CORS wraps the gate and rejections still carry CORS headers.
app.add_middleware(SessionGateMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def home():
    """Home endpoint."""
    return {"app": settings.app_name}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


# Import and include routers
from sessionguard.api import auth  # noqa: E402

app.include_router(auth.router, prefix="/api")
