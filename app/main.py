# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from app.core.config import get_settings
from app.database import create_db_and_tables

# Table models must be imported before create_all() runs
from app.models import user as _user_models  # noqa: F401
from app.models import cart as _cart_models  # noqa: F401
from app.models import order as _order_models  # noqa: F401

from app.routers.cart import router as cart_router
from app.routers.orders import router as orders_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables on startup. Nothing to release on shutdown: the engine
    is synchronous and pooled.
    """
    logger.info("Startup: creating ordering tables...")
    try:
        create_db_and_tables()
    except Exception as e:
        logger.error(f"Startup: database unavailable: {e}")
        raise
    logger.info(
        "Startup: ready (notifications %s, admin inbox %s)",
        "on" if settings.NOTIFICATIONS_ENABLED else "off",
        settings.ADMIN_EMAIL,
    )
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Customer cart + order submission, staff pricing and status changes
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "grunge-pallets-ordering",
        "notifications": settings.NOTIFICATIONS_ENABLED,
    }
