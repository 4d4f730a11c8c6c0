import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# ✅ Import All API Routes
from app.api.routes import sessions, feedback, health

from app.core import config
from app.core.logging_config import setup_logging
from app.db.init_db import init_db
from app.db.migrate import run_migrations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(log_level=config.LOG_LEVEL)

    # Postgres deployments set RUN_MIGRATIONS=1; local SQLite gets tables straight from the models
    if os.getenv("RUN_MIGRATIONS") == "1":
        run_migrations()
    elif config.DATABASE_URL.startswith("sqlite"):
        init_db()

    logger.info("Interview Core API started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Interview Core API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(sessions.router)
app.include_router(feedback.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Interview Core API running"}
