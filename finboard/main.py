# finboard/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, LOG_LEVEL
from .database import Base, engine
from .errors import register_error_handlers
from . import models  # noqa: F401  (registers tables on Base)

from .routes_auth import router as auth_router
from .routes_users import router as users_router
from .routes_accounts import router as accounts_router
from .routes_transactions import router as transactions_router
from .routes_imports import router as imports_router
from .routes_reports import router as reports_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# =========================
# App
# =========================
app = FastAPI(title="Finboard Dashboard Backend", version="1.0.0")

# CORS for the browser dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
app.include_router(imports_router)
app.include_router(reports_router)


# Create tables
Base.metadata.create_all(bind=engine)
logger.info("Database schema ready")


@app.get("/")
def root():
    return {"status": "ok", "message": "Backend running"}
