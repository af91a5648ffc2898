"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from clearance.config import settings
from clearance.database import Base, engine

# Import routers
from clearance.routers import auth, departments, requests

# Import all models so Base.metadata knows about them
from clearance.models.user import User                                            # noqa: F401
from clearance.models.department import Department                                # noqa: F401
from clearance.models.clearance_request import ClearanceRequest, ApprovalEntry    # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="No-Dues Clearance",
    description="Multi-department clearance workflow — every department signs off before a certificate is issued",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(departments.router, prefix="/api/departments", tags=["Departments"])
app.include_router(requests.router, prefix="/api/requests", tags=["Requests"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
