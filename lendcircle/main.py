from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from lendcircle.core.config import settings
from lendcircle.api import auth, months, records, payments, admin, member, community
import logging

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)
logger.info("Starting Lending Circle API")

app = FastAPI(
    title="Lending Circle API",
    description="Monthly bookkeeping for a community lending circle",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Include routers
app.include_router(auth.router)
app.include_router(months.router)
app.include_router(records.router)
app.include_router(payments.router)
app.include_router(admin.router)
app.include_router(member.router)
app.include_router(community.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Lending Circle API", "version": "1.0.0"}


@app.get("/api/health")
def health_check():
    """Health check endpoint; checks API and database connectivity."""
    from lendcircle.db.base import SessionLocal
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    db_status = "unreachable"
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_error = str(e)
        logger.error(f"Health check database error: {db_error}")
    finally:
        db.close()

    status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": status,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
        },
        **({"database_error": db_error} if db_error else {})
    }
