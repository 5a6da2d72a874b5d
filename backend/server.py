from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
import uuid
from contextlib import asynccontextmanager
from database import database
from qanoon.routes import (
    auth_router,
    navigation_router,
    credits_router,
    conversations_router,
    folders_router,
    functions_router,
    marketing_router,
    webhooks_router,
    notifications_router,
)
from qanoon.services.auto_refresh import AutoRefresh, MEMORY_JOBSTORE

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.mongodb import MongoDBJobStore
from apscheduler.jobstores.memory import MemoryJobStore
from pymongo import MongoClient

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scheduler with a MongoDB job store so jobs survive restarts
mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
db_name = os.environ.get('DB_NAME', 'qanoon_ai')

jobstores = {
    'default': MongoDBJobStore(
        database=db_name,
        collection='scheduled_jobs',
        client=MongoClient(mongo_url)
    ),
    # Jobs holding live objects (auto refresh) cannot be pickled
    MEMORY_JOBSTORE: MemoryJobStore(),
}

scheduler = AsyncIOScheduler(jobstores=jobstores, timezone="UTC")

# Pings MongoDB every minute; /api/health reports the last success
database_monitor = AutoRefresh(scheduler, database.ping, interval_seconds=60)

from job_runner import (
    run_credit_rollover,
    run_document_expiry_monitor,
    run_dunning,
)


def configure_jobs():
    # Monthly credit rollover on the 1st at 00:30 UTC
    scheduler.add_job(
        run_credit_rollover,
        CronTrigger(day=1, hour=0, minute=30),
        id="credit_rollover",
        name="Monthly Credit Rollover",
        replace_existing=True
    )
    
    # Document expiry reminders and auto-archive daily at 06:00 UTC
    scheduler.add_job(
        run_document_expiry_monitor,
        CronTrigger(hour=6, minute=0),
        id="document_expiry_monitor",
        name="Document Expiry Monitor",
        replace_existing=True
    )
    
    # Dunning retries daily at 03:00 UTC
    scheduler.add_job(
        run_dunning,
        CronTrigger(hour=3, minute=0),
        id="dunning_management",
        name="Dunning Management",
        replace_existing=True
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting Qanoon AI API")
    await database.connect()
    
    stripe_key = (os.environ.get("STRIPE_API_KEY") or os.environ.get("STRIPE_SECRET_KEY") or "").strip()
    if not stripe_key:
        logger.error("STRIPE_API_KEY / STRIPE_SECRET_KEY is not set. Credit and template checkouts will fail.")
    else:
        logger.info("STRIPE_MODE = %s (from Stripe key prefix)", "test" if stripe_key.startswith("sk_test_") else "live")
    
    run_scheduler = not os.environ.get("PYTEST_RUNNING")
    if run_scheduler:
        configure_jobs()
        scheduler.start()
        database_monitor.start()
        await database_monitor.manual_refresh()
        logger.info("Background job scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down Qanoon AI API")
    if run_scheduler:
        database_monitor.stop()
        scheduler.shutdown(wait=False)
        logger.info("Background job scheduler stopped")
    await database.close()

# Create FastAPI app
app = FastAPI(
    title="Qanoon AI API",
    description="UAE legal research assistant: accounts, credits, conversations and document workflows",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(navigation_router)
app.include_router(credits_router)
app.include_router(conversations_router)
app.include_router(folders_router)
app.include_router(functions_router)
app.include_router(marketing_router)
app.include_router(webhooks_router)
app.include_router(notifications_router)

# Root endpoint
@app.get("/api")
async def root():
    return {
        "service": "Qanoon AI",
        "tagline": "UAE legal answers with verified citations",
        "version": "1.0.0",
        "status": "operational"
    }

# Health check
@app.get("/api/health")
async def health_check():
    last_ping = database_monitor.last_refresh
    return {
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "development"),
        "database_checked_at": last_ping.isoformat() if last_ping else None,
    }

# Validation error handler: log request_id with the failing fields
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = str(uuid.uuid4())
    errors = exc.errors()
    logger.warning(
        "Validation failed request_id=%s path=%s errors=%s",
        request_id,
        request.url.path,
        [(e.get("loc"), e.get("msg"), e.get("type")) for e in errors],
    )
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors), "request_id": request_id},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8001,
        reload=os.getenv("ENVIRONMENT") == "development"
    )
