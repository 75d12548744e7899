"""
Frog Members Portal - Main Application

FastAPI backend with:
- PostgreSQL for catalogue, applications, visa plans and memberships
- MongoDB for advisor chat history and webhook payloads
- Content Snare for application forms, Stripe for memberships
- microCMS for interview articles, Slack for admin notices
- JWT authentication

Run: uvicorn frog_portal.main:app --reload
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from frog_portal.api.routes import api_router
from frog_portal.core.config import get_settings
from frog_portal.db.mongodb import init_mongo_indexes, test_mongo_connection
from frog_portal.db.postgres import engine, test_postgres_connection
from frog_portal.db.schema import init_schema

settings = get_settings()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()

# Create FastAPI app
app = FastAPI(
    title="Frog Members Portal",
    description="""
    Members portal for studying, working and migrating abroad.

    ## Features
    - **Authentication**: JWT-based auth for members and admins
    - **Catalogue**: Schools, courses, intake dates, favorites
    - **Applications**: Course applications backed by Content Snare forms
    - **Visa planning**: Ordered visa plans with admin review
    - **Membership**: Stripe subscriptions unlocking learning videos
    - **School editor**: Token links for schools to maintain their courses
    - **Advisor**: Questions answered from the portal's own data
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware (allow all for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")

# Uploaded files
os.makedirs(settings.media_root, exist_ok=True)
app.mount(settings.media_url, StaticFiles(directory=settings.media_root), name="media")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Create tables and MongoDB indexes on startup."""
    try:
        init_schema(engine)
        logger.info("Database schema ready")
    except SQLAlchemyError as e:
        logger.error("Database schema initialization failed: %s", e)

    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except PyMongoError as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/", tags=["Health"])
async def root():
    return {"status": "healthy", "app": "Frog Members Portal"}


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
