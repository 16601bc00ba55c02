"""
Atlas Shelf - FastAPI Backend
Main application entry point: content catalog, locations and the globe map.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    contents,
    books,
    locations,
    profile,
    map,
)
from services.geocoding import build_geocoder


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logging.basicConfig(level=settings.LOG_LEVEL)
    print("🚀 Starting Atlas Shelf API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except (SQLAlchemyError, OSError) as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    app.state.geocoder = build_geocoder()
    if app.state.geocoder is None:
        print("⚠️ MAPBOX_ACCESS_TOKEN missing: map and location search are disabled.")
    else:
        print("🗺️ Mapbox geocoder ready.")
    yield
    # Shutdown
    if app.state.geocoder is not None:
        await app.state.geocoder.aclose()
        app.state.geocoder = None
    print("👋 Shutting down API...")


app = FastAPI(
    title="Atlas Shelf API",
    description="Catalog books and podcasts by the places they are about and explore them on a globe",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(contents.router, prefix="/contents", tags=["Contents"])
app.include_router(books.books_router, prefix="/books", tags=["Books"])
app.include_router(books.podcasts_router, prefix="/podcasts", tags=["Podcasts"])
app.include_router(locations.router, prefix="/locations", tags=["Locations"])
app.include_router(profile.router, prefix="/profile", tags=["Profile"])
app.include_router(map.router, prefix="/map", tags=["Map"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Atlas Shelf API",
        "version": "0.1.0",
        "status": "running"
    }
