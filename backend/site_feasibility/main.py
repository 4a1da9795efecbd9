from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from site_feasibility.config import settings
from site_feasibility.api.routes import router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

VERSION = "1.0.0"

app = FastAPI(
    title="Site Feasibility & Massing Engine",
    description=(
        "Residual land value feasibility, affordable housing sensitivity, "
        "and building footprint massing for development sites."
    ),
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins + ["http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {
        "name": "Site Feasibility & Massing Engine",
        "version": VERSION,
        "endpoints": {
            "api_docs": "/docs",
            "health": "/health",
            "profiles": "GET /api/profiles",
            "feasibility": "POST /api/feasibility",
            "sensitivity": "POST /api/sensitivity",
            "massing": "POST /api/massing",
        },
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}
