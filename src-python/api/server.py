"""FastAPI application - local API for the redaction engine."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import detection, settings
from redaction.detection.patterns import detectors

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

app = FastAPI(
    title="pdf-redaction-engine",
    version=VERSION,
    description="Sensitive-data detection and geometric redaction planning",
)

# CORS - the browser UI is served from a different local origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(detection.router)
app.include_router(settings.router)


@app.on_event("startup")
async def startup():
    logger.info(f"Redaction engine ready with {len(detectors())} catalog detectors")


@app.get("/health")
async def health():
    return {"status": "ok", "version": VERSION}
