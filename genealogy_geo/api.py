"""
FastAPI service exposing the country matching engine.

Endpoints:
  GET  /health  - Reference data summary
  POST /match   - Resolve a single place string
  POST /batch   - Resolve many places; returns per-place output, statistics
                  and the unresolved report
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from genealogy_geo.config import get_settings
from genealogy_geo.matcher import CountryMatcher
from genealogy_geo.models import (
    BatchReport,
    BatchRequest,
    HealthResponse,
    MatchRequest,
    MatchResponse,
)
from genealogy_geo.pipeline import run_batch_async
from genealogy_geo.reference import get_store

logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load reference data eagerly so bad data fails the boot, not a request."""
    logger.info("Starting up API server...")
    app.state.matcher = CountryMatcher(store=get_store())
    yield
    logger.info("API server shut down.")


# ── App ───────────────────────────────────────────────────────────────

app = FastAPI(
    title="Genealogy Country Matching API",
    description="Resolve genealogical place strings to ISO 3166-1 country codes",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _matcher(request: Request) -> CountryMatcher:
    return request.app.state.matcher


# ── Routes ────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return HealthResponse(status="ok", **_matcher(request).store.stats())


@app.post("/match", response_model=MatchResponse)
async def match_place(body: MatchRequest, request: Request):
    place, result = _matcher(request).process_place(body.place, body.context)
    return MatchResponse(place=place, result=result)


@app.post("/batch", response_model=BatchReport)
async def match_batch(body: BatchRequest, request: Request):
    limit = get_settings().api.max_batch_size
    if len(body.places) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"Batch of {len(body.places)} places exceeds the limit of {limit}",
        )
    return await run_batch_async(body.places, matcher=_matcher(request))
