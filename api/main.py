"""
ConflictScan API — Main Application

POST /classify  — Classify incident rows (entity match + violation score)
POST /query     — Boolean query over rows, returns matching ids
POST /filter    — Query + date / tier / entity selections
GET  /patterns  — Loaded dictionary keys and scorer categories
GET  /health    — Health check

Stateless: every request carries its own rows and is classified against
the dictionary loaded at startup.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from conflictscan import __version__
from conflictscan.config import settings
from conflictscan.engine import classify_all
from conflictscan.errors import ConflictScanError, MalformedQuery
from conflictscan.filters import FilterCriteria, apply_filters, date_preset_range
from conflictscan.logging import setup_logging, get_logger
from conflictscan.patterns import PatternDictionary, default_dictionary, load_patterns_file
from conflictscan.query import evaluate_query
from conflictscan.records import Record, records_from_rows
from conflictscan.stats import (
    get_counts,
    severity_distribution,
    timeline_counts,
    top_locations,
    top_units,
)
from conflictscan.violations import SCORER_VERSION, violation_scorer
from conflictscan.schemas.incidents import (
    ClassifyResponse,
    CriteriaModel,
    FilterRequest,
    FilterResponse,
    HealthResponse,
    PatternsResponse,
    QueryRequest,
    QueryResponse,
    RowsRequest,
)

logger = get_logger("api")

_dictionary: Optional[PatternDictionary] = None


def get_dictionary() -> PatternDictionary:
    """The dictionary configured by CONFLICTSCAN_PATTERNS_PATH, loaded once."""
    global _dictionary
    if _dictionary is None:
        if settings.PATTERNS_PATH:
            _dictionary = load_patterns_file(settings.PATTERNS_PATH)
        else:
            _dictionary = default_dictionary()
    return _dictionary


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the pattern dictionary on startup."""
    setup_logging()
    dictionary = get_dictionary()
    logger.info(
        "ConflictScan API starting",
        extra={
            "system_count": len(dictionary.systems),
            "unit_count": len(dictionary.units),
            "skipped_count": len(dictionary.skipped),
            "dictionary_version": dictionary.version[:12],
        },
    )
    yield
    logger.info("ConflictScan API shutting down")


app = FastAPI(
    title="ConflictScan API",
    description="Incident classification and search for conflict event records",
    version=f"{__version__} (engine {settings.ENGINE_VERSION})",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=False,
)


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(ConflictScanError)
async def engine_error_handler(request: Request, exc: ConflictScanError):
    logger.warning(
        f"Request rejected: {exc.error_code}",
        extra={"error": exc.message, "path": request.url.path, "method": request.method},
    )
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions — return structured error, don't leak internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"error": str(exc), "error_type": type(exc).__name__,
               "path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. The request could not be completed."},
    )


# ============================================================
# HELPERS
# ============================================================

def _classified(rows: list[dict]) -> list[Record]:
    return classify_all(
        records_from_rows(rows), get_dictionary(), workers=settings.CLASSIFY_WORKERS,
    )


def _record_dict(record: Record) -> dict:
    return {
        "record_id": record.record_id,
        "event_date": record.event_date,
        "location": record.location,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "match": record.match.to_dict(),
        "score": record.score.to_dict(),
    }


def _criteria(model: CriteriaModel) -> FilterCriteria:
    start, end = model.start_date, model.end_date
    if model.date_preset and start is None and end is None:
        start, end = date_preset_range(model.date_preset)
    try:
        return FilterCriteria.build(
            start_date=start,
            end_date=end,
            score_tier=model.score_tier,
            systems=model.systems,
            units=model.units,
            record_ids=model.record_ids,
            locations=model.locations,
            entities=model.entities,
            query=model.query,
        )
    except ValueError as e:
        raise HTTPException(422, str(e))


# ============================================================
# ROUTES
# ============================================================

@app.post("/classify", response_model=ClassifyResponse)
def classify(request: RowsRequest):
    """Classify every row and return its annotations."""
    records = _classified(request.rows)
    systems, units = get_counts(records)
    severity = severity_distribution(records)
    return {
        "records": [_record_dict(r) for r in records],
        "total": len(records),
        "positive": sum(1 for r in records if r.score.positive),
        "system_counts": systems,
        "unit_counts": units,
        "severity": severity,
        "timeline": timeline_counts(records),
        "top_locations": dict(top_locations(records)),
        "top_units": dict(top_units(records)),
        "dictionary_version": get_dictionary().version,
    }


@app.post("/query", response_model=QueryResponse)
def query(request: QueryRequest):
    """
    Evaluate a boolean query over the rows.

    A malformed query is rejected with 400; use /filter for the
    literal-search fallback.
    """
    records = records_from_rows(request.rows)
    try:
        matched = evaluate_query(request.query, records)
    except MalformedQuery as e:
        logger.info(
            f"Malformed query rejected: {e.message}",
            extra={"query": request.query, "error": e.message},
        )
        return JSONResponse(status_code=400, content=e.to_dict())

    return {
        "query": request.query,
        "ids": [r.record_id for r in matched],
        "total": len(records),
        "matched": len(matched),
    }


@app.post("/filter", response_model=FilterResponse)
def filter_records(request: FilterRequest):
    """Classify the rows, then apply the query and selections."""
    criteria = _criteria(request.criteria)
    records = _classified(request.rows)
    matched = apply_filters(criteria, records)
    return {
        "records": [_record_dict(r) for r in matched],
        "total": len(records),
        "matched": len(matched),
    }


@app.get("/patterns", response_model=PatternsResponse)
async def get_patterns():
    """Dictionary keys in declared order, skipped entries, and scorer categories."""
    dictionary = get_dictionary()
    return {
        "dictionary_version": dictionary.version,
        "systems": dictionary.system_keys(),
        "units": dictionary.unit_keys(),
        "skipped": [
            {"key": s.key, "group": s.group, "reason": s.reason}
            for s in dictionary.skipped
        ],
        "categories": violation_scorer.get_categories(),
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    dictionary = get_dictionary()
    return {
        "status": "operational",
        "version": __version__,
        "engine_version": settings.ENGINE_VERSION,
        "scorer_version": SCORER_VERSION,
        "system_patterns": len(dictionary.systems),
        "unit_patterns": len(dictionary.units),
        "skipped_patterns": len(dictionary.skipped),
    }


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


def run():
    """Serve the API with uvicorn on CONFLICTSCAN_HOST / CONFLICTSCAN_PORT."""
    import uvicorn

    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
