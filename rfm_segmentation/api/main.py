"""
Segmentation API
================

FastAPI endpoints serving the current segmentation snapshot.

Usage:
    uvicorn rfm_segmentation.api.main:app --reload

Endpoints:
    GET /health - Health check
    POST /reload - Rebuild the snapshot (operator only; paths limited to api.data_dir)
    GET /segments - Segment labels, "All" first
    GET /customers?segment= - CustomerSegment rows of a segment
    GET /summary?segment= - KPI reductions of a segment
    GET /customers/{customer_id} - Customer profile
    GET /customers/{customer_id}/history - Customer transactions
    GET /customers/{customer_id}/daily-revenue - Customer revenue per day
"""

import json
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, List, Dict, Any

import pandas as pd
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from loguru import logger

from rfm_segmentation import __version__
from rfm_segmentation.config import load_config
from rfm_segmentation.customer_segmentation import ALL_SEGMENTS
from rfm_segmentation.exceptions import (
    EmptyDatasetError,
    InsufficientDataError,
    MalformedRecordError,
    NotFoundError,
    SnapshotUnavailableError,
)
from rfm_segmentation.serving import SegmentationPipeline, SnapshotStore, SegmentQueryService


# Request/Response models
class ReloadRequest(BaseModel):
    path: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    snapshot_loaded: bool
    snapshot_version: Optional[int] = None
    last_error: Optional[str] = None


class SegmentsResponse(BaseModel):
    segments: List[str]


class SummaryResponse(BaseModel):
    segment: str
    count: int
    total_monetary: float
    avg_monetary: float
    avg_frequency: float


class OverviewResponse(BaseModel):
    segment: str
    count: int
    avg_recency: float
    avg_frequency: float
    avg_monetary: float


class CustomerProfile(BaseModel):
    customer_id: str
    recency: int
    frequency: int
    monetary: float
    cluster_id: int
    segment_label: str


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as JSON-safe dictionaries."""
    return json.loads(df.to_json(orient='records', date_format='iso'))


def _check_reload_path(path: str, data_dir: str) -> None:
    """Reject reload paths that resolve outside the data directory."""
    root = Path(data_dir).resolve()
    if not Path(path).resolve().is_relative_to(root):
        raise HTTPException(
            status_code=403,
            detail=f"Reload path must be inside {data_dir}"
        )


def create_app(
    store: Optional[SnapshotStore] = None,
    config: Optional[Dict[str, Any]] = None
) -> FastAPI:
    """
    Build the API around a snapshot store.

    Without a store, one is created from the configuration and loaded from
    data.path at startup. A failed startup load is logged and surfaced
    through /health and 503 responses.

    POST /reload is an operator endpoint: it reads files on the server. When
    api.data_dir is configured, only paths inside that directory are
    accepted.

    Args:
        store: Snapshot store to serve
        config: Configuration dictionary (default: load_config() when no
            store is given)

    Returns:
        FastAPI application
    """
    if store is None:
        config = config or load_config()
        store = SnapshotStore(
            SegmentationPipeline.from_config(config),
            source=config['data'].get('path')
        )

    data_dir = (config or {}).get('api', {}).get('data_dir')

    queries = SegmentQueryService(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not store.is_loaded and store.source is not None:
            try:
                store.reload()
            except Exception as e:
                logger.error(f"Initial load failed: {e}")
        yield

    app = FastAPI(
        title="RFM Segmentation API",
        description="Customer RFM segmentation and drill-down queries",
        version=__version__,
        lifespan=lifespan
    )
    app.state.store = store
    app.state.queries = queries

    # Add CORS middleware with environment-based configuration
    cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8080").split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SnapshotUnavailableError)
    async def snapshot_unavailable(request: Request, exc: SnapshotUnavailableError):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def customer_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        snapshot_version = store.current().version if store.is_loaded else None
        last_error = str(store.last_error) if store.last_error is not None else None
        return HealthResponse(
            status="healthy" if store.is_loaded else "unavailable",
            version=__version__,
            snapshot_loaded=store.is_loaded,
            snapshot_version=snapshot_version,
            last_error=last_error
        )

    @app.post("/reload")
    def reload_snapshot(request: Optional[ReloadRequest] = None):
        """
        Rebuild the snapshot. The previous snapshot keeps serving when the
        reload fails.
        """
        path = request.path if request is not None else None
        if path is not None and data_dir is not None:
            _check_reload_path(path, data_dir)

        try:
            snapshot = store.reload(path)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except (EmptyDatasetError, InsufficientDataError, MalformedRecordError) as e:
            raise HTTPException(status_code=422, detail=f"{type(e).__name__}: {e}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {"status": "success", "snapshot": snapshot.describe()}

    @app.get("/snapshot")
    def snapshot_info():
        """Metadata of the published snapshot."""
        return store.current().describe()

    @app.get("/segments", response_model=SegmentsResponse)
    def list_segments():
        """Segment labels, "All" first."""
        return SegmentsResponse(segments=queries.list_segments())

    @app.get("/segments/breakdown")
    def segment_breakdown():
        """Per-segment counts, revenue share and mean RFM values."""
        return _records(queries.segment_breakdown())

    @app.get("/customers")
    def list_customers(segment: str = ALL_SEGMENTS):
        """CustomerSegment rows of one segment."""
        return _records(queries.filter_by_segment(segment))

    @app.get("/customer-ids")
    def list_customer_ids():
        """All customer ids, sorted."""
        return queries.list_customer_ids()

    @app.get("/summary", response_model=SummaryResponse)
    def segment_summary(segment: str = ALL_SEGMENTS):
        """KPI reductions of one segment."""
        stats = queries.summary_stats(queries.filter_by_segment(segment))
        return SummaryResponse(segment=segment, **stats)

    @app.get("/overview", response_model=OverviewResponse)
    def segment_overview(segment: str = ALL_SEGMENTS):
        """Mean recency, frequency and monetary of one segment."""
        overview = queries.segment_overview(queries.filter_by_segment(segment))
        return OverviewResponse(segment=segment, **overview)

    @app.get("/distribution")
    def rfm_distribution(segment: str = ALL_SEGMENTS):
        """Long-format RFM values of one segment."""
        return _records(queries.rfm_distribution(queries.filter_by_segment(segment)))

    @app.get("/customers/{customer_id}", response_model=CustomerProfile)
    def customer_profile(customer_id: str):
        """Customer profile."""
        return CustomerProfile(**queries.customer_profile(customer_id))

    @app.get("/customers/{customer_id}/history")
    def customer_history(customer_id: str):
        """Customer transactions, oldest first."""
        return _records(queries.customer_history(customer_id))

    @app.get("/customers/{customer_id}/daily-revenue")
    def customer_daily_revenue(customer_id: str):
        """Customer revenue per calendar day."""
        return _records(queries.customer_daily_revenue(customer_id))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
