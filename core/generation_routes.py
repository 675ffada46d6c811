"""
Generation API routes for the Ghostli Content Engine.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Body, Header, HTTPException, Query
from fastapi.responses import JSONResponse

from brief_normalizer import normalize_brief
from errors import (
    ConstraintUnsatisfiable,
    EngineRejected,
    EngineUnavailable,
    GenerationCancelled,
    GenerationError,
    ValidationError,
)
from models import CancelResponse, GenerationErrorResponse, GenerationResult, SeoKeywords

from . import app_state
from .app_state import _ensure_services, app, config, get_runs_lock, logger
from .credits import InsufficientCredits
from .generation_processor import process_generation
from .seo_processor import generate_seo_keywords

ERROR_STATUS_CODES = {
    ValidationError: 400,
    EngineRejected: 422,
    ConstraintUnsatisfiable: 422,
    GenerationCancelled: 409,
    EngineUnavailable: 503,
}


def _error_response(exc: GenerationError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        500,
    )
    body = GenerationErrorResponse(**exc.to_dict()).model_dump(exclude_none=True)
    if isinstance(exc, ConstraintUnsatisfiable):
        body["result"] = exc.result.model_dump(mode="json")
    headers = {"Retry-After": "5"} if exc.retryable else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.post("/api/content/generate", response_model=GenerationResult)
async def generate_content(
    brief: Dict[str, Any] = Body(...),
    tier: Optional[str] = Query(default=None, description="Pricing tier used to charge credits"),
    strict: bool = Query(default=False, description="Fail with 422 instead of returning a partial result"),
    x_user_id: Optional[str] = Header(default=None),
):
    """Run the full pipeline for a brief and return the finished content."""
    try:
        request = normalize_brief(brief)
    except ValidationError as exc:
        logger.info("Rejected brief: %s", exc.message)
        return _error_response(exc)

    user_id = request.user_id or x_user_id or "anonymous"
    cached = app_state.completed_results.get(request.request_id)

    try:
        charge = await app_state.credit_ledger.charge(
            request.request_id, user_id, config.credit_cost_for_tier(tier or "")
        )
    except InsufficientCredits as exc:
        return JSONResponse(
            status_code=402,
            content=GenerationErrorResponse(error="insufficient_credits", message=str(exc)).model_dump(exclude_none=True),
        )

    if not charge.newly_charged:
        if cached is not None:
            logger.info("Request %s already completed; returning stored result without billing", request.request_id)
            return cached
        if request.request_id in app_state.active_runs:
            raise HTTPException(status_code=409, detail=f"Request {request.request_id} is already in progress")
        logger.warning("Stored result for %s was evicted; refusing an unbilled rerun", request.request_id)
        raise HTTPException(
            status_code=410,
            detail=f"Result for request {request.request_id} is no longer stored; submit a new requestId",
        )

    cancel_event = asyncio.Event()
    async with get_runs_lock():
        app_state.active_runs[request.request_id] = cancel_event

    try:
        result = await process_generation(
            request,
            engine=_ensure_services(),
            cancel_event=cancel_event,
            metrics_sink=app_state.metrics_sink,
            strict=strict,
        )
    except GenerationError as exc:
        if await app_state.credit_ledger.refund(request.request_id):
            logger.info("Refunded credits for %s after %s", request.request_id, exc.code)
        return _error_response(exc)
    finally:
        async with get_runs_lock():
            app_state.active_runs.pop(request.request_id, None)

    app_state.remember_result(result)
    return result


@app.post("/api/content/seo", response_model=SeoKeywords)
async def generate_seo(body: Dict[str, Any] = Body(...)):
    """Suggest SEO keywords and hashtags for an existing piece of content."""
    content = body.get("content")
    try:
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content", "must be a non-empty string")
        return await generate_seo_keywords(content, engine=_ensure_services())
    except GenerationError as exc:
        logger.info("SEO suggestion failed: %s", exc.message)
        return _error_response(exc)


@app.post("/api/content/{request_id}/cancel", response_model=CancelResponse)
async def cancel_generation(request_id: str):
    """Cancel an in-flight run; it stops at the next state transition."""
    async with get_runs_lock():
        event = app_state.active_runs.get(request_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"No active generation for request {request_id}")
    event.set()
    logger.info("Cancellation requested for %s", request_id)
    return CancelResponse(request_id=request_id, cancelled=True)


@app.get("/api/analytics/summary")
async def analytics_summary():
    """Aggregate of iteration counts, processing time and token usage."""
    return app_state.metrics_store.summary()


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "active_runs": len(app_state.active_runs),
        "model": config.ENGINE_MODEL,
        "timestamp": datetime.now().isoformat(),
    }
