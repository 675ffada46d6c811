"""
Ghostli Content Engine - Constrained Content Generation API
===========================================================

Shared FastAPI application, logging setup and process-wide services
(engine adapter, credit ledger, metrics sinks, cancel-event registry).
Route modules import ``app`` from here and register themselves.
"""

import asyncio
import logging
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ai_service import GenerationEngine, get_engine
from config import config
from models import GenerationResult

from .analytics import CompositeMetricsSink, InMemoryMetricsSink, LoggingMetricsSink
from .credits import InMemoryCreditLedger

# Setup logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)

# Silence noisy third-party loggers to avoid cluttering output
_noisy_loggers = [
    'httpcore',
    'httpcore.connection',
    'httpcore.http11',
    'httpx',
    'openai._base_client',
]
for _logger_name in _noisy_loggers:
    logging.getLogger(_logger_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Ghostli Content Engine",
    description="Constrained generation and humanization pipeline",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global services - engine is created lazily so tests can inject a fake
engine: Optional[GenerationEngine] = None
metrics_store = InMemoryMetricsSink()
metrics_sink = CompositeMetricsSink([LoggingMetricsSink(), metrics_store])
credit_ledger = InMemoryCreditLedger()

# Cancel events of in-flight runs, keyed by request id
active_runs: Dict[str, asyncio.Event] = {}
active_runs_lock: Optional[asyncio.Lock] = None

# Results of completed runs, so a retried request id returns without re-billing
completed_results: Dict[str, GenerationResult] = {}
COMPLETED_RESULTS_LIMIT = 500


def _ensure_services() -> GenerationEngine:
    """Initialize services lazily when needed"""
    global engine
    if engine is None:
        engine = get_engine()
    return engine


def get_runs_lock() -> asyncio.Lock:
    global active_runs_lock
    if active_runs_lock is None:
        active_runs_lock = asyncio.Lock()
    return active_runs_lock


def remember_result(result: GenerationResult) -> None:
    completed_results[result.request_id] = result
    while len(completed_results) > COMPLETED_RESULTS_LIMIT:
        completed_results.pop(next(iter(completed_results)))


@app.on_event("startup")
async def startup_event():
    """Bind locks to the running event loop and log configuration problems early"""
    global active_runs_lock
    active_runs_lock = asyncio.Lock()
    if not config.OPENAI_API_KEY and engine is None:
        logger.warning("OPENAI_API_KEY is not set; generation requests will be rejected")
    logger.info("Ghostli Content Engine ready (model=%s, max_iterations=%d)", config.ENGINE_MODEL, config.MAX_ITERATIONS)


@app.on_event("shutdown")
async def shutdown_event():
    """Cancel any run still in flight"""
    logger.info("Shutting down Ghostli Content Engine...")
    for event in list(active_runs.values()):
        event.set()
