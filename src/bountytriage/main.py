"""FastAPI application factory and lifespan management."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bountytriage import __version__
from bountytriage.admission.filter import AdmissionFilter
from bountytriage.admission.oracle import AssessmentOracle, OllamaOracle
from bountytriage.config import settings
from bountytriage.db.engine import create_db_engine, create_session_factory
from bountytriage.logging_config import configure_logging
from bountytriage.queue.priority_queue import TriageQueue
from bountytriage.queue.store import InMemorySortedSetStore, RedisSortedSetStore, SortedSetStore
from bountytriage.services.cve_service import CVEIntakeService
from bountytriage.services.repository_service import RepositoryIntakeService
from bountytriage.services.triage_service import TriageDispatcher, TriageService

# Configure logging at import time
_json_logs = os.environ.get("BOUNTY_LOCAL_MODE", "0") != "1"
configure_logging(log_level=settings.log_level, json_output=_json_logs)

logger = logging.getLogger(__name__)


def configure_pipeline(
    app: FastAPI,
    session_factory,
    store: SortedSetStore,
    oracle: AssessmentOracle,
) -> None:
    """Wire the queue, admission filter and intake services onto ``app.state``."""
    queue = TriageQueue(store, key=settings.queue_key)
    admission_filter = AdmissionFilter(
        oracle,
        timeout_seconds=settings.oracle_timeout_seconds,
        max_complexity=settings.max_complexity,
    )
    triage_service = TriageService(
        session_factory,
        admission_filter,
        queue,
        min_confidence=settings.min_confidence,
        max_time_minutes=settings.max_time_minutes,
        min_bounty_amount=settings.min_bounty_amount,
        max_bounty_amount=settings.max_bounty_amount,
        supported_languages=settings.supported_languages,
    )

    app.state.db_session_factory = session_factory
    app.state.triage_queue = queue
    app.state.triage_service = triage_service
    app.state.triage_dispatcher = TriageDispatcher(triage_service, concurrency=settings.triage_concurrency)
    app.state.cve_service = CVEIntakeService(session_factory)
    app.state.repository_service = RepositoryIntakeService(session_factory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no migrations)
    if "sqlite" in db_url:
        from bountytriage.db.base import Base
        import bountytriage.db.models  # noqa: F401  (registers ORM models)

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine

    redis = None
    if settings.local_mode:
        store: SortedSetStore = InMemorySortedSetStore()
        logger.info("Using in-memory triage queue (local mode)")
    else:
        import redis.asyncio as aioredis

        redis = aioredis.from_url(settings.redis_url, decode_responses=True)
        store = RedisSortedSetStore(redis)
    app.state.redis = redis

    oracle = OllamaOracle(
        settings.oracle_base_url,
        settings.oracle_model,
        timeout=settings.oracle_timeout_seconds,
    )
    configure_pipeline(app, create_session_factory(engine), store, oracle)

    consumer_task = None
    processor = getattr(app.state, "processor", None)
    if processor is not None:
        from bountytriage.workers.consumer import QueueConsumer

        consumer = QueueConsumer(
            app.state.triage_queue,
            app.state.db_session_factory,
            processor,
            poll_interval=settings.consumer_poll_interval,
            backoff_initial=settings.consumer_backoff_initial,
            backoff_max=settings.consumer_backoff_max,
        )
        consumer_task = asyncio.create_task(consumer.run())
    else:
        logger.info("No bounty processor configured, queue consumer disabled")

    logger.info(
        "Bounty triage service started (db=%s, queue=%s)",
        "sqlite" if "sqlite" in db_url else "postgresql",
        "memory" if redis is None else "redis",
    )
    yield

    # Shutdown
    if consumer_task is not None:
        consumer_task.cancel()
        try:
            await consumer_task
        except asyncio.CancelledError:
            pass
    await app.state.triage_dispatcher.close()
    if redis is not None:
        await redis.aclose()
    await engine.dispose()
    logger.info("Bounty triage service shutdown complete")


def create_app(processor=None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``processor`` is the BountyProcessor that works dequeued bounties; without
    one the service only triages and queues.
    """
    app = FastAPI(
        title="Bounty Triage",
        version=__version__,
        description="Webhook-driven intake, admission and prioritization of bounty issues and CVE reports.",
        lifespan=lifespan,
    )
    app.state.processor = processor

    from bountytriage.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from bountytriage.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Prometheus metrics (optional "metrics" extra)
    try:
        from prometheus_fastapi_instrumentator import Instrumentator
        Instrumentator(
            should_group_status_codes=True,
            should_respect_env_var=False,
            excluded_handlers=["/api/health.*", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
    except ImportError:
        logger.debug("prometheus-fastapi-instrumentator not installed, /metrics disabled")

    from bountytriage.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
