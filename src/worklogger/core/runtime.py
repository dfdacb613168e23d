import asyncio
import logging
from dataclasses import dataclass

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from slack_sdk.web.async_client import AsyncWebClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from worklogger.configs.store import SqlAlchemyWorkConfigStore, ensure_work_config_schema
from worklogger.core.config import Settings, settings
from worklogger.core.scheduler import get_scheduler
from worklogger.reconcile.daily import DailyReconcileJob
from worklogger.reconcile.engine import Reconciler
from worklogger.reconcile.on_demand import OnDemandReview
from worklogger.reconcile.sink import LoggingResultSink, ResultSink, SlackResultSink
from worklogger.resilience.breaker import CircuitBreaker
from worklogger.resilience.rate_limit import RateLimiter
from worklogger.resilience.retry import RetryOptions
from worklogger.tracker.client import JiraClient

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    scheduler: AsyncIOScheduler
    engine: AsyncEngine
    config_store: SqlAlchemyWorkConfigStore
    http: httpx.AsyncClient
    tracker: JiraClient
    reconciler: Reconciler
    rate_limiter: RateLimiter
    on_demand: OnDemandReview
    daily_job: DailyReconcileJob
    sink: ResultSink


_runtime: Runtime | None = None
_runtime_lock = asyncio.Lock()


def _coerce_async_database_url(database_url: str) -> str:
    if database_url.startswith("sqlite+aiosqlite://"):
        return database_url
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def _build_sink(app_settings: Settings) -> ResultSink:
    if app_settings.slack_bot_token:
        return SlackResultSink(AsyncWebClient(token=app_settings.slack_bot_token))
    logger.info("SLACK_BOT_TOKEN not set; reconciliation outcomes are only logged")
    return LoggingResultSink()


async def _create_runtime(app_settings: Settings) -> Runtime:
    engine = create_async_engine(_coerce_async_database_url(app_settings.database_url))
    await ensure_work_config_schema(engine)
    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
    config_store = SqlAlchemyWorkConfigStore(sessionmaker)

    http = httpx.AsyncClient(timeout=app_settings.http_timeout_s)
    breaker = CircuitBreaker(
        name="jira",
        failure_threshold=app_settings.breaker_failure_threshold,
        recovery_time_ms=app_settings.breaker_recovery_time_ms,
    )
    retry_options = RetryOptions(
        max_attempts=app_settings.retry_max_attempts,
        base_delay_ms=app_settings.retry_base_delay_ms,
        max_delay_ms=app_settings.retry_max_delay_ms,
        exponential_base=app_settings.retry_exponential_base,
        jitter=app_settings.retry_jitter,
    )
    tracker = JiraClient(
        http,
        breaker=breaker,
        retry_options=retry_options,
        worklog_timezone=app_settings.worklog_timezone,
    )
    reconciler = Reconciler(tracker)
    rate_limiter = RateLimiter()
    sink = _build_sink(app_settings)
    daily_job = DailyReconcileJob(
        reconciler,
        config_store,
        sink,
        concurrency=app_settings.reconcile_concurrency,
    )

    scheduler = get_scheduler()
    daily_job.schedule(scheduler)
    if not scheduler.running:
        scheduler.start()
    rate_limiter.start_sweeper(app_settings.rate_limit_sweep_interval_s)
    logger.info("Worklogger runtime started")

    return Runtime(
        scheduler=scheduler,
        engine=engine,
        config_store=config_store,
        http=http,
        tracker=tracker,
        reconciler=reconciler,
        rate_limiter=rate_limiter,
        on_demand=OnDemandReview(reconciler, rate_limiter),
        daily_job=daily_job,
        sink=sink,
    )


async def initialize_runtime(app_settings: Settings | None = None) -> Runtime:
    """Build the runtime once and reuse it on later calls."""
    global _runtime
    if _runtime:
        return _runtime

    async with _runtime_lock:
        if _runtime:
            return _runtime
        _runtime = await _create_runtime(app_settings or settings)
        return _runtime


async def shutdown_runtime() -> None:
    """Stop the scheduler and sweeper and release network and database handles."""
    global _runtime
    async with _runtime_lock:
        runtime = _runtime
        if runtime is None:
            return
        _runtime = None

    if runtime.scheduler.running:
        runtime.scheduler.shutdown(wait=False)
    await runtime.rate_limiter.stop_sweeper()
    await runtime.http.aclose()
    await runtime.engine.dispose()
    logger.info("Worklogger runtime stopped")


__all__ = ["Runtime", "initialize_runtime", "shutdown_runtime"]
