"""deadline-tracker - deadline monitoring and cloud sync service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.config import Settings, constants, settings
from src.core.errors import TransportError
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.ports import NotificationSink
from src.core.scheduler import ReminderSupervisor
from src.core.task_store import SqliteTaskStore
from src.interface.asset_store import HttpAssetStore
from src.interface.notification_sink import WebhookNotificationSink, build_notification_sink
from src.interface.quote_client import fetch_quote
from src.interface.remote_replica import HttpRemoteReplica
from src.interface.task_router import router as task_router
from src.services.notification_scheduler import NotificationScheduler
from src.services.sync_reconciler import SyncReconciler
from src.services.task_service import TaskService


logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Explicitly constructed handles shared by the background loop and request handlers."""

    store: SqliteTaskStore
    replica: HttpRemoteReplica
    assets: HttpAssetStore
    sink: NotificationSink
    notifications: NotificationScheduler
    reconciler: SyncReconciler
    tasks: TaskService
    supervisor: ReminderSupervisor

    async def aclose(self) -> None:
        """Stop the reminder loop and release clients; the store is closed last, always."""
        try:
            await self.supervisor.stop()
            await self.replica.aclose()
            await self.assets.aclose()
            if isinstance(self.sink, WebhookNotificationSink):
                await self.sink.aclose()
        finally:
            await self.store.close()


async def build_services(config: Settings) -> AppServices:
    """Open the store and wire every collaborator."""
    store = SqliteTaskStore(config.sqlite_db_path)
    await store.connect()

    replica = HttpRemoteReplica(base_url=config.remote_base_url, auth_token=config.remote_auth_token)
    assets = HttpAssetStore(bucket_url=config.asset_base_url, auth_token=config.asset_auth_token)
    sink = build_notification_sink()
    notifications = NotificationScheduler(store=store, sink=sink)
    reconciler = SyncReconciler(
        store=store,
        replica=replica,
        assets=assets,
        timeout_seconds=config.sync_timeout_seconds,
        user_id=config.remote_user_id,
    )
    tasks = TaskService(store=store, reconciler=reconciler, notifications=notifications)
    supervisor = ReminderSupervisor(engine=notifications, interval_minutes=config.reminder_interval_minutes)

    return AppServices(
        store=store,
        replica=replica,
        assets=assets,
        sink=sink,
        notifications=notifications,
        reconciler=reconciler,
        tasks=tasks,
        supervisor=supervisor,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    services = await build_services(settings)
    app.state.services = services
    logger.info("Task store initialized")

    services.supervisor.start()
    yield
    # Shutdown
    await services.aclose()


app = FastAPI(
    title="deadline-tracker",
    description="Deadline monitoring with local-first cloud sync",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

app.include_router(task_router)


def _services(request: Request) -> AppServices:
    return request.app.state.services


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check(request: Request) -> JSONResponse:
    """Deadline job health with dead letter queue."""
    tracker = _services(request).supervisor.tracker
    job_status = await tracker.get_job_status(constants.REMINDER_JOB_ID)
    dlq = tracker.get_dead_letter_queue()

    overall_status = "degraded" if job_status["consecutive_failures"] > 0 else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": {constants.REMINDER_JOB_ID: job_status},
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )


@app.post("/sync/push")
async def sync_push(request: Request) -> JSONResponse:
    """Push every local task to the remote replica."""
    outcomes = await _services(request).reconciler.push_all()
    return JSONResponse(content={"outcomes": [outcome.model_dump(mode="json") for outcome in outcomes]})


@app.post("/sync/pull")
async def sync_pull(request: Request) -> JSONResponse:
    """Load every remote task into the local store."""
    outcomes = await _services(request).reconciler.pull_all()
    return JSONResponse(content={"outcomes": [outcome.model_dump(mode="json") for outcome in outcomes]})


@app.get("/quote")
async def motivational_quote() -> JSONResponse:
    """Random motivational quote."""
    try:
        quote = await fetch_quote()
    except TransportError as e:
        return JSONResponse(content={"error": str(e)}, status_code=502)
    return JSONResponse(content=quote.model_dump())
