import asyncio
import logging

from fastapi import FastAPI

from matrix_live.api.auth import access_code_middleware
from matrix_live.api.routes import router as api_router
from matrix_live.jobs.poller import poll_loop
from matrix_live.state import aggregator, close_poller, get_poller, settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("main")

app = FastAPI(title="Matrix Live API", version="0.1.0")
app.middleware("http")(access_code_middleware(settings.auth_code))
app.include_router(api_router)

_tasks: list[asyncio.Task] = []


@app.on_event("startup")
async def _startup():
    if not settings.poll_enabled:
        log.warning("Poller disabled (POLL_ENABLED=false)")
        return

    try:
        poller = get_poller()
    except (RuntimeError, ValueError) as e:
        # App still serves whatever was persisted; /api/poll-gaggle will report the same error.
        log.error("Poller not started error=%s", e)
        return

    _tasks.append(asyncio.create_task(poll_loop(poller, settings.poll_interval_seconds)))
    log.info("Poller started interval_seconds=%s", settings.poll_interval_seconds)


@app.on_event("shutdown")
async def _shutdown():
    for task in _tasks:
        task.cancel()
    _tasks.clear()
    close_poller()


@app.get("/health")
def health():
    return {
        "status": "ok",
        "app_env": settings.app_env,
        "provider_config": settings.provider,
        "symbol_prefix": settings.symbol_prefix,
        "max_series_points": aggregator.max_length,
        "series_count": len(aggregator.all()),
        "poll_enabled": settings.poll_enabled,
    }
