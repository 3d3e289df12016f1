import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

from fastapi import FastAPI, Request

from automodel.api.auto import router as auto_router
from automodel.container import build_container

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):  # type: ignore[no-untyped-def]
    _app.state.started_at = datetime.now(UTC).isoformat()
    unsubscribe = _app.state.container.selection_state.subscribe(_log_selection_change)
    yield
    unsubscribe()
    await _app.state.container.aclose()


app = FastAPI(title="Automodel Backend", version="0.1.0", lifespan=lifespan)
app.state.container = build_container()
app.include_router(auto_router)


@app.middleware("http")
async def attach_trace_id(request: Request, call_next):  # type: ignore[no-untyped-def]
    trace_id = request.headers.get("x-trace-id") or str(uuid4())
    request.state.trace_id = trace_id
    response = await call_next(request)
    response.headers["x-trace-id"] = trace_id
    return response


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok", "service": "automodel"}


def _log_selection_change(model_name: str) -> None:
    logger.info("auto_display_name_updated model_name=%s", model_name)
