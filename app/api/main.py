"""FastAPI: /v1/benchmark run lifecycle and queries, /health."""

import logging
import re
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pydantic
from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, Response
from fastapi import Path as PathParam
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tracker.config import ServiceConfig
from tracker.db import create_session_factory
from tracker.errors import TrackerError, ValidationError
from tracker.logging_utils import clear_event_log_path, configure_root_logging, set_event_log_path
from tracker.schemas import Benchmark, BenchmarkRun, Measurement, PageRequest
from tracker.service import BenchmarkTracker, as_utc

logger = logging.getLogger(__name__)

_ZONE_ID_SUFFIX = re.compile(r"\[[^\]]*\]$")
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
MAX_OFFSET = 2**62
KEY_LENGTH = 255
_datetime_adapter = pydantic.TypeAdapter(datetime)

Key = Annotated[str, PathParam(min_length=1, max_length=KEY_LENGTH)]


def parse_timestamp(value: Optional[str], param: str) -> Optional[datetime]:
    """Parse an ISO-8601 date-time query parameter into UTC; a trailing [Region/Id] is ignored."""
    if value is None or value == "":
        return None
    text = _ZONE_ID_SUFFIX.sub("", value.strip())
    if "T" in text:
        # '+' in an unencoded query string arrives as a space
        text = text.replace(" ", "+")
    if not _ISO_DATE_PREFIX.match(text):
        raise ValidationError(f"'{param}' is not an ISO-8601 date-time: {value!r}")
    try:
        return as_utc(_datetime_adapter.validate_python(text))
    except pydantic.ValidationError as e:
        raise ValidationError(f"'{param}' is not an ISO-8601 date-time: {value!r}") from e
    except OverflowError as e:
        raise ValidationError(f"'{param}' is out of the supported date-time range: {value!r}") from e


def page_request(page: int, size: Optional[int], config: ServiceConfig) -> PageRequest:
    if page < 0:
        raise ValidationError("'page' must be >= 0")
    if size is None:
        size = config.default_page_size
    if size < 1 or size > config.max_page_size:
        raise ValidationError(f"'size' must be between 1 and {config.max_page_size}")
    if page * size > MAX_OFFSET:
        raise ValidationError(f"'page' is too large for page size {size}")
    return PageRequest(page=page, size=size)


def get_tracker(request: Request) -> BenchmarkTracker:
    return request.app.state.tracker


def get_config(request: Request) -> ServiceConfig:
    return request.app.state.config


router = APIRouter(prefix="/v1/benchmark")


@router.post("/{name}/{sequence_id}/start")
def start_benchmark(name: Key, sequence_id: Key, tracker: BenchmarkTracker = Depends(get_tracker)):
    tracker.start_benchmark_run(name, sequence_id)
    return Response(status_code=200)


@router.post("/{name}/{sequence_id}/finish")
def finish_benchmark(
    name: Key,
    sequence_id: Key,
    measurements: Optional[list[Measurement]] = Body(default=None),
    tracker: BenchmarkTracker = Depends(get_tracker),
):
    tracker.finish_benchmark_run(name, sequence_id, measurements or [])
    return Response(status_code=200)


@router.post("/{name}/{sequence_id}/execution/{execution_sequence_id}/start")
def start_execution(
    name: Key,
    sequence_id: Key,
    execution_sequence_id: Key,
    tracker: BenchmarkTracker = Depends(get_tracker),
):
    tracker.start_execution(name, sequence_id, execution_sequence_id)
    return Response(status_code=200)


@router.post("/{name}/{sequence_id}/execution/{execution_sequence_id}/finish")
def finish_execution(
    name: Key,
    sequence_id: Key,
    execution_sequence_id: Key,
    measurements: Optional[list[Measurement]] = Body(default=None),
    tracker: BenchmarkTracker = Depends(get_tracker),
):
    tracker.finish_execution(name, sequence_id, execution_sequence_id, measurements or [])
    return Response(status_code=200)


@router.get("/latest", response_model=list[BenchmarkRun])
def find_latest_benchmark_runs(
    page: int = Query(default=0),
    size: Optional[int] = Query(default=None),
    tracker: BenchmarkTracker = Depends(get_tracker),
    config: ServiceConfig = Depends(get_config),
):
    return tracker.find_latest(page_request(page, size, config))


@router.get("/{name}/{sequence_id}", response_model=BenchmarkRun)
def find_benchmark_run(name: Key, sequence_id: Key, tracker: BenchmarkTracker = Depends(get_tracker)):
    return tracker.find_benchmark_run(name, sequence_id)


@router.get("/{name}", response_model=Benchmark)
def find_benchmark(
    name: Key,
    started_from: Optional[str] = Query(default=None, alias="from"),
    started_to: Optional[str] = Query(default=None, alias="to"),
    page: int = Query(default=0),
    size: Optional[int] = Query(default=None),
    tracker: BenchmarkTracker = Depends(get_tracker),
    config: ServiceConfig = Depends(get_config),
):
    return tracker.find_benchmark(
        name,
        parse_timestamp(started_from, "from"),
        parse_timestamp(started_to, "to"),
        page_request(page, size, config),
    )


def _tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": ValidationError.kind, "detail": problems})


def _persistence_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "PersistenceError", "detail": "persistence failure"})


def create_app(tracker: Optional[BenchmarkTracker] = None, config: Optional[ServiceConfig] = None) -> FastAPI:
    """Build the API; without a tracker one is created from config on startup."""
    config = config or ServiceConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_root_logging(config.log_level.upper())
        if config.event_log_path:
            set_event_log_path(config.event_log_path)
        if getattr(app.state, "tracker", None) is None:
            app.state.tracker = BenchmarkTracker(create_session_factory(config))
        logger.info("benchmark service ready")
        try:
            yield
        finally:
            clear_event_log_path()

    app = FastAPI(title="Benchmark Service API", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.tracker = tracker
    app.include_router(router)
    app.add_exception_handler(TrackerError, _tracker_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(SQLAlchemyError, _persistence_error)

    @app.get("/health")
    def health():
        return {"status": "ok", "message": "Benchmark Service API"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _config = app.state.config
    uvicorn.run(app, host=_config.host, port=_config.port)
