"""BenchmarkTracker: start/finish lifecycle of runs and executions, and run queries."""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from tracker.errors import AlreadyFinished, DuplicateKey, NotFound, ValidationError
from tracker.logging_utils import event_log
from tracker.models import BenchmarkRunRecord, ExecutionRecord, MeasurementRecord
from tracker.repo import BenchmarkRunRepo
from tracker.schemas import Benchmark, BenchmarkRun, Measurement, PageRequest

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_unique_names(measurements: Sequence[Measurement]) -> None:
    seen = set()
    duplicates = []
    for m in measurements:
        if m.name in seen and m.name not in duplicates:
            duplicates.append(m.name)
        seen.add(m.name)
    if duplicates:
        raise ValidationError(f"duplicate measurement names: {', '.join(duplicates)}")


def _to_records(measurements: Sequence[Measurement]) -> list[MeasurementRecord]:
    return [MeasurementRecord(name=m.name, value=m.value, unit=m.unit) for m in measurements]


class BenchmarkTracker:
    """Records benchmark runs and their executions.

    Every call runs in its own session and transaction; any error rolls the
    transaction back so a rejected call leaves no trace.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utc_now):
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _transaction(self) -> Iterator[BenchmarkRunRepo]:
        with self._session_factory() as session, session.begin():
            yield BenchmarkRunRepo(session)

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def _load_run(self, repo: BenchmarkRunRepo, name: str, sequence_id: str, for_update: bool = False):
        run = repo.find_by_name_and_sequence_id(name, sequence_id, for_update=for_update)
        if run is None:
            logger.warning("benchmark run %s/%s not found", name, sequence_id)
            raise NotFound(f"benchmark run {name}/{sequence_id} not found")
        return run

    def start_benchmark_run(self, name: str, sequence_id: str) -> None:
        try:
            with self._transaction() as repo:
                if repo.find_by_name_and_sequence_id(name, sequence_id) is not None:
                    raise DuplicateKey(f"benchmark run {name}/{sequence_id} already started")
                run = BenchmarkRunRecord(name=name, sequence_id=sequence_id, started=self._now())
                repo.add(run)
                started = run.started
        except IntegrityError as e:
            logger.warning("concurrent start of benchmark run %s/%s", name, sequence_id)
            raise DuplicateKey(f"benchmark run {name}/{sequence_id} already started") from e
        except DuplicateKey:
            logger.warning("duplicate start of benchmark run %s/%s", name, sequence_id)
            raise
        event_log("benchmark_run_started", name=name, sequence_id=sequence_id, started=started)

    def finish_benchmark_run(self, name: str, sequence_id: str, measurements: Sequence[Measurement]) -> None:
        check_unique_names(measurements)
        with self._transaction() as repo:
            run = self._load_run(repo, name, sequence_id, for_update=True)
            if run.ended is not None:
                logger.warning("benchmark run %s/%s finished twice", name, sequence_id)
                raise AlreadyFinished(f"benchmark run {name}/{sequence_id} already finished")
            run.ended = self._now()
            run.measurements = _to_records(measurements)
            repo.flush()
            ended = run.ended
        event_log(
            "benchmark_run_finished",
            name=name,
            sequence_id=sequence_id,
            ended=ended,
            measurements=len(measurements),
        )

    def start_execution(self, name: str, sequence_id: str, execution_sequence_id: str) -> None:
        try:
            with self._transaction() as repo:
                run = self._load_run(repo, name, sequence_id, for_update=True)
                if repo.find_execution(run, execution_sequence_id) is not None:
                    raise DuplicateKey(
                        f"execution {execution_sequence_id} of benchmark run {name}/{sequence_id} already started"
                    )
                execution = ExecutionRecord(sequence_id=execution_sequence_id, started=self._now())
                run.executions.append(execution)
                repo.flush()
                started = execution.started
        except IntegrityError as e:
            logger.warning("concurrent start of execution %s/%s/%s", name, sequence_id, execution_sequence_id)
            raise DuplicateKey(
                f"execution {execution_sequence_id} of benchmark run {name}/{sequence_id} already started"
            ) from e
        except DuplicateKey:
            logger.warning("duplicate start of execution %s/%s/%s", name, sequence_id, execution_sequence_id)
            raise
        event_log(
            "execution_started",
            name=name,
            sequence_id=sequence_id,
            execution_sequence_id=execution_sequence_id,
            started=started,
        )

    def finish_execution(
        self,
        name: str,
        sequence_id: str,
        execution_sequence_id: str,
        measurements: Sequence[Measurement],
    ) -> None:
        check_unique_names(measurements)
        with self._transaction() as repo:
            run = self._load_run(repo, name, sequence_id)
            execution = repo.find_execution(run, execution_sequence_id, for_update=True)
            if execution is None:
                logger.warning("execution %s/%s/%s not found", name, sequence_id, execution_sequence_id)
                raise NotFound(f"execution {execution_sequence_id} of benchmark run {name}/{sequence_id} not found")
            if execution.ended is not None:
                logger.warning("execution %s/%s/%s finished twice", name, sequence_id, execution_sequence_id)
                raise AlreadyFinished(
                    f"execution {execution_sequence_id} of benchmark run {name}/{sequence_id} already finished"
                )
            execution.ended = self._now()
            execution.measurements = _to_records(measurements)
            repo.flush()
            ended = execution.ended
        event_log(
            "execution_finished",
            name=name,
            sequence_id=sequence_id,
            execution_sequence_id=execution_sequence_id,
            ended=ended,
            measurements=len(measurements),
        )

    def find_benchmark_run(self, name: str, sequence_id: str) -> BenchmarkRun:
        with self._transaction() as repo:
            run = self._load_run(repo, name, sequence_id)
            return BenchmarkRun.model_validate(run)

    def find_benchmark(
        self,
        name: str,
        started_from: Optional[datetime] = None,
        started_to: Optional[datetime] = None,
        page: PageRequest = PageRequest(),
    ) -> Benchmark:
        try:
            started_from, started_to = as_utc(started_from), as_utc(started_to)
        except OverflowError as e:
            raise ValidationError("time range bound is outside the supported date-time range") from e
        if started_from is not None and started_to is not None and started_from > started_to:
            raise ValidationError(
                f"'from' ({started_from.isoformat()}) is after 'to' ({started_to.isoformat()})"
            )
        with self._transaction() as repo:
            runs = repo.find_by_name_and_started_between(
                name, started_from, started_to, offset=page.offset, limit=page.size
            )
            return Benchmark(name=name, runs=[BenchmarkRun.model_validate(r) for r in runs])

    def find_latest(self, page: PageRequest = PageRequest()) -> list[BenchmarkRun]:
        with self._transaction() as repo:
            runs = repo.find_latest(offset=page.offset, limit=page.size)
            return [BenchmarkRun.model_validate(r) for r in runs]
