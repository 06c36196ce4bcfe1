"""Persistence queries over benchmark runs, bound to one session."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Session, selectinload

from tracker.models import BenchmarkRunRecord, ExecutionRecord

_RUN_GRAPH = (
    selectinload(BenchmarkRunRecord.measurements),
    selectinload(BenchmarkRunRecord.executions).selectinload(ExecutionRecord.measurements),
)


class BenchmarkRunRepo:
    """Load and save runs by natural key, query by start time and latest per name."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, run: BenchmarkRunRecord) -> None:
        self.session.add(run)
        self.session.flush()

    def flush(self) -> None:
        self.session.flush()

    def find_by_name_and_sequence_id(
        self, name: str, sequence_id: str, for_update: bool = False
    ) -> Optional[BenchmarkRunRecord]:
        stmt = (
            sa.select(BenchmarkRunRecord)
            .where(BenchmarkRunRecord.name == name, BenchmarkRunRecord.sequence_id == sequence_id)
            .options(*_RUN_GRAPH)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).one_or_none()

    def find_execution(
        self, run: BenchmarkRunRecord, execution_sequence_id: str, for_update: bool = False
    ) -> Optional[ExecutionRecord]:
        stmt = (
            sa.select(ExecutionRecord)
            .where(ExecutionRecord.run_id == run.id, ExecutionRecord.sequence_id == execution_sequence_id)
            .options(selectinload(ExecutionRecord.measurements))
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).one_or_none()

    def find_by_name_and_started_between(
        self,
        name: str,
        started_from: Optional[datetime],
        started_to: Optional[datetime],
        offset: int,
        limit: int,
    ) -> list[BenchmarkRunRecord]:
        """Runs named `name` with started in [started_from, started_to], newest first."""
        stmt = sa.select(BenchmarkRunRecord).where(BenchmarkRunRecord.name == name)
        if started_from is not None:
            stmt = stmt.where(BenchmarkRunRecord.started >= started_from)
        if started_to is not None:
            stmt = stmt.where(BenchmarkRunRecord.started <= started_to)
        stmt = (
            stmt.order_by(BenchmarkRunRecord.started.desc(), BenchmarkRunRecord.id.desc())
            .offset(offset)
            .limit(limit)
            .options(*_RUN_GRAPH)
        )
        return list(self.session.scalars(stmt))

    def find_latest(self, offset: int, limit: int) -> list[BenchmarkRunRecord]:
        """Most recently started run of each distinct name, newest first."""
        ranked = sa.select(
            BenchmarkRunRecord.id.label("run_id"),
            sa.func.row_number()
            .over(
                partition_by=BenchmarkRunRecord.name,
                order_by=(BenchmarkRunRecord.started.desc(), BenchmarkRunRecord.id.desc()),
            )
            .label("position"),
        ).subquery()
        stmt = (
            sa.select(BenchmarkRunRecord)
            .join(ranked, ranked.c.run_id == BenchmarkRunRecord.id)
            .where(ranked.c.position == 1)
            .order_by(BenchmarkRunRecord.started.desc(), BenchmarkRunRecord.id.desc())
            .offset(offset)
            .limit(limit)
            .options(*_RUN_GRAPH)
        )
        return list(self.session.scalars(stmt))
