"""SQLAlchemy tables for benchmark runs, executions and measurements."""

from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from tracker.schemas import MeasurementUnit


class UTCDateTime(sa.types.TypeDecorator):
    """Stores naive UTC, returns timezone-aware UTC."""

    impl = sa.DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime not allowed; pass an aware UTC timestamp")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class MeasurementRecord(Base):
    __tablename__ = "measurements"
    __table_args__ = (
        sa.UniqueConstraint("run_id", "name", name="uq_measurement_run_name"),
        sa.UniqueConstraint("execution_id", "name", name="uq_measurement_execution_name"),
        sa.CheckConstraint(
            "(run_id IS NULL) <> (execution_id IS NULL)",
            name="ck_measurement_single_owner",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    value: Mapped[float] = mapped_column(sa.Float, nullable=False)
    unit: Mapped[MeasurementUnit] = mapped_column(
        sa.Enum(MeasurementUnit, native_enum=False, length=32), nullable=False
    )

    run_id: Mapped[Optional[int]] = mapped_column(
        sa.ForeignKey("benchmark_runs.id", ondelete="CASCADE"), nullable=True, index=True
    )
    execution_id: Mapped[Optional[int]] = mapped_column(
        sa.ForeignKey("benchmark_run_executions.id", ondelete="CASCADE"), nullable=True, index=True
    )

    def __repr__(self):
        return f"<MeasurementRecord(name={self.name!r}, value={self.value}, unit={self.unit.value})>"


class BenchmarkRunRecord(Base):
    __tablename__ = "benchmark_runs"
    __table_args__ = (
        sa.UniqueConstraint("name", "sequence_id", name="uq_benchmark_run_name_sequence"),
        sa.Index("ix_benchmark_runs_name_started", "name", "started"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    sequence_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    started: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    measurements: Mapped[list[MeasurementRecord]] = relationship(
        primaryjoin="MeasurementRecord.run_id == BenchmarkRunRecord.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MeasurementRecord.id",
    )
    executions: Mapped[list["ExecutionRecord"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ExecutionRecord.id",
    )

    def __repr__(self):
        return f"<BenchmarkRunRecord(id={self.id}, name={self.name!r}, sequence_id={self.sequence_id!r})>"


class ExecutionRecord(Base):
    __tablename__ = "benchmark_run_executions"
    __table_args__ = (
        sa.UniqueConstraint("run_id", "sequence_id", name="uq_execution_run_sequence"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sequence_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    started: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    run_id: Mapped[int] = mapped_column(
        sa.ForeignKey("benchmark_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    run: Mapped[BenchmarkRunRecord] = relationship(back_populates="executions")

    measurements: Mapped[list[MeasurementRecord]] = relationship(
        primaryjoin="MeasurementRecord.execution_id == ExecutionRecord.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MeasurementRecord.id",
    )

    def __repr__(self):
        return f"<ExecutionRecord(id={self.id}, sequence_id={self.sequence_id!r})>"
