"""Wire schemas for runs, executions and measurements, plus the page descriptor."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MeasurementUnit(str, Enum):
    BYTES = "BYTES"
    MILLISECONDS = "MILLISECONDS"
    PERCENT = "PERCENT"
    QUERY_PER_SECOND = "QUERY_PER_SECOND"
    NONE = "NONE"


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Measurement(_Schema):
    """A named numeric observation with a unit."""

    name: str = Field(min_length=1, max_length=255)
    value: float = Field(strict=True, allow_inf_nan=False)
    unit: MeasurementUnit


class BenchmarkRunExecution(_Schema):
    sequence_id: str
    started: datetime
    ended: Optional[datetime] = None
    measurements: list[Measurement] = Field(default_factory=list)


class BenchmarkRun(_Schema):
    name: str
    sequence_id: str
    started: datetime
    ended: Optional[datetime] = None
    measurements: list[Measurement] = Field(default_factory=list)
    executions: list[BenchmarkRunExecution] = Field(default_factory=list)


class Benchmark(_Schema):
    """Runs of one named benchmark matching a query, newest first."""

    name: str
    runs: list[BenchmarkRun] = Field(default_factory=list)


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page index and page size."""
    page: int = 0
    size: int = 20

    @property
    def offset(self) -> int:
        return self.page * self.size
