"""Benchmark run tracker: lifecycle, measurements and queries."""

from tracker.schemas import Benchmark, BenchmarkRun, BenchmarkRunExecution, Measurement, MeasurementUnit, PageRequest
from tracker.service import BenchmarkTracker

__all__ = [
    "Benchmark",
    "BenchmarkRun",
    "BenchmarkRunExecution",
    "BenchmarkTracker",
    "Measurement",
    "MeasurementUnit",
    "PageRequest",
]
