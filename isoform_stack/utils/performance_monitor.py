#!/usr/bin/env python3

"""
Performance monitoring for stack file scans.

Tracks time, throughput and resident memory of each scan phase. Stack files
can reach 2 GB, so every chunk is accounted for and memory can optionally be
held under a limit.
"""

import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional, Dict, Any

import psutil

from ..core.exceptions import MemoryLimitError


@dataclass
class ScanMetrics:
    """Container for the metrics of one scan phase."""
    start_time: float
    end_time: Optional[float] = None
    peak_memory_mb: float = 0.0
    current_memory_mb: float = 0.0
    chunks_count: int = 0
    lines_count: int = 0
    bytes_count: int = 0
    phase_name: str = ""

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        if self.end_time is None:
            return time.time() - self.start_time
        return self.end_time - self.start_time

    @property
    def megabytes_per_second(self) -> float:
        elapsed = self.elapsed_time
        if elapsed > 0 and self.bytes_count > 0:
            return self.bytes_count / 1024 / 1024 / elapsed
        return 0.0


class PerformanceMonitor:
    """Per-phase time and memory accounting."""

    def __init__(self, memory_limit_mb: int = 4096, enforce_limit: bool = True):
        self.memory_limit_mb = memory_limit_mb
        self.enforce_limit = enforce_limit
        self.start_time = time.time()
        self.phase_metrics: Dict[str, ScanMetrics] = {}
        self.current_phase: Optional[str] = None

        try:
            self.process = psutil.Process()
        except psutil.Error as e:
            self.process = None
            logging.warning(f"Cannot inspect current process, memory monitoring disabled: {e}")

    def get_memory_usage(self) -> float:
        """Get current memory usage in MB."""
        if not self.process:
            return 0.0

        try:
            memory_mb = self.process.memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            logging.warning(f"Error getting memory usage: {e}")
            return 0.0

        if self.current_phase and self.current_phase in self.phase_metrics:
            metrics = self.phase_metrics[self.current_phase]
            metrics.current_memory_mb = memory_mb
            metrics.peak_memory_mb = max(metrics.peak_memory_mb, memory_mb)

        return memory_mb

    def check_memory_limit(self) -> bool:
        """Raise MemoryLimitError if usage exceeds the limit."""
        current_memory = self.get_memory_usage()

        if self.enforce_limit and current_memory > self.memory_limit_mb:
            error_msg = "Memory usage exceeded limit"
            logging.warning(f"{error_msg}: {current_memory:.1f}MB > {self.memory_limit_mb}MB")
            raise MemoryLimitError(error_msg, current_memory, self.memory_limit_mb)

        return True

    def start_phase(self, phase_name: str) -> None:
        """Start monitoring a scan phase."""
        if self.current_phase:
            self.end_phase()

        self.current_phase = phase_name
        self.phase_metrics[phase_name] = ScanMetrics(
            start_time=time.time(),
            phase_name=phase_name,
        )
        self.get_memory_usage()

        logging.info(f"Started phase: {phase_name}")

    def end_phase(self) -> Optional[ScanMetrics]:
        """End the current phase and return its metrics."""
        if not self.current_phase:
            return None

        metrics = self.phase_metrics[self.current_phase]
        self.get_memory_usage()
        metrics.end_time = time.time()

        logging.info(f"Completed phase {self.current_phase} in {metrics.elapsed_time:.2f}s "
                     f"({metrics.chunks_count} chunks, {metrics.lines_count} lines, "
                     f"peak memory: {metrics.peak_memory_mb:.1f}MB)")

        self.current_phase = None
        return metrics

    def record_chunk(self, num_bytes: int, num_lines: int) -> None:
        """Account for one processed chunk and check memory."""
        if self.current_phase and self.current_phase in self.phase_metrics:
            metrics = self.phase_metrics[self.current_phase]
            metrics.chunks_count += 1
            metrics.bytes_count += max(num_bytes, 0)
            metrics.lines_count += num_lines
        self.check_memory_limit()

    @contextmanager
    def phase_context(self, phase_name: str):
        """Context manager for monitoring a phase."""
        self.start_phase(phase_name)
        try:
            yield self.phase_metrics[phase_name]
        finally:
            self.end_phase()

    def get_total_elapsed_time(self) -> float:
        """Get total elapsed time since monitor creation."""
        return time.time() - self.start_time

    def get_peak_memory(self) -> float:
        """Get peak memory usage across all phases."""
        if not self.phase_metrics:
            return self.get_memory_usage()

        return max(metrics.peak_memory_mb for metrics in self.phase_metrics.values())

    def get_performance_summary(self) -> Dict[str, Any]:
        """Get performance summary of all phases."""
        summary = {
            "total_elapsed_time": self.get_total_elapsed_time(),
            "peak_memory_mb": self.get_peak_memory(),
            "memory_limit_mb": self.memory_limit_mb,
            "phases": {}
        }

        for phase_name, metrics in self.phase_metrics.items():
            summary["phases"][phase_name] = {
                "elapsed_time": metrics.elapsed_time,
                "chunks_count": metrics.chunks_count,
                "lines_count": metrics.lines_count,
                "bytes_count": metrics.bytes_count,
                "megabytes_per_second": metrics.megabytes_per_second,
                "peak_memory_mb": metrics.peak_memory_mb
            }

        return summary

    def log_performance_report(self) -> None:
        """Log performance report."""
        summary = self.get_performance_summary()

        logging.info("=" * 50)
        logging.info("PERFORMANCE REPORT")
        logging.info("=" * 50)
        logging.info(f"Total time: {summary['total_elapsed_time']:.2f} seconds")
        logging.info(f"Peak memory: {summary['peak_memory_mb']:.1f} MB")
        logging.info(f"Memory limit: {summary['memory_limit_mb']} MB")

        if summary['phases']:
            logging.info("Phase breakdown:")
            for phase_name, phase_data in summary['phases'].items():
                logging.info(f"  {phase_name}: {phase_data['elapsed_time']:.2f}s "
                             f"({phase_data['chunks_count']} chunks, "
                             f"{phase_data['lines_count']} lines, "
                             f"{phase_data['megabytes_per_second']:.1f} MB/s, "
                             f"{phase_data['peak_memory_mb']:.1f}MB)")
