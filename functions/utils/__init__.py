"""Utility modules for MovSense functions."""

from utils.pipeline_logger import (
    configure_logging,
    log_pipeline_start,
    log_pipeline_complete,
    log_pipeline_failed,
    log_phase_start,
    log_phase_complete,
    log_estimate_summary,
)

__all__ = [
    "configure_logging",
    "log_pipeline_start",
    "log_pipeline_complete",
    "log_pipeline_failed",
    "log_phase_start",
    "log_phase_complete",
    "log_estimate_summary",
]
