"""Pipeline Logger for MovSense.

Provides highly visible, formatted logging for pipeline phases with
distinctive visual markers that stand out in log streams, plus the
structlog configuration shared by the entry points.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
PHASE_BANNER_CHAR = "═"
SUMMARY_BANNER_CHAR = "─"
PIPELINE_BANNER_CHAR = "█"


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog with ISO timestamps and console or JSON rendering."""
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=False,
    )


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_pipeline_start(pipeline: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Log pipeline start with prominent banner."""
    print("\n")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PIPELINE_BANNER_CHAR, f"MOVSENSE {pipeline.upper()} PIPELINE STARTED"))
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Timestamp   : {_timestamp()}")
    for key, value in (details or {}).items():
        print(f"║ {key:<11} : {value}")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info("pipeline_start_logged", pipeline=pipeline, **(details or {}))


def log_phase_start(pipeline: str, phase: str, number: int, total: int) -> None:
    """Log when a pipeline phase starts."""
    print(PHASE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PHASE_BANNER_CHAR, f"▶ PHASE {number}/{total}: {phase.upper()}"))
    print(PHASE_BANNER_CHAR * BANNER_WIDTH)

    logger.info("phase_start_logged", pipeline=pipeline, phase=phase, number=number)


def log_phase_complete(
    pipeline: str,
    phase: str,
    duration_ms: int,
    summary: Optional[Dict[str, Any]] = None
) -> None:
    """Log phase completion with a short summary."""
    print(f"║ ✓ {phase} completed in {duration_ms:,} ms")
    for key, value in (summary or {}).items():
        print(f"║   {key}: {value}")
    print(SUMMARY_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "phase_complete_logged",
        pipeline=pipeline,
        phase=phase,
        duration_ms=duration_ms,
        **(summary or {})
    )


def log_pipeline_complete(pipeline: str, duration_ms: int, completed_phases: List[str]) -> None:
    """Log pipeline completion with summary."""
    print("\n")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PIPELINE_BANNER_CHAR, "✓ PIPELINE COMPLETED SUCCESSFULLY"))
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Pipeline         : {pipeline}")
    print(f"║ Timestamp        : {_timestamp()}")
    print(f"║ Duration         : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)")
    print(f"║ Completed Phases : {', '.join(completed_phases)}")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info("pipeline_complete_logged", pipeline=pipeline, duration_ms=duration_ms)


def log_pipeline_failed(
    pipeline: str,
    failed_phase: str,
    error: str,
    completed_phases: List[str]
) -> None:
    """Log pipeline failure with details."""
    print("\n")
    print("!" * BANNER_WIDTH)
    print(_create_banner("!", "✗ PIPELINE FAILED"))
    print("!" * BANNER_WIDTH)
    print(f"║ Pipeline         : {pipeline}")
    print(f"║ Timestamp        : {_timestamp()}")
    print(f"║ Failed Phase     : {failed_phase}")
    print(f"║ Error            : {error}")
    print(f"║ Completed Before : {', '.join(completed_phases) if completed_phases else 'None'}")
    print("!" * BANNER_WIDTH)
    print("\n")

    logger.error(
        "pipeline_failed_logged",
        pipeline=pipeline,
        failed_phase=failed_phase,
        error=error
    )


def log_estimate_summary(
    hours_standard: float,
    hours_conservative: float,
    crew: int,
    trucks: int,
    total_after_tax: float,
    degraded: bool,
    warnings: Optional[List[str]] = None
) -> None:
    """Log the priced estimate in a compact box."""
    title = "ESTIMATE (DEGRADED FALLBACK)" if degraded else "ESTIMATE"
    print(SUMMARY_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(SUMMARY_BANNER_CHAR, title))
    print(f"│ Hours        : {hours_standard:g} standard / {hours_conservative:g} conservative")
    print(f"│ Crew         : {crew} movers, {trucks} truck(s)")
    print(f"│ Total        : ${total_after_tax:,.2f} after tax")
    for warning in warnings or []:
        print(f"│ ⚠ {warning}")
    print(SUMMARY_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "estimate_summary_logged",
        hours_standard=hours_standard,
        crew=crew,
        trucks=trucks,
        total_after_tax=total_after_tax,
        degraded=degraded,
        warnings=len(warnings or []),
    )
