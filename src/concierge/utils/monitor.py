"""
Process monitoring for tracking pipeline execution.

Collects one entry per pipeline stage while a request is processed and batch
posts them to the database at completion. Each request runs in its own asyncio
task, so the active run is tracked in a context variable and concurrent requests
never share entries.
"""

from contextvars import ContextVar
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..connections.postgres_connector import insert_many_async
from .logging import get_logger
from .settings import config

logger = get_logger()

MONITOR_TABLE = "process_monitor_logs"

# Entries per run uuid
_runs: Dict[str, Dict[str, Any]] = {}
_current_run: ContextVar[Optional[str]] = ContextVar("concierge_monitor_run", default=None)


def initialize_monitor(run_uuid: str, model_name: str) -> None:
    """
    Initialize monitoring for a pipeline run in the current context.

    Args:
        run_uuid: Unique identifier for this run (the correlation id)
        model_name: Name of the pipeline being executed
    """
    _runs[run_uuid] = {"model_name": model_name, "entries": []}
    _current_run.set(run_uuid)

    logger.debug("monitor.initialized", run_uuid=run_uuid, model_name=model_name)


def _active_run() -> Optional[Dict[str, Any]]:
    run_uuid = _current_run.get()
    if run_uuid is None:
        return None
    return _runs.get(run_uuid)


def add_monitor_entry(  # pylint: disable=too-many-arguments
    # pylint: disable=too-many-positional-arguments
    # Monitoring captures the full set of stage metrics in one call.
    stage_name: str,
    stage_start_time: datetime,
    stage_end_time: Optional[datetime] = None,
    status: str = "Success",
    llm_calls: Optional[List[Dict]] = None,
    decision_details: Optional[str] = None,
    error_message: Optional[str] = None,
    custom_metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a monitor entry for a completed stage.

    Args:
        stage_name: Name of the processing stage
        stage_start_time: When the stage started
        stage_end_time: When the stage ended (defaults to now)
        status: Status of the stage (Success, Failure, Skipped)
        llm_calls: LLM call records made during the stage
        decision_details: Human-readable summary of what the stage decided
        error_message: Error message if the stage failed
        custom_metadata: Any extra structured details
    """
    run = _active_run()
    if run is None:
        logger.warning("monitor.not_initialized", stage_name=stage_name)
        return

    if stage_end_time is None:
        stage_end_time = datetime.now(timezone.utc)

    # Sub-millisecond stages still report 1ms
    time_delta = (stage_end_time - stage_start_time).total_seconds() * 1000
    duration_ms = max(1, int(time_delta)) if time_delta > 0 else 0

    total_tokens = 0
    total_cost = Decimal("0")
    for call in llm_calls or []:
        total_tokens += call.get("total_tokens", 0)
        total_cost += Decimal(str(call.get("cost", 0)))

    # Every key present so batch inserts have a uniform column set
    entry = {
        "run_uuid": _current_run.get(),
        "model_name": run["model_name"],
        "stage_name": stage_name,
        "stage_start_time": stage_start_time,
        "stage_end_time": stage_end_time,
        "duration_ms": duration_ms,
        "status": status,
        "environment": config.environment,
        "llm_calls": llm_calls or None,
        "total_tokens": total_tokens if llm_calls else None,
        "total_cost": total_cost if llm_calls else None,
        "decision_details": decision_details or None,
        "error_message": error_message or None,
        "custom_metadata": custom_metadata or None,
    }
    run["entries"].append(entry)

    logger.debug(
        "monitor.entry_added",
        stage_name=stage_name,
        status=status,
        duration_ms=duration_ms,
        total_entries=len(run["entries"]),
    )


def get_monitor_entries() -> List[Dict[str, Any]]:
    """
    Get the current run's monitor entries without posting.

    Returns:
        Copy of the entry list (empty if no run is active)
    """
    run = _active_run()
    return list(run["entries"]) if run else []


def clear_monitor_entries() -> None:
    """Drop the current run and its entries without posting."""
    run_uuid = _current_run.get()
    if run_uuid is not None:
        _runs.pop(run_uuid, None)
    _current_run.set(None)


async def post_monitor_entries_async(execution_id: Optional[str] = None) -> int:
    """
    Post the current run's entries to the database and release the run.

    Posting is skipped when monitoring is disabled. Database failures are logged
    and reported as zero rows; they never fail the request.

    Args:
        execution_id: Execution id for logging

    Returns:
        Number of entries posted
    """
    run = _active_run()
    entries = run["entries"] if run else []

    if not entries:
        clear_monitor_entries()
        return 0

    if not config.monitor_enabled:
        logger.debug("monitor.post_skipped", execution_id=execution_id, entries=len(entries))
        clear_monitor_entries()
        return 0

    try:
        rows = await insert_many_async(MONITOR_TABLE, entries, execution_id=execution_id)
        logger.info("monitor.posted", execution_id=execution_id, entries_posted=rows)
        return rows
    except Exception as e:  # pylint: disable=broad-exception-caught
        # Monitoring must never break the user-facing response.
        logger.error(
            "monitor.post_failed",
            execution_id=execution_id,
            error=str(e),
            entry_count=len(entries),
        )
        return 0
    finally:
        clear_monitor_entries()


def format_llm_call(
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    cost: float,
    duration_ms: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Format an LLM call record for a monitor entry.

    Args:
        model: Model name
        prompt_tokens: Number of prompt tokens
        completion_tokens: Number of completion tokens
        cost: Cost in USD
        duration_ms: Optional duration in milliseconds

    Returns:
        LLM call dictionary
    """
    call = {
        "model": model,
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
        "cost": cost,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if duration_ms:
        call["duration_ms"] = duration_ms

    return call
