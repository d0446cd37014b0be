"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_stage_name: ContextVar[str] = ContextVar("stage_name", default="")
_worker_id: ContextVar[str] = ContextVar("worker_id", default="")
_cycle_id: ContextVar[str] = ContextVar("cycle_id", default="")
_ingest_id: ContextVar[str] = ContextVar("ingest_id", default="")


def set_log_context(
    stage: Optional[str] = None,
    worker_id: Optional[str] = None,
    cycle_id: Optional[str] = None,
    ingest_id: Optional[str] = None,
) -> None:
    if stage is not None:
        _stage_name.set(stage)
    if worker_id is not None:
        _worker_id.set(worker_id)
    if cycle_id is not None:
        _cycle_id.set(cycle_id)
    if ingest_id is not None:
        _ingest_id.set(ingest_id)


def get_log_context() -> Dict[str, str]:
    return {
        "stage": _stage_name.get(),
        "worker_id": _worker_id.get(),
        "cycle_id": _cycle_id.get(),
        "ingest_id": _ingest_id.get(),
    }


def clear_log_context() -> None:
    _stage_name.set("")
    _worker_id.set("")
    _cycle_id.set("")
    _ingest_id.set("")
