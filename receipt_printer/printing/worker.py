"""
Worker pool and job registry for Receipt Printer.

This module owns:
- A thread pool that runs discovery and print operations off the caller's thread
- An in-memory job registry with a basic lifecycle (queued -> running -> success/error)
- Public helpers to query job status

Operations are not serialised per device: two prints against the same device
may run concurrently on different workers.

It is Flask-agnostic so it can be used from both web routes and plain Python
callers.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

JOBS: Dict[str, Dict[str, Any]] = {}
JOBS_LOCK = threading.RLock()
JOBS_MAX = int(os.environ.get("RECEIPTPRINTER_JOBS_MAX", "200"))


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _prune_jobs_if_needed() -> None:
    with JOBS_LOCK:
        while len(JOBS) > JOBS_MAX:
            oldest_id = min(JOBS.values(), key=lambda j: j.get("created_at", ""))["id"]
            JOBS.pop(oldest_id, None)


def _create_job(kind: str, meta: Optional[Dict[str, Any]] = None) -> str:
    job_id = uuid.uuid4().hex
    now = _utc_now_iso()
    job = {
        "id": job_id,
        "type": kind,
        "status": "queued",
        "created_at": now,
        "updated_at": now,
    }
    if meta:
        job.update(meta)
    with JOBS_LOCK:
        JOBS[job_id] = job
        _prune_jobs_if_needed()
    return job_id


def _update_job(job_id: Optional[str], **updates: Any) -> None:
    if not job_id:
        return
    with JOBS_LOCK:
        job = JOBS.get(job_id)
        if not job:
            return
        job.update(updates)
        job["updated_at"] = _utc_now_iso()


def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    """
    Retrieve a job by id.
    """
    with JOBS_LOCK:
        job = JOBS.get(job_id)
        return dict(job) if job else None


def list_jobs() -> List[Dict[str, Any]]:
    """
    Return a list of jobs sorted by created_at descending.
    """
    with JOBS_LOCK:
        items = [dict(v) for v in JOBS.values()]
    items.sort(key=lambda j: j.get("created_at", ""), reverse=True)
    return items


class JobFuture(Future):
    """A Future that also carries the id of the job tracking it."""

    job_id: Optional[str] = None


class PrintWorker:
    """
    Runs operations on a thread pool and records each one as a job.

    submit() returns a future resolving to the operation's result or raising
    its error; the job record mirrors the outcome.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._active = 0

    def ensure_started(self) -> ThreadPoolExecutor:
        """
        Ensure the pool exists (idempotent) and return it.
        """
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="receipt-printer-worker"
                )
                logger.info("Print worker pool started (max_workers=%d)", self.max_workers)
            return self._executor

    def submit(self, kind: str, fn: Callable[..., T], *args: Any, meta: Optional[Dict[str, Any]] = None) -> JobFuture:
        executor = self.ensure_started()
        job_id = _create_job(kind, meta=meta)
        result: JobFuture = JobFuture()
        result.job_id = job_id
        executor.submit(self._run, job_id, result, fn, *args)
        logger.info("Queued %s job id=%s", kind, job_id)
        return result

    def _run(self, job_id: str, result: JobFuture, fn: Callable[..., Any], *args: Any) -> None:
        if not result.set_running_or_notify_cancel():
            _update_job(job_id, status="error", error="cancelled")
            return
        with self._lock:
            self._active += 1
        _update_job(job_id, status="running")
        try:
            value = fn(*args)
        except Exception as e:
            logger.error("Job %s failed: %s", job_id, e)
            _update_job(job_id, status="error", error=str(e), error_kind=getattr(e, "kind", type(e).__name__))
            result.set_exception(e)
        else:
            _update_job(job_id, status="success")
            result.set_result(value)
        finally:
            with self._lock:
                self._active -= 1

    def status(self) -> Dict[str, Any]:
        """
        Return basic worker status.
        """
        with self._lock:
            return {
                "worker_started": self._executor is not None,
                "max_workers": self.max_workers,
                "active_jobs": self._active,
            }

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


__all__ = [
    "JOBS",
    "JOBS_MAX",
    "JobFuture",
    "PrintWorker",
    "get_job",
    "list_jobs",
]
