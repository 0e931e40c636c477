"""In-process job store for analysis runs.

Thread-safe; one instance is shared by the API and the pipeline.
Finished jobs stay until deleted.
"""

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_STATUSES = (JobStatus.COMPLETE, JobStatus.ERROR)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Job:
    id: str
    file_name: str
    status: JobStatus = JobStatus.PENDING
    created_at: str = ""
    completed_at: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    generated_layouts: Optional[Dict[str, Any]] = None
    prototype_url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self, include_result: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "file_name": self.file_name,
            "status": self.status.value,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "error": self.error,
        }
        if include_result:
            data["result"] = self.result
            data["generated_layouts"] = self.generated_layouts
            data["prototype_url"] = self.prototype_url
        return data


class JobStore:
    """Jobs keyed by id, newest first on listing."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, file_name: str) -> Job:
        job = Job(id=str(uuid.uuid4()), file_name=file_name, created_at=_now())
        with self._lock:
            self._jobs[job.id] = job
        logger.debug(f"Created job {job.id} for {file_name}")
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self, limit: int = 50, offset: int = 0) -> List[Job]:
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)
        return jobs[offset:offset + limit]

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def set_status(self, job_id: str, status: JobStatus) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = status
            if status in TERMINAL_STATUSES:
                job.completed_at = _now()

    def set_error(self, job_id: str, message: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = JobStatus.ERROR
            job.error = message
            job.completed_at = _now()

    async def save_result(
        self,
        job_id: str,
        result: Dict[str, Any],
        generated_layouts: Optional[Dict[str, Any]] = None,
        prototype_url: Optional[str] = None,
    ) -> None:
        """Persist a finished result and mark the job complete."""
        # Yield once so callers scheduling this as a task never block on it.
        await asyncio.sleep(0)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.warning(f"Result for unknown job {job_id} dropped")
                return
            job.result = result
            job.generated_layouts = generated_layouts
            job.prototype_url = prototype_url
            job.status = JobStatus.COMPLETE
            job.completed_at = _now()
        logger.info(f"Saved result for job {job_id}")
