"""Job store: process-wide in-memory map with optional file persistence.

The in-memory map is authoritative and read first. When persistence is
enabled every write is mirrored to ``<dir>/<job_id>.json`` so a job can be
polled from another process; persistence failures are logged and never
propagate to the caller.
"""

import json
import os
import random
import string
import threading
import time
from typing import Any, Dict, Optional

from .config import config
from .logging_utils import get_logger
from .models import JobRecord, JobStatus, LeadgenJobInput, utc_now_iso

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_job_id() -> str:
    """Job id of the form ``lg_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"lg_{int(time.time() * 1000)}_{suffix}"


class JobPersistence:
    """Interface for the side-channel copy of the job map."""

    def save(self, record: JobRecord) -> None:
        raise NotImplementedError

    def load(self, job_id: str) -> Optional[JobRecord]:
        raise NotImplementedError


class FileJobPersistence(JobPersistence):
    """Stores each job as pretty-printed JSON in a directory."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, job_id: str) -> str:
        return os.path.join(self.directory, f"{job_id}.json")

    def save(self, record: JobRecord) -> None:
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(self._path(record.job_id), "w", encoding="utf-8") as f:
                f.write(record.model_dump_json(indent=2))
        except OSError as e:
            logger.error(
                f"Job store write error: {e}",
                extra={"job_id": record.job_id, "directory": self.directory},
            )

    def load(self, job_id: str) -> Optional[JobRecord]:
        path = self._path(job_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return JobRecord.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            logger.error(f"Job store read error: {e}", extra={"job_id": job_id})
            return None


class JobStore:
    """Create, read and update lead generation jobs.

    Writes are last-write-wins; the store does no merging across processes.
    """

    def __init__(self, persistence: Optional[JobPersistence] = None):
        self.persistence = persistence
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def _write(self, record: JobRecord) -> JobRecord:
        with self._lock:
            self._jobs[record.job_id] = record
        if self.persistence is not None:
            self.persistence.save(record)
        return record

    def create(self, job_id: str, job_input: LeadgenJobInput) -> JobRecord:
        """Create (or overwrite) a queued job for ``job_input``."""
        now = utc_now_iso()
        record = JobRecord(
            job_id=job_id,
            status=JobStatus.QUEUED,
            icp_used=job_input.icp,
            created_at=now,
            updated_at=now,
            input=job_input,
        )
        logger.info("Job created", extra={"job_id": job_id})
        return self._write(record)

    def get(self, job_id: str) -> Optional[JobRecord]:
        """Memory first, then persistence (caching what it finds)."""
        with self._lock:
            record = self._jobs.get(job_id)
        if record is not None or self.persistence is None:
            return record

        record = self.persistence.load(job_id)
        if record is not None:
            with self._lock:
                self._jobs[job_id] = record
        return record

    def update(self, job_id: str, **fields: Any) -> Optional[JobRecord]:
        """Merge ``fields`` into the job and refresh ``updated_at``.

        Returns:
            The updated record, or None if the job does not exist.
        """
        record = self.get(job_id)
        if record is None:
            return None
        data = record.model_dump()
        data.update(fields)
        data["job_id"] = job_id
        data["updated_at"] = utc_now_iso()
        return self._write(JobRecord.model_validate(data))

    def upsert(self, job_id: str, record: JobRecord) -> JobRecord:
        """Store ``record`` under ``job_id`` whether or not it exists yet."""
        data = record.model_dump()
        data["job_id"] = job_id
        data["updated_at"] = utc_now_iso()
        return self._write(JobRecord.model_validate(data))


_default_store: Optional[JobStore] = None


def get_job_store() -> JobStore:
    """Process-wide store; persistence follows JOB_STORE_PERSIST."""
    global _default_store
    if _default_store is None:
        persistence = (
            FileJobPersistence(config.JOB_STORE_DIR) if config.JOB_STORE_PERSIST else None
        )
        _default_store = JobStore(persistence=persistence)
        logger.debug(
            "Job store initialized",
            extra={"persist": config.JOB_STORE_PERSIST, "directory": config.JOB_STORE_DIR},
        )
    return _default_store


def reset_job_store(store: Optional[JobStore] = None) -> None:
    """Replace (or drop) the process-wide store."""
    global _default_store
    _default_store = store
