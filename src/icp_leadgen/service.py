"""Job-level operations exposed to callers (HTTP layer, CLI)."""

from typing import Optional

from .config import config
from .job_store import JobStore, generate_job_id, get_job_store
from .logging_utils import get_logger
from .models import JobRecord, LeadgenJobInput, LeadgenJobResult, LeadgenLimits
from .worker import LeadgenWorker

logger = get_logger(__name__)


def create_job(
    job_id: Optional[str],
    job_input: LeadgenJobInput,
    store: Optional[JobStore] = None,
) -> JobRecord:
    """Register a queued job, overwriting any job with the same id.

    Args:
        job_id: Job id. Falls back to ``job_input.job_id``, then a new id.
        job_input: ICP, limits and destination for the job.
        store: Defaults to the process-wide store.

    Returns:
        The stored job record.
    """
    store = store or get_job_store()
    job_id = job_id or job_input.job_id or generate_job_id()

    limits = LeadgenLimits(
        target_leads=job_input.limits.target_leads or config.LEADGEN_TARGET_LEADS,
        max_runtime_ms=(
            job_input.limits.max_runtime_ms
            if job_input.limits.max_runtime_ms is not None
            else config.LEADGEN_MAX_RUNTIME_MS
        ),
    )
    job_input = job_input.model_copy(update={"job_id": job_id, "limits": limits})
    return store.create(job_id, job_input)


async def run_worker(
    job_id: str,
    job_input: Optional[LeadgenJobInput] = None,
    worker: Optional[LeadgenWorker] = None,
) -> None:
    """Run the worker for ``job_id``.

    Without ``job_input`` the job must exist in the store in ``queued``
    state. With it, the input is used directly and the result is stored
    under ``job_id`` afterwards.
    """
    if worker is not None:
        await worker.run(job_id, job_input)
        return

    worker = LeadgenWorker()
    try:
        await worker.run(job_id, job_input)
    finally:
        await worker.search_client.aclose()


def get_job(job_id: str, store: Optional[JobStore] = None) -> Optional[LeadgenJobResult]:
    """Polling view of a job (without its input), or None if unknown."""
    store = store or get_job_store()
    record = store.get(job_id)
    if record is None:
        logger.debug("Job not found", extra={"job_id": job_id})
        return None
    return record.to_result()
