"""Lead generation worker.

Runs one job: searches Apollo with progressively widened filters until the
target lead count or the runtime budget is reached, then exports the leads
to CSV and writes them into the import document.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from .config import config
from .csv_export import build_csv, get_csv_filename
from .filter_mapper import get_widening_steps, has_usable_filters, map_filters
from .import_document import build_import_payload
from .job_store import JobStore, get_job_store
from .logging_utils import ContextAdapter, LogContext, get_logger
from .models import (
    Icp,
    ImportPayload,
    JobRecord,
    JobStatus,
    Lead,
    LeadgenJobInput,
    WideningStep,
)
from .normalize import dedup_key, is_lead_valid, normalize_person, only_linkedin_url
from .search_client import ApolloSearchClient
from .storage_client import StorageClient

logger = ContextAdapter(get_logger(__name__), {})

MIN_SEGMENT_BUDGET_MS = 3000


@dataclass
class SearchRunResult:
    """Outcome of searching one ICP.

    Filled in while the search runs so that partial progress survives a
    provider error.
    """

    leads: List[Lead] = field(default_factory=list)
    apollo_requests: int = 0
    widening_steps_applied: List[str] = field(default_factory=list)
    partial_due_to_timeout: bool = False

    @property
    def linkedin_urls(self) -> List[str]:
        return [url for url in (only_linkedin_url(l.linkedin_url) for l in self.leads) if url]


class LeadgenWorker:
    """Executes lead generation jobs.

    Attributes:
        job_store: Where job state is read and written.
        search_client: Apollo people-search client.
        storage_client: Object storage for CSV and import document.
    """

    def __init__(
        self,
        job_store: Optional[JobStore] = None,
        search_client: Optional[ApolloSearchClient] = None,
        storage_client: Optional[StorageClient] = None,
        clock: Callable[[], float] = time.monotonic,
        per_page: Optional[int] = None,
        preview_size: Optional[int] = None,
    ):
        """Initialize the worker.

        Args:
            job_store: Defaults to the process-wide store.
            search_client: Defaults to a client built from configuration.
            storage_client: Defaults to a client built from configuration.
            clock: Monotonic clock in seconds, used for deadlines.
            per_page: Page size. Defaults to LEADGEN_PER_PAGE.
            preview_size: Leads kept in the preview. Defaults to LEADGEN_PREVIEW_SIZE.
        """
        self.job_store = job_store or get_job_store()
        self.search_client = search_client or ApolloSearchClient()
        self.storage_client = storage_client or StorageClient()
        self.clock = clock
        self.per_page = per_page or config.LEADGEN_PER_PAGE
        self.preview_size = preview_size or config.LEADGEN_PREVIEW_SIZE

    async def run(self, job_id: str, explicit_input: Optional[LeadgenJobInput] = None) -> None:
        """Run a job to completion. Never raises; failures land on the job."""
        with LogContext(job_id=job_id):
            await self._run(job_id, explicit_input)

    async def _run(self, job_id: str, explicit_input: Optional[LeadgenJobInput]) -> None:
        started = self.clock()
        job_input = explicit_input
        if job_input is None:
            job = self.job_store.get(job_id)
            job_input = job.input if job else None
            if job_input is None:
                logger.error("Job or input not found")
                self.job_store.update(job_id, status=JobStatus.FAILED, error="Job or input not found")
                return
            if job.status != JobStatus.QUEUED:
                logger.info("Job not queued (status=%s), skipping", job.status.value)
                return
            self.job_store.update(job_id, status=JobStatus.RUNNING)

        explicit = explicit_input is not None
        if job_input.minio_payload is None and job_input.minio_key_to_update:
            existing = await self._load_existing_payload(job_input.minio_key_to_update)
            if existing is not None:
                job_input = job_input.model_copy(update={"minio_payload": existing})

        target = job_input.limits.target_leads or config.LEADGEN_TARGET_LEADS
        max_runtime_ms = job_input.limits.max_runtime_ms
        if max_runtime_ms is None:
            max_runtime_ms = config.LEADGEN_MAX_RUNTIME_MS
        deadline = self.clock() + max_runtime_ms / 1000.0
        product_name = job_input.product_name
        payload = job_input.minio_payload
        segment_count = len(payload.segments) if payload else 0

        logger.info(
            "Worker started",
            extra={
                "target_leads": target,
                "max_runtime_ms": max_runtime_ms,
                "segment_icps": len(job_input.segment_icps or []),
                "explicit_input": explicit,
            },
        )

        seen: Set[str] = set()
        all_leads: List[Lead] = []
        segment_leads: List[List[Lead]] = []
        steps_applied: List[str] = []
        apollo_requests = 0
        partial = False

        if job_input.segment_icps:
            per_segment: Dict[int, List[Lead]] = {}
            budget_ms = max(MIN_SEGMENT_BUDGET_MS, max_runtime_ms // len(job_input.segment_icps))
            for seg in job_input.segment_icps:
                if self.clock() >= deadline:
                    logger.info("Global deadline reached before segment %d", seg.segment_index)
                    partial = True
                    break
                label = self._segment_label(job_input, seg.segment_index)
                seg_deadline = min(self.clock() + budget_ms / 1000.0, deadline)
                result = SearchRunResult()
                try:
                    with LogContext(segment=label):
                        await self._search_icp(
                            seg.icp, target, seg_deadline, product_name, seen, result, label
                        )
                except Exception as e:
                    all_leads.extend(result.leads)
                    apollo_requests += result.apollo_requests
                    steps_applied.extend(f"{label}:{s}" for s in result.widening_steps_applied)
                    logger.error("Segment %d failed: %s", seg.segment_index, e)
                    self._fail(
                        job_id,
                        job_input,
                        explicit,
                        f"Segment {seg.segment_index}: {e}",
                        all_leads,
                        apollo_requests,
                        steps_applied,
                    )
                    return
                per_segment.setdefault(seg.segment_index, []).extend(result.leads)
                all_leads.extend(result.leads)
                apollo_requests += result.apollo_requests
                steps_applied.extend(f"{label}:{s}" for s in result.widening_steps_applied)
                partial = partial or result.partial_due_to_timeout
                logger.info(
                    "Segment %s collected %d leads (%d with LinkedIn)",
                    label,
                    len(result.leads),
                    len(result.linkedin_urls),
                )
            slots = max([segment_count, *(i + 1 for i in per_segment)])
            segment_leads = [per_segment.get(i, []) for i in range(slots)]
            overall_target = target * len(job_input.segment_icps)
        else:
            result = SearchRunResult()
            try:
                await self._search_icp(job_input.icp, target, deadline, product_name, seen, result)
            except Exception as e:
                logger.error("Search failed: %s", e)
                self._fail(
                    job_id,
                    job_input,
                    explicit,
                    str(e),
                    result.leads,
                    result.apollo_requests,
                    result.widening_steps_applied,
                )
                return
            all_leads = result.leads
            apollo_requests = result.apollo_requests
            steps_applied = list(result.widening_steps_applied)
            partial = result.partial_due_to_timeout
            segment_leads = [list(all_leads) for _ in range(segment_count)]
            overall_target = target

        linkedin_urls = [u for u in (only_linkedin_url(l.linkedin_url) for l in all_leads) if u]
        logger.info(
            "Search finished: %d leads, %d LinkedIn URLs, %d Apollo requests, partial=%s",
            len(all_leads),
            len(linkedin_urls),
            apollo_requests,
            partial,
        )

        download_csv_url = await self._export_csv(job_id, all_leads)

        debug: Dict[str, Any] = {
            "apollo_requests": apollo_requests,
            "widening_steps_applied": steps_applied,
            "partial_due_to_timeout": partial,
        }
        minio_object_key = None
        if self._should_write_import(job_input, linkedin_urls):
            try:
                minio_object_key = await self._write_import_document(job_input, segment_leads)
            except Exception as e:
                logger.error("Import document update failed: %s", e)
                debug["minio_error"] = str(e)

        if partial:
            error = f"Stopped at {len(all_leads)} leads due to timeout"
        elif len(all_leads) < overall_target:
            error = f"Collected {len(all_leads)} leads (target {overall_target})"
        else:
            error = None

        self._save(
            job_id,
            job_input,
            explicit,
            status=JobStatus.DONE,
            icp_used=job_input.icp,
            leads_count=len(all_leads),
            linkedin_urls=linkedin_urls,
            leads_preview=all_leads[: self.preview_size],
            download_csv_url=download_csv_url,
            minio_object_key=minio_object_key,
            debug=debug,
            error=error,
        )
        logger.info(
            "Job done in %.0f ms: %d leads",
            (self.clock() - started) * 1000,
            len(all_leads),
        )

    async def _search_icp(
        self,
        icp: Icp,
        target: int,
        deadline: float,
        product_name: str,
        seen: Set[str],
        result: SearchRunResult,
        label: Optional[str] = None,
    ) -> SearchRunResult:
        """Walk the widening ladder for one ICP, appending to ``result``.

        Provider errors propagate; ``result`` keeps what was gathered.
        """
        if icp.is_empty() and product_name:
            logger.info("Empty ICP for %s, using product name as keyword", label or "job")
            icp = icp.with_fallback_keyword(product_name)

        for step in get_widening_steps():
            if self.clock() >= deadline:
                result.partial_due_to_timeout = True
                break
            if len(result.leads) >= target:
                break

            filters = map_filters(icp, step)
            result.widening_steps_applied.append(step.value)
            if step == WideningStep.STRICT and not has_usable_filters(filters):
                continue

            page = 1
            while len(result.leads) < target:
                if self.clock() >= deadline:
                    result.partial_due_to_timeout = True
                    break
                search_page = await self.search_client.search(filters, page=page, per_page=self.per_page)
                result.apollo_requests += 1
                records = search_page.records
                if not records:
                    break
                self._accept(records, target, seen, result)
                if page >= search_page.pagination.total_pages or len(records) < self.per_page:
                    break
                page += 1

            logger.debug(
                "Step %s done: %d leads after %d requests",
                step.value,
                len(result.leads),
                result.apollo_requests,
            )

        del result.leads[target:]
        return result

    @staticmethod
    def _accept(
        records: List[Dict[str, Any]],
        target: int,
        seen: Set[str],
        result: SearchRunResult,
    ) -> None:
        for record in records:
            lead = normalize_person(record)
            if not is_lead_valid(lead):
                continue
            key = dedup_key(lead)
            if not key or key in seen:
                continue
            seen.add(key)
            result.leads.append(lead)
            if len(result.leads) >= target:
                break

    @staticmethod
    def _segment_label(job_input: LeadgenJobInput, index: int) -> str:
        payload = job_input.minio_payload
        if payload and 0 <= index < len(payload.segments) and payload.segments[index].name:
            return payload.segments[index].name
        return f"seg{index}"

    @staticmethod
    def _should_write_import(job_input: LeadgenJobInput, linkedin_urls: List[str]) -> bool:
        payload = job_input.minio_payload
        if not payload or not payload.product or not payload.segments:
            return False
        return bool(linkedin_urls) or bool(job_input.minio_key_to_update)

    async def _export_csv(self, job_id: str, leads: List[Lead]) -> Optional[str]:
        """Upload the CSV and return a presigned URL; None when skipped or failed."""
        if not leads or not self.storage_client.is_configured():
            return None
        filename = get_csv_filename(job_id)
        body = build_csv(leads)
        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(None, self.storage_client.upload_csv, filename, body)
            url = await loop.run_in_executor(
                None, self.storage_client.get_presigned_download_url, filename
            )
        except Exception as e:
            logger.error("CSV upload failed: %s", e)
            return None
        logger.info("CSV uploaded: %s (%d rows)", filename, len(leads))
        return url

    async def _load_existing_payload(self, key: str) -> Optional[ImportPayload]:
        """Product and segments of an already stored import document."""
        if not self.storage_client.is_configured():
            return None
        loop = asyncio.get_event_loop()
        document = await loop.run_in_executor(None, self.storage_client.get_import_document, key)
        if not document:
            logger.warning("Import document %s not found, no payload to update", key)
            return None
        try:
            return ImportPayload.model_validate(document)
        except ValidationError as e:
            logger.warning("Import document %s is not usable: %s", key, e)
            return None

    async def _write_import_document(
        self,
        job_input: LeadgenJobInput,
        segment_leads: List[List[Lead]],
    ) -> str:
        segment_urls = [
            [u for u in (only_linkedin_url(l.linkedin_url) for l in leads) if u]
            for leads in segment_leads
        ]
        document = build_import_payload(job_input.minio_payload, segment_urls, segment_leads)
        loop = asyncio.get_event_loop()
        key = await loop.run_in_executor(
            None,
            self.storage_client.put_import_document,
            document,
            job_input.minio_key_to_update,
        )
        logger.info("Import document written: %s", key)
        return key

    def _fail(
        self,
        job_id: str,
        job_input: LeadgenJobInput,
        explicit: bool,
        error: str,
        leads: List[Lead],
        apollo_requests: int,
        steps_applied: List[str],
    ) -> None:
        self._save(
            job_id,
            job_input,
            explicit,
            status=JobStatus.FAILED,
            error=error,
            leads_count=len(leads),
            leads_preview=leads[: self.preview_size],
            download_csv_url=None,
            debug={
                "apollo_requests": apollo_requests,
                "widening_steps_applied": list(steps_applied),
            },
        )

    def _save(
        self,
        job_id: str,
        job_input: LeadgenJobInput,
        explicit: bool,
        **fields: Any,
    ) -> None:
        if not explicit:
            self.job_store.update(job_id, **fields)
            return
        existing = self.job_store.get(job_id)
        base = existing or JobRecord(job_id=job_id, icp_used=job_input.icp, input=job_input)
        data = base.model_dump()
        data.update(fields)
        self.job_store.upsert(job_id, JobRecord.model_validate(data))
