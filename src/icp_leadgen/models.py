"""Pydantic models for lead generation jobs, ICPs and leads."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class IcpGeo(BaseModel):
    """Geographic part of an ICP."""

    countries: Optional[List[str]] = None
    regions: Optional[List[str]] = None
    cities: Optional[List[str]] = None

    def locations(self) -> List[str]:
        """Cities, then regions, then countries."""
        return [*(self.cities or []), *(self.regions or []), *(self.countries or [])]


class IcpPositions(BaseModel):
    """Job titles and seniority of the target audience."""

    titles_strict: Optional[List[str]] = None
    titles_broad: Optional[List[str]] = None
    seniority: Optional[List[str]] = None
    departments: Optional[List[str]] = None


class IcpCompanySize(BaseModel):
    """Employee count ranges such as "1,10" or "11-50"."""

    employee_ranges: Optional[List[str]] = None


class Icp(BaseModel):
    """Ideal Customer Profile used to build provider search filters."""

    geo: Optional[IcpGeo] = None
    positions: Optional[IcpPositions] = None
    industries: Optional[List[str]] = None
    company_size: Optional[IcpCompanySize] = None
    industry_keywords: Optional[List[str]] = Field(
        default=None, description="Free-text keywords, used as the fallback signal"
    )

    def is_empty(self) -> bool:
        """True when no field carries a single value."""
        geo = self.geo or IcpGeo()
        pos = self.positions or IcpPositions()
        size = self.company_size or IcpCompanySize()
        lists = [
            geo.countries, geo.regions, geo.cities,
            pos.titles_strict, pos.titles_broad, pos.seniority, pos.departments,
            self.industries, self.industry_keywords, size.employee_ranges,
        ]
        return not any(lists)

    def with_fallback_keyword(self, keyword: str) -> "Icp":
        """Copy of this ICP whose only keyword is ``keyword``."""
        return self.model_copy(update={"industry_keywords": [keyword]})


class WideningStep(str, Enum):
    """Rungs of the filter widening ladder, strictest first."""

    STRICT = "strict"
    BROAD_TITLES = "broad_titles"
    RELAX_SENIORITY = "relax_seniority"
    RELAX_GEO = "relax_geo"
    RELAX_COMPANY_SIZE = "relax_company_size"
    RELAX_INDUSTRIES = "relax_industries"


class Lead(BaseModel):
    """Normalized prospect record derived from a provider search result."""

    full_name: str = ""
    title: str = ""
    location: str = ""
    linkedin_url: str = ""
    company_name: str = ""
    company_website: str = ""
    company_industry: str = ""
    company_employee_range: str = ""
    source: str = "apollo"
    apollo_person_id: str = ""
    confidence_score: float = 1.0


class LeadgenLimits(BaseModel):
    """Count and wall-clock budget for one job."""

    target_leads: Optional[int] = Field(default=None, ge=1)
    max_runtime_ms: Optional[int] = Field(default=None, ge=0)


class SegmentIcp(BaseModel):
    """ICP to use for one segment of the import document."""

    segment_index: int = Field(..., ge=0)
    icp: Icp = Field(default_factory=Icp)


class ImportProduct(BaseModel):
    """Product block of the import document."""

    name: str = ""
    description: str = ""
    goal_type: str = "MANUAL_GOAL"
    goal_description: str = ""


class ImportSegment(BaseModel):
    """Segment descriptor; leads are filled in by the worker."""

    name: str = ""
    personalization: str = ""
    outreach_personalization: Optional[str] = None
    dialog_personalization: Optional[str] = None


class ImportPayload(BaseModel):
    """Destination payload: product and segment descriptors without leads."""

    product: Optional[ImportProduct] = None
    segments: List[ImportSegment] = Field(default_factory=list)


class LeadgenJobInput(BaseModel):
    """Everything a worker needs to execute one job."""

    job_id: Optional[str] = None
    icp: Icp = Field(default_factory=Icp)
    segment_icps: Optional[List[SegmentIcp]] = None
    limits: LeadgenLimits = Field(default_factory=LeadgenLimits)
    minio_payload: Optional[ImportPayload] = None
    minio_key_to_update: Optional[str] = None

    @field_validator("minio_key_to_update")
    @classmethod
    def blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @property
    def product_name(self) -> str:
        if self.minio_payload and self.minio_payload.product:
            return self.minio_payload.product.name.strip()
        return ""


class JobStatus(str, Enum):
    """Lifecycle states of a lead generation job."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class LeadgenJobResult(BaseModel):
    """What a polling client sees for a job."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    icp_used: Optional[Icp] = None
    leads_count: int = 0
    linkedin_urls: List[str] = Field(default_factory=list)
    leads_preview: List[Lead] = Field(default_factory=list)
    download_csv_url: Optional[str] = None
    minio_object_key: Optional[str] = None
    debug: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class JobRecord(LeadgenJobResult):
    """Stored job: the public result plus the input it was created with."""

    input: Optional[LeadgenJobInput] = None

    def to_result(self) -> LeadgenJobResult:
        return LeadgenJobResult.model_validate(self.model_dump(exclude={"input"}))
