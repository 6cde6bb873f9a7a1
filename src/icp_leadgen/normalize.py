"""Normalize Apollo person records into Lead objects."""

import re
from typing import Any, Dict, Optional

from .models import Lead

LINKEDIN_HOST = "linkedin.com"
LINKEDIN_PROFILE_BASE = "https://www.linkedin.com/in/"

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def only_linkedin_url(url: Optional[str]) -> str:
    """Return ``url`` if it points at linkedin.com, otherwise ""."""
    value = _text(url)
    return value if LINKEDIN_HOST in value.lower() else ""


def extract_linkedin_url(person: Dict[str, Any]) -> str:
    """Find the person's LinkedIn profile URL among the fields Apollo uses.

    Bare slugs are expanded to a profile URL. Values that do not end up on
    linkedin.com are discarded.
    """
    profile = person.get("profile")
    candidate = (
        person.get("linkedin_url")
        or person.get("linkedin_profile_url")
        or person.get("linkedin")
        or (profile.get("linkedin_url") if isinstance(profile, dict) else None)
    )
    value = _text(candidate)
    if value:
        if not value.lower().startswith("http"):
            if LINKEDIN_HOST in value.lower():
                value = f"https://{value}"
            else:
                value = LINKEDIN_PROFILE_BASE + value.lstrip("/")
        return only_linkedin_url(value)

    slug = person.get("linkedin_slug") or person.get("linkedin_id")
    if isinstance(slug, str):
        clean = slug.strip().lstrip("/")
        if clean:
            return LINKEDIN_PROFILE_BASE + clean
    return ""


def bucket_employee_count(count: Any) -> str:
    """Map an employee count to a coarse range; "" when unknown."""
    if count is None or count == "":
        return ""
    try:
        n = float(count)
    except (TypeError, ValueError):
        return ""
    if n <= 10:
        return "1-10"
    if n <= 50:
        return "11-50"
    if n <= 200:
        return "51-200"
    if n <= 500:
        return "201-500"
    return "500+"


def normalize_person(person: Dict[str, Any]) -> Lead:
    """Build a Lead from a raw person record. Never raises on missing fields."""
    org = person.get("organization")
    if not isinstance(org, dict):
        org = {}

    full_name = _text(person.get("name"))
    if not full_name:
        parts = [_text(person.get("first_name")), _text(person.get("last_name"))]
        full_name = " ".join(p for p in parts if p)

    location = ", ".join(
        p for p in (_text(person.get(k)) for k in ("city", "state", "country")) if p
    )

    domain = _text(org.get("primary_domain"))
    website = f"https://{_SCHEME.sub('', domain)}" if domain else ""

    return Lead(
        full_name=full_name,
        title=_text(person.get("title")),
        location=location,
        linkedin_url=extract_linkedin_url(person),
        company_name=_text(org.get("name")),
        company_website=website,
        company_industry=_text(org.get("industry")),
        company_employee_range=bucket_employee_count(org.get("estimated_num_employees")),
        source="apollo",
        apollo_person_id=_text(person.get("id")),
        confidence_score=1.0,
    )


def is_lead_valid(lead: Lead) -> bool:
    """A lead is usable only with both a title and a company name."""
    return bool(lead.title and lead.company_name)


def dedup_key(lead: Lead) -> str:
    """LinkedIn URL when present, else the Apollo person id; "" if neither."""
    return lead.linkedin_url or lead.apollo_person_id
