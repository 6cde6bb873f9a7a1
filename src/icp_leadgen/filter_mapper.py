"""Map an ICP onto Apollo people-search filters for each widening step.

Each step is derived from the previous one by dropping a constraint
dimension, so the set of dimensions applied only shrinks along the ladder:

    strict              titles_strict, seniority, industry ids, keywords, size, geo
    broad_titles        titles_strict + titles_broad, rest as strict
    relax_seniority     drops seniority
    relax_geo           drops geo
    relax_company_size  drops employee ranges
    relax_industries    drops industry tag ids

Keywords are the fallback signal for degenerate ICPs and survive every step.
"""

import re
from typing import Any, Dict, Iterable, List

from .logging_utils import get_logger
from .models import Icp, IcpPositions, WideningStep

logger = get_logger(__name__)

WIDENING_ORDER: List[WideningStep] = [
    WideningStep.STRICT,
    WideningStep.BROAD_TITLES,
    WideningStep.RELAX_SENIORITY,
    WideningStep.RELAX_GEO,
    WideningStep.RELAX_COMPANY_SIZE,
    WideningStep.RELAX_INDUSTRIES,
]

_NUMERIC = re.compile(r"^\d+$")
_OPEN_RANGE = re.compile(r"^\d+\+$")


def get_widening_steps() -> List[WideningStep]:
    """The ladder in execution order (a fresh list each call)."""
    return list(WIDENING_ORDER)


def _clean(values: Iterable[Any]) -> List[str]:
    """Trim values, drop blanks, dedupe case-insensitively keeping first spelling."""
    seen = set()
    out: List[str] = []
    for value in values:
        text = str(value).strip()
        if text and text.lower() not in seen:
            seen.add(text.lower())
            out.append(text)
    return out


def keywords_for(icp: Icp) -> List[str]:
    """industry_keywords followed by industries, for free-text matching."""
    return _clean([*(icp.industry_keywords or []), *(icp.industries or [])])


def industry_tag_ids(icp: Icp) -> List[str]:
    """Only numeric industries can be sent as Apollo industry tag ids."""
    return [s for s in _clean(icp.industries or []) if _NUMERIC.match(s)]


def to_apollo_employee_ranges(ranges: Iterable[str]) -> List[str]:
    """Convert "11,50" style ranges to the hyphenated form Apollo expects."""
    out: List[str] = []
    for raw in ranges:
        s = str(raw).strip()
        if not s:
            continue
        if "-" in s or _OPEN_RANGE.match(s):
            out.append(s)
        elif "," in s:
            out.append(s.replace(",", "-", 1))
        else:
            if _NUMERIC.match(s):
                logger.warning("Single number employee range %r kept as-is", s)
            out.append(s)
    return out


def _titles(positions: IcpPositions, broad: bool) -> List[str]:
    titles = list(positions.titles_strict or [])
    if broad:
        titles.extend(positions.titles_broad or [])
    return _clean(titles)


def map_filters(icp: Icp, step: WideningStep) -> Dict[str, Any]:
    """Build the provider filter dict for ``step``.

    Pure and deterministic. Only non-empty values are emitted: Apollo treats
    an absent filter differently from an empty one.

    Args:
        icp: Resolved ICP.
        step: Widening step.

    Returns:
        Dict of Apollo search filters.
    """
    step = WideningStep(step)
    rank = WIDENING_ORDER.index(step)
    positions = icp.positions or IcpPositions()

    titles = _titles(positions, broad=rank >= WIDENING_ORDER.index(WideningStep.BROAD_TITLES))
    seniorities = _clean(positions.seniority or [])
    tag_ids = industry_tag_ids(icp)
    keywords = keywords_for(icp)
    sizes = to_apollo_employee_ranges(
        (icp.company_size.employee_ranges or []) if icp.company_size else []
    )
    locations = _clean(icp.geo.locations()) if icp.geo else []

    keep_seniority = rank < WIDENING_ORDER.index(WideningStep.RELAX_SENIORITY)
    keep_geo = rank < WIDENING_ORDER.index(WideningStep.RELAX_GEO)
    keep_size = rank < WIDENING_ORDER.index(WideningStep.RELAX_COMPANY_SIZE)
    keep_industries = rank < WIDENING_ORDER.index(WideningStep.RELAX_INDUSTRIES)

    filters: Dict[str, Any] = {}
    if titles:
        filters["person_titles"] = titles
    if keep_seniority and seniorities:
        filters["person_seniorities"] = seniorities
    if keep_industries and tag_ids:
        filters["q_organization_industry_tag_ids"] = tag_ids
    if keywords:
        filters["q_keywords"] = ", ".join(keywords)
    if keep_size and sizes:
        filters["organization_num_employees"] = sizes
    if keep_geo and locations:
        filters["organization_locations"] = locations
        filters["person_locations"] = list(locations)
    return filters


def has_usable_filters(filters: Dict[str, Any]) -> bool:
    """True if any filter carries a non-empty list or non-blank string."""
    for value in filters.values():
        if isinstance(value, (list, tuple)) and len(value) > 0:
            return True
        if isinstance(value, str) and value.strip():
            return True
    return False
