"""Import document: product plus segments, each carrying its LinkedIn leads."""

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import config
from .models import ImportPayload, Lead


def _prefix(prefix: Optional[str]) -> str:
    value = config.MINIO_DEMO_PREFIX if prefix is None else prefix
    return (value or "").strip().strip("/")


def generate_import_key(prefix: Optional[str] = None) -> str:
    """New object key ``<prefix>/<uuid4>.json`` (no prefix segment when empty)."""
    file_key = f"{uuid.uuid4()}.json"
    p = _prefix(prefix)
    return f"{p}/{file_key}" if p else file_key


def resolve_import_key(key: Optional[str], prefix: Optional[str] = None) -> str:
    """Full object key for a caller-supplied key, or a generated one.

    Keys that already contain "/" are used as-is; bare file names get the
    import prefix.
    """
    key = (key or "").strip()
    if not key:
        return generate_import_key(prefix)
    if "/" in key:
        return key
    p = _prefix(prefix)
    return f"{p}/{key}" if p else key


def build_import_payload(
    payload: ImportPayload,
    segment_urls: Sequence[List[str]],
    segment_details: Optional[Sequence[List[Lead]]] = None,
) -> Dict[str, Any]:
    """Merge generated leads into the segment descriptors.

    Args:
        payload: Product and segment descriptors.
        segment_urls: LinkedIn URLs per segment, aligned by index. Segments
            past the end of the list receive no leads.
        segment_details: Optional full lead records per segment.

    Returns:
        JSON-ready import document.
    """
    product = payload.product
    doc: Dict[str, Any] = {
        "product": {
            "name": product.name if product else "",
            "description": product.description if product else "",
            "goal_type": (product.goal_type if product else "") or "MANUAL_GOAL",
            "goal_description": product.goal_description if product else "",
        },
        "segments": [],
    }

    for i, segment in enumerate(payload.segments):
        urls = list(segment_urls[i]) if i < len(segment_urls) else []
        entry: Dict[str, Any] = {
            "name": segment.name,
            "personalization": segment.personalization,
            "leads": urls,
        }
        if segment_details is not None:
            details = segment_details[i] if i < len(segment_details) else []
            entry["leads_detail"] = [lead.model_dump() for lead in details]
        if segment.outreach_personalization is not None:
            entry["outreach_personalization"] = segment.outreach_personalization
        if segment.dialog_personalization is not None:
            entry["dialog_personalization"] = segment.dialog_personalization
        doc["segments"].append(entry)

    return doc


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_import_payload(payload: Any) -> Tuple[bool, Optional[str]]:
    """Check the shape of an import document.

    Returns:
        (True, None) when valid, otherwise (False, reason).
    """
    if not isinstance(payload, dict):
        return False, "Payload must be an object"

    product = payload.get("product")
    if not isinstance(product, dict):
        return False, "Missing or invalid product"
    for name in ("name", "description"):
        if not _non_empty_str(product.get(name)):
            return False, f"product.{name} must be a non-empty string"
    if not isinstance(product.get("goal_type"), str):
        return False, "product.goal_type must be a string"
    if not _non_empty_str(product.get("goal_description")):
        return False, "product.goal_description must be a non-empty string"

    segments = payload.get("segments")
    if not isinstance(segments, list) or not segments:
        return False, "segments must be a non-empty array"

    for i, seg in enumerate(segments):
        if not isinstance(seg, dict):
            return False, f"Segment at index {i} is invalid"
        for name in ("name", "personalization"):
            if not _non_empty_str(seg.get(name)):
                return False, f"segments[{i}].{name} must be a non-empty string"
        leads = seg.get("leads")
        if not isinstance(leads, list):
            return False, f"segments[{i}].leads must be an array of strings"
        for j, url in enumerate(leads):
            if not _non_empty_str(url):
                return False, f"segments[{i}].leads[{j}] must be a non-empty string"

    return True, None
