# src/icp_leadgen/tests/test_import_document.py
"""
Unit tests for the import document.

Tests cover:
- build_import_payload per-segment URLs, details and optional fields
- generate_import_key / resolve_import_key prefixing
- validate_import_payload error messages
"""
import re

import pytest

from icp_leadgen.import_document import (
    build_import_payload,
    generate_import_key,
    resolve_import_key,
    validate_import_payload,
)
from icp_leadgen.models import ImportPayload, ImportProduct, ImportSegment, Lead

UUID_JSON = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\.json"


def sample_payload() -> ImportPayload:
    return ImportPayload(
        product=ImportProduct(
            name="Acme CRM",
            description="CRM for dentists",
            goal_type="",
            goal_description="Book demos",
        ),
        segments=[
            ImportSegment(name="Dentists", personalization="Hi doc", outreach_personalization="Short"),
            ImportSegment(name="Clinics", personalization="Hi team", dialog_personalization="Warm"),
        ],
    )


class TestBuildImportPayload:
    """Tests for build_import_payload."""

    @pytest.mark.unit
    def test_segments_receive_their_urls(self):
        doc = build_import_payload(
            sample_payload(),
            [["https://www.linkedin.com/in/a"], ["https://www.linkedin.com/in/b"]],
        )

        assert doc["product"] == {
            "name": "Acme CRM",
            "description": "CRM for dentists",
            "goal_type": "MANUAL_GOAL",
            "goal_description": "Book demos",
        }
        assert doc["segments"][0] == {
            "name": "Dentists",
            "personalization": "Hi doc",
            "leads": ["https://www.linkedin.com/in/a"],
            "outreach_personalization": "Short",
        }
        assert doc["segments"][1]["leads"] == ["https://www.linkedin.com/in/b"]
        assert doc["segments"][1]["dialog_personalization"] == "Warm"
        assert "outreach_personalization" not in doc["segments"][1]

    @pytest.mark.unit
    def test_missing_segment_urls_become_empty(self):
        doc = build_import_payload(sample_payload(), [["https://www.linkedin.com/in/a"]])
        assert doc["segments"][1]["leads"] == []

    @pytest.mark.unit
    def test_leads_detail_included_when_given(self):
        lead = Lead(full_name="A", title="CEO", company_name="X", linkedin_url="https://www.linkedin.com/in/a")
        doc = build_import_payload(sample_payload(), [[lead.linkedin_url], []], [[lead], []])

        assert doc["segments"][0]["leads_detail"][0]["full_name"] == "A"
        assert doc["segments"][1]["leads_detail"] == []

    @pytest.mark.unit
    def test_built_document_validates(self):
        doc = build_import_payload(
            sample_payload(),
            [["https://www.linkedin.com/in/a"], ["https://www.linkedin.com/in/b"]],
        )
        assert validate_import_payload(doc) == (True, None)


class TestImportKeys:
    """Tests for key generation and resolution."""

    @pytest.mark.unit
    def test_generated_key_with_prefix(self):
        assert re.fullmatch(f"demo-imports/{UUID_JSON}", generate_import_key("demo-imports"))

    @pytest.mark.unit
    def test_generated_key_without_prefix(self):
        assert re.fullmatch(UUID_JSON, generate_import_key(""))

    @pytest.mark.unit
    def test_bare_key_gets_prefix(self):
        assert resolve_import_key("abc.json", prefix="demo") == "demo/abc.json"

    @pytest.mark.unit
    def test_key_with_slash_used_as_is(self):
        assert resolve_import_key("other/abc.json", prefix="demo") == "other/abc.json"

    @pytest.mark.unit
    def test_bare_key_without_prefix(self):
        assert resolve_import_key(" abc.json ", prefix="") == "abc.json"

    @pytest.mark.unit
    def test_blank_key_generates_new(self):
        assert re.fullmatch(f"demo/{UUID_JSON}", resolve_import_key("  ", prefix="demo"))


class TestValidateImportPayload:
    """Tests for validate_import_payload."""

    def valid(self):
        return {
            "product": {
                "name": "Acme",
                "description": "CRM",
                "goal_type": "MANUAL_GOAL",
                "goal_description": "Demos",
            },
            "segments": [{"name": "S1", "personalization": "Hi", "leads": ["https://www.linkedin.com/in/a"]}],
        }

    @pytest.mark.unit
    def test_valid_payload(self):
        assert validate_import_payload(self.valid()) == (True, None)

    @pytest.mark.unit
    def test_not_an_object(self):
        assert validate_import_payload([]) == (False, "Payload must be an object")

    @pytest.mark.unit
    def test_missing_product(self):
        payload = self.valid()
        del payload["product"]
        assert validate_import_payload(payload) == (False, "Missing or invalid product")

    @pytest.mark.unit
    @pytest.mark.parametrize("field", ["name", "description", "goal_description"])
    def test_blank_product_field(self, field):
        payload = self.valid()
        payload["product"][field] = "  "
        assert validate_import_payload(payload) == (False, f"product.{field} must be a non-empty string")

    @pytest.mark.unit
    def test_goal_type_must_be_string(self):
        payload = self.valid()
        payload["product"]["goal_type"] = 1
        assert validate_import_payload(payload) == (False, "product.goal_type must be a string")

    @pytest.mark.unit
    def test_empty_segments(self):
        payload = self.valid()
        payload["segments"] = []
        assert validate_import_payload(payload) == (False, "segments must be a non-empty array")

    @pytest.mark.unit
    def test_segment_leads_must_be_list(self):
        payload = self.valid()
        payload["segments"][0]["leads"] = "https://www.linkedin.com/in/a"
        assert validate_import_payload(payload) == (False, "segments[0].leads must be an array of strings")

    @pytest.mark.unit
    def test_blank_lead_url(self):
        payload = self.valid()
        payload["segments"][0]["leads"].append("")
        assert validate_import_payload(payload) == (False, "segments[0].leads[1] must be a non-empty string")

    @pytest.mark.unit
    def test_segment_missing_personalization(self):
        payload = self.valid()
        del payload["segments"][0]["personalization"]
        assert validate_import_payload(payload) == (
            False,
            "segments[0].personalization must be a non-empty string",
        )
