# src/icp_leadgen/tests/test_normalize.py
"""
Unit tests for person normalization.

Tests cover:
- Name, location, website and employee bucket derivation
- LinkedIn URL extraction from every supported field
- Lead validity and dedup key
"""
import pytest

from icp_leadgen.models import Lead
from icp_leadgen.normalize import (
    bucket_employee_count,
    dedup_key,
    extract_linkedin_url,
    is_lead_valid,
    normalize_person,
    only_linkedin_url,
)


class TestNormalizePerson:
    """Tests for normalize_person."""

    @pytest.mark.unit
    def test_full_record(self):
        lead = normalize_person(
            {
                "id": "abc123",
                "name": " Jane Doe ",
                "title": "VP Engineering",
                "city": "Berlin",
                "state": "",
                "country": "Germany",
                "linkedin_url": "https://www.linkedin.com/in/janedoe",
                "organization": {
                    "name": "Acme GmbH",
                    "primary_domain": "https://acme.de",
                    "industry": "information technology",
                    "estimated_num_employees": 120,
                },
            }
        )

        assert lead.full_name == "Jane Doe"
        assert lead.title == "VP Engineering"
        assert lead.location == "Berlin, Germany"
        assert lead.linkedin_url == "https://www.linkedin.com/in/janedoe"
        assert lead.company_name == "Acme GmbH"
        assert lead.company_website == "https://acme.de"
        assert lead.company_industry == "information technology"
        assert lead.company_employee_range == "51-200"
        assert lead.source == "apollo"
        assert lead.apollo_person_id == "abc123"
        assert lead.confidence_score == 1.0

    @pytest.mark.unit
    def test_name_from_first_and_last(self):
        lead = normalize_person({"first_name": "Jane", "last_name": "Doe"})
        assert lead.full_name == "Jane Doe"

    @pytest.mark.unit
    def test_first_name_only(self):
        assert normalize_person({"first_name": "Jane"}).full_name == "Jane"

    @pytest.mark.unit
    def test_empty_record_is_total(self):
        lead = normalize_person({})
        assert lead == Lead()

    @pytest.mark.unit
    def test_organization_not_a_dict(self):
        lead = normalize_person({"title": "CEO", "organization": None})
        assert lead.company_name == ""
        assert lead.company_website == ""

    @pytest.mark.unit
    def test_numeric_id_becomes_string(self):
        assert normalize_person({"id": 42}).apollo_person_id == "42"


class TestBucketEmployeeCount:
    """Tests for bucket_employee_count."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "count,expected",
        [
            (None, ""),
            (1, "1-10"),
            (10, "1-10"),
            (11, "11-50"),
            (50, "11-50"),
            (200, "51-200"),
            (201, "201-500"),
            (500, "201-500"),
            (501, "500+"),
            ("75", "51-200"),
            ("many", ""),
        ],
    )
    def test_buckets(self, count, expected):
        assert bucket_employee_count(count) == expected


class TestLinkedInExtraction:
    """Tests for extract_linkedin_url and only_linkedin_url."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "record,expected",
        [
            ({"linkedin_url": "https://www.linkedin.com/in/a"}, "https://www.linkedin.com/in/a"),
            ({"linkedin_profile_url": "http://linkedin.com/in/b"}, "http://linkedin.com/in/b"),
            ({"linkedin": "linkedin.com/in/c"}, "https://linkedin.com/in/c"),
            ({"linkedin_url": "www.linkedin.com/in/x"}, "https://www.linkedin.com/in/x"),
            ({"linkedin_url": "uk.linkedin.com/in/y"}, "https://uk.linkedin.com/in/y"),
            ({"profile": {"linkedin_url": "https://www.linkedin.com/in/d"}}, "https://www.linkedin.com/in/d"),
            ({"linkedin_url": "e-slug"}, "https://www.linkedin.com/in/e-slug"),
            ({"linkedin_url": "/f-slug"}, "https://www.linkedin.com/in/f-slug"),
            ({"linkedin_slug": "g-slug"}, "https://www.linkedin.com/in/g-slug"),
            ({"linkedin_id": " /h-id "}, "https://www.linkedin.com/in/h-id"),
            ({"linkedin_url": "https://app.apollo.io/#/people/1"}, ""),
            ({"linkedin_url": "   ", "linkedin_slug": "i-slug"}, "https://www.linkedin.com/in/i-slug"),
            ({}, ""),
        ],
    )
    def test_extraction(self, record, expected):
        assert extract_linkedin_url(record) == expected

    @pytest.mark.unit
    def test_first_non_empty_field_wins(self):
        record = {
            "linkedin_url": "",
            "linkedin_profile_url": "https://www.linkedin.com/in/profile",
            "linkedin": "https://www.linkedin.com/in/other",
        }
        assert extract_linkedin_url(record) == "https://www.linkedin.com/in/profile"

    @pytest.mark.unit
    def test_only_linkedin_url(self):
        assert only_linkedin_url("https://www.linkedin.com/in/x") == "https://www.linkedin.com/in/x"
        assert only_linkedin_url("https://example.com/x") == ""
        assert only_linkedin_url(None) == ""
        assert only_linkedin_url("") == ""


class TestValidityAndDedup:
    """Tests for is_lead_valid and dedup_key."""

    @pytest.mark.unit
    def test_valid_requires_title_and_company(self):
        assert is_lead_valid(Lead(title="CEO", company_name="Acme")) is True
        assert is_lead_valid(Lead(title="CEO")) is False
        assert is_lead_valid(Lead(company_name="Acme")) is False

    @pytest.mark.unit
    def test_dedup_key_prefers_linkedin(self):
        lead = Lead(linkedin_url="https://www.linkedin.com/in/x", apollo_person_id="p1")
        assert dedup_key(lead) == "https://www.linkedin.com/in/x"

    @pytest.mark.unit
    def test_dedup_key_falls_back_to_person_id(self):
        assert dedup_key(Lead(apollo_person_id="p1")) == "p1"

    @pytest.mark.unit
    def test_dedup_key_empty_when_unidentifiable(self):
        assert dedup_key(Lead(title="CEO", company_name="Acme")) == ""
