# src/icp_leadgen/tests/conftest.py
"""Shared fixtures and fakes for the lead generation tests."""
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from icp_leadgen.job_store import JobStore
from icp_leadgen.search_client import Pagination, RecordSource, SearchPage


def make_person(index: int, **overrides: Any) -> Dict[str, Any]:
    """Raw Apollo person record with a title, company and LinkedIn URL."""
    record: Dict[str, Any] = {
        "id": f"person_{index}",
        "first_name": "Test",
        "last_name": f"Person{index}",
        "title": "CEO",
        "city": "Austin",
        "state": "Texas",
        "country": "United States",
        "linkedin_url": f"https://www.linkedin.com/in/test-person-{index}",
        "organization": {
            "name": f"Company {index}",
            "primary_domain": f"company{index}.com",
            "industry": "software",
            "estimated_num_employees": 42,
        },
    }
    record.update(overrides)
    return record


def make_page(records: List[Dict[str, Any]], total_pages: int = 1, page: int = 1) -> SearchPage:
    return SearchPage(
        records=records,
        pagination=Pagination(
            page=page, per_page=100, total_entries=len(records), total_pages=total_pages
        ),
        source=RecordSource.TOP_LEVEL,
    )


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSearchClient:
    """Search client answering from ``handler(filters, page, call_index)``."""

    def __init__(self, handler: Callable[[Dict[str, Any], int, int], SearchPage]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def search(self, filters: Dict[str, Any], page: int = 1, per_page: int = 100) -> SearchPage:
        call_index = len(self.calls)
        self.calls.append({"filters": dict(filters), "page": page, "per_page": per_page})
        return self.handler(filters, page, call_index)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def job_store() -> JobStore:
    return JobStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MagicMock:
    """Configured storage mock that records uploads."""
    client = MagicMock()
    client.is_configured.return_value = True
    client.upload_csv.side_effect = lambda filename, body: f"exports/{filename}"
    client.get_presigned_download_url.side_effect = (
        lambda filename: f"https://minio.example.com/bucket/exports/{filename}?sig=abc"
    )
    client.put_import_document.side_effect = (
        lambda document, existing_key=None: existing_key or "demo/generated.json"
    )
    return client


@pytest.fixture
def unconfigured_storage() -> MagicMock:
    client = MagicMock()
    client.is_configured.return_value = False
    return client
