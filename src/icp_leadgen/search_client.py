"""Apollo people-search client.

This module wraps the Apollo ``mixed_people/api_search`` endpoint with an
async httpx client, retries transient failures with exponential backoff and
adapts the several response shapes Apollo has used into one ``SearchPage``.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .config import ConfigError, config
from .logging_utils import get_logger
from .retry_utils import RetryPolicy, is_retryable_status, retry_async

logger = get_logger(__name__)

SEARCH_PATH = "/mixed_people/api_search"
ERROR_BODY_LIMIT = 200

# Fields on an outer record that may carry the profile URL when the inner
# person object leaves it empty
LINKEDIN_FIELDS = ("linkedin_url", "linkedin_profile_url", "linkedin")


class ApolloError(Exception):
    """Base exception for Apollo client errors."""

    pass


class ApolloAPIError(ApolloError):
    """Raised for a non-retryable HTTP error response."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"Apollo API error {status_code}: {detail[:ERROR_BODY_LIMIT]}")
        self.status_code = status_code
        self.detail = detail[:ERROR_BODY_LIMIT]


class ApolloRetryableError(ApolloError):
    """Raised for rate limiting (429) and server errors (5xx)."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"Apollo API error {status_code}: {detail[:ERROR_BODY_LIMIT]}")
        self.status_code = status_code
        self.detail = detail[:ERROR_BODY_LIMIT]


class ApolloRetryExhaustedError(ApolloError):
    """Raised when every retry attempt failed."""

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException):
        super().__init__(f"{operation_name} failed after {attempts} attempts: {last_error}")
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


class RecordSource(str, Enum):
    """Where in the response body the person records were found."""

    TOP_LEVEL = "people"
    DATA_WRAPPER = "data.people"
    CONTACTS = "contacts"
    EMPTY = "empty"


@dataclass
class Pagination:
    """Pagination block of a search response."""

    page: int = 1
    per_page: int = 100
    total_entries: int = 0
    total_pages: int = 1


@dataclass
class SearchPage:
    """One page of people-search results.

    Attributes:
        records: Raw person records, inner ``person`` objects already merged.
        pagination: Pagination info, defaulted from the request when absent.
        source: Response shape the records came from.
    """

    records: List[Dict[str, Any]] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)
    source: RecordSource = RecordSource.EMPTY


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def merge_inner_person(record: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a ``{"person": {...}}`` wrapper.

    The inner object wins over the outer one, except that LinkedIn fields
    left empty on the inner object are filled from the outer record.
    """
    inner = record.get("person")
    if not isinstance(inner, dict):
        return record

    outer = {k: v for k, v in record.items() if k != "person"}
    merged = {**outer, **inner}
    for name in LINKEDIN_FIELDS:
        if not merged.get(name) and outer.get(name):
            merged[name] = outer[name]
    return merged


def parse_search_response(
    body: Any,
    page: int = 1,
    per_page: int = 100,
) -> SearchPage:
    """Adapt a raw response body to a SearchPage.

    Records are looked up under ``people``, then ``data.people``, then
    ``contacts``. Pagination is read from ``pagination`` or
    ``data.pagination``.

    Args:
        body: Decoded JSON body.
        page: Requested page, used when the response omits it.
        per_page: Requested page size, used when the response omits it.

    Returns:
        SearchPage, empty when no known record list is present.
    """
    if not isinstance(body, dict):
        return SearchPage(pagination=Pagination(page=page, per_page=per_page))

    data = body.get("data") if isinstance(body.get("data"), dict) else {}

    if isinstance(body.get("people"), list):
        raw_records, source = body["people"], RecordSource.TOP_LEVEL
    elif isinstance(data.get("people"), list):
        raw_records, source = data["people"], RecordSource.DATA_WRAPPER
    elif isinstance(body.get("contacts"), list):
        raw_records, source = body["contacts"], RecordSource.CONTACTS
    else:
        raw_records, source = [], RecordSource.EMPTY

    records = [merge_inner_person(r) for r in raw_records if isinstance(r, dict)]

    raw_pagination = body.get("pagination")
    if not isinstance(raw_pagination, dict):
        raw_pagination = data.get("pagination")
    if not isinstance(raw_pagination, dict):
        raw_pagination = {}

    pagination = Pagination(
        page=_to_int(raw_pagination.get("page"), page),
        per_page=_to_int(raw_pagination.get("per_page"), per_page),
        total_entries=_to_int(raw_pagination.get("total_entries"), 0),
        total_pages=_to_int(raw_pagination.get("total_pages"), 1),
    )
    return SearchPage(records=records, pagination=pagination, source=source)


class ApolloSearchClient:
    """Async client for Apollo people search.

    Attributes:
        base_url: API base URL without trailing slash.
        timeout_seconds: Per-request timeout.
        retry_policy: Retry policy for transient failures.

    Example:
        >>> async with ApolloSearchClient() as client:
        ...     page = await client.search({"person_titles": ["CTO"]})
        ...     print(len(page.records))
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        """Initialize the search client.

        Args:
            api_key: Apollo API key. Defaults to APOLLO_API_KEY.
            base_url: API base URL. Defaults to APOLLO_BASE_URL.
            timeout_seconds: Request timeout. Defaults to APOLLO_TIMEOUT_SECONDS.
            retry_policy: Attempt count and backoff. Defaults to APOLLO_MAX_RETRIES
                attempts starting at APOLLO_RETRY_DELAY_SECONDS. Its retryable
                exception types are replaced with the client's own.
            transport: Optional httpx transport (used by tests).
            sleep: Optional awaitable sleep used between retries.
        """
        self.api_key = (api_key if api_key is not None else config.APOLLO_API_KEY).strip()
        self.base_url = (base_url or config.APOLLO_BASE_URL).rstrip("/")
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else config.APOLLO_TIMEOUT_SECONDS
        )
        policy = retry_policy or RetryPolicy(
            max_attempts=config.APOLLO_MAX_RETRIES,
            base_delay=config.APOLLO_RETRY_DELAY_SECONDS,
        )
        # Only 429, 5xx and transport failures are retried, whatever the caller passed.
        self.retry_policy = replace(
            policy, retryable_exceptions=(ApolloRetryableError, httpx.TransportError)
        )
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self.request_count = 0

    async def __aenter__(self) -> "ApolloSearchClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_body(self, filters: Dict[str, Any], page: int, per_page: int) -> Dict[str, Any]:
        body: Dict[str, Any] = {"api_key": self.api_key, "page": page, "per_page": per_page}
        for key, value in filters.items():
            if isinstance(value, (list, tuple)) and len(value) == 0:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            if value is None:
                continue
            body[key] = value
        return body

    async def _post_once(self, body: Dict[str, Any]) -> Any:
        self.request_count += 1
        response = await self._get_client().post(
            f"{self.base_url}{SEARCH_PATH}",
            json=body,
            headers={
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
                "X-Api-Key": self.api_key,
            },
        )
        if is_retryable_status(response.status_code):
            raise ApolloRetryableError(response.status_code, response.text)
        if not response.is_success:
            raise ApolloAPIError(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as e:
            raise ApolloError(f"Apollo returned invalid JSON: {e}") from e

    async def search(
        self,
        filters: Dict[str, Any],
        page: int = 1,
        per_page: int = 100,
    ) -> SearchPage:
        """Fetch one page of people matching ``filters``.

        Args:
            filters: Provider filters from ``map_filters``.
            page: 1-based page number.
            per_page: Page size.

        Returns:
            SearchPage with normalized record list and pagination.

        Raises:
            ConfigError: If no API key is configured.
            ApolloAPIError: For a non-retryable error status.
            ApolloRetryExhaustedError: If all attempts failed.
        """
        if not self.api_key:
            raise ConfigError("APOLLO_API_KEY is not set")

        body = self._build_body(filters, page, per_page)
        logger.debug(
            "Apollo search page=%d per_page=%d filters=%s",
            page,
            per_page,
            sorted(k for k in body if k not in ("api_key", "page", "per_page")),
        )

        data = await retry_async(
            lambda: self._post_once(body),
            self.retry_policy,
            operation_name="Apollo people search",
            sleep=self._sleep,
            exhausted_error=ApolloRetryExhaustedError,
        )
        result = parse_search_response(data, page=page, per_page=per_page)
        logger.debug(
            "Apollo returned %d records from %s (page %d/%d)",
            len(result.records),
            result.source.value,
            result.pagination.page,
            result.pagination.total_pages,
        )
        return result
