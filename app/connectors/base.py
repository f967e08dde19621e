"""
app/connectors/base.py

Base connector abstraction and shared HTTP mechanics.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import requests

from app.config import ExternalHTTPSettings
from app.connectors.rate_limiter import TokenBucketRateLimiter
from app.domain.resources import ResourceCatalog, ResourceType
from app.domain.sync import ExternalRecord

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class ConnectorError(RuntimeError):
    """
    Base class for failures talking to a provider API.
    """


class ConnectorRequestError(ConnectorError):
    """
    Raised when a connector cannot complete a request after retries,
    or the provider answered with a non-retryable status.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResourceNotFoundError(ConnectorError):
    """
    Raised when the provider answers 404 for the requested object.
    """


@dataclass(frozen=True)
class EndpointSpec:
    """
    Where one resource type is listed and fetched.

    Paths are relative to the connector base URL and may contain ``{id}`` and
    ``{parent_id}`` placeholders. ``get_key`` of ``None`` means the object is
    the whole response body. ``parent_param`` sends the parent id as a query
    parameter instead of a path segment.
    """

    list_path: str
    list_key: str
    get_path: str | None = None
    get_key: str | None = None
    list_params: tuple[tuple[str, str], ...] = ()
    parent_param: str | None = None
    id_key: str = "id"


class BaseConnector(ABC):
    """
    Connector interface for listing and fetching provider objects.
    """

    provider: str

    def __init__(
        self,
        *,
        provider: str,
        catalog: ResourceCatalog,
        http_settings: ExternalHTTPSettings,
        rate_limiter: TokenBucketRateLimiter,
        session: requests.Session | None = None,
    ) -> None:
        self.provider = provider
        self.catalog = catalog
        self._session = session or requests.Session()
        self._rate_limiter = rate_limiter
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier
        self._backoff_max_seconds = http_settings.backoff_max_seconds

    @abstractmethod
    def iter_pages(
        self,
        resource: str,
        parent_id: str | None = None,
    ) -> Iterator[list[ExternalRecord]]:
        """
        Yield every page of ``resource``, following the provider cursor until exhausted.
        """

    @abstractmethod
    def get_one(
        self,
        resource: str,
        record_id: str,
        parent_id: str | None = None,
    ) -> ExternalRecord | None:
        """
        Fetch one object by id. Returns ``None`` when it no longer exists remotely.
        """

    def list_all(self, resource: str, parent_id: str | None = None) -> list[ExternalRecord]:
        records: list[ExternalRecord] = []
        for page in self.iter_pages(resource, parent_id):
            records.extend(page)
        return records

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    def _to_record(
        self,
        resource: ResourceType,
        item: Mapping[str, Any],
        *,
        id_key: str = "id",
        parent_id: str | None = None,
    ) -> ExternalRecord:
        raw_id = item.get(id_key)
        if raw_id is None or raw_id == "":
            raise ConnectorError(f"{self.provider}: {resource.name} object has no '{id_key}'.")
        return ExternalRecord(
            resource=resource.name,
            id=str(raw_id),
            data=dict(item),
            parent_id=parent_id if parent_id is not None else parent_id_from(resource, item),
        )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def _request_json(
        self,
        *,
        method: str,
        url: str,
        params: Mapping[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Execute an HTTP request and return parsed JSON with retry support.
        """

        response = self._request(method=method, url=url, params=params, headers=headers)
        return self._parse_json(response)

    def _parse_json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(
                f"{self.provider}: response was not valid JSON.",
                status_code=response.status_code,
            ) from exc

    def _request(
        self,
        *,
        method: str,
        url: str,
        params: Mapping[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with rate limiting and exponential backoff.
        """

        merged_headers = {**self._default_headers(), **(headers or {})}
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            self._rate_limiter.acquire()
            retry_after: float | None = None
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=dict(params) if params else None,
                    headers=merged_headers,
                    timeout=self._timeout_seconds,
                )
                if response.status_code == 404:
                    raise ResourceNotFoundError(f"{self.provider}: not found url={url}")
                if response.status_code in RETRYABLE_STATUS_CODES:
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Connector request failed provider=%s status=%s url=%s error=%s",
                        self.provider,
                        status_code,
                        url,
                        exc,
                    )
                    raise ConnectorRequestError(
                        f"{self.provider}: request failed with status {status_code}.",
                        status_code=status_code,
                    ) from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = min(
                self._backoff_max_seconds,
                self._backoff_initial_seconds * (self._backoff_multiplier**attempt),
            )
            if retry_after is not None:
                backoff_seconds = max(backoff_seconds, retry_after)
            logger.warning(
                "Connector request retry provider=%s attempt=%s/%s wait_seconds=%.2f url=%s",
                self.provider,
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error(
            "Connector request exhausted retries provider=%s url=%s error=%s",
            self.provider,
            url,
            last_error,
        )
        status_code = None
        if isinstance(last_error, requests.HTTPError) and last_error.response is not None:
            status_code = last_error.response.status_code
        raise ConnectorRequestError(
            f"{self.provider}: request failed after retries.",
            status_code=status_code,
        ) from last_error


def parent_id_from(resource: ResourceType, item: Mapping[str, Any]) -> str | None:
    """
    Read the parent id a document carries, if its resource type declares one.

    Expanded references (``{"id": ...}``) are reduced to their id.
    """

    if resource.parent_field is None:
        return None
    value = item.get(resource.parent_field)
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
