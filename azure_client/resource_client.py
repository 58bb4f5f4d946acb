"""Generic Azure Resource Manager client.

Reads, lists and upserts ARM resources by their hierarchical resource id.
Each call is a single request; failures are raised to the caller and never
retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from app.config import (
    ARM_ENDPOINT,
    ARM_REQUEST_TIMEOUT_SECONDS,
    RESOURCE_LIST_API_VERSION,
)
from azure_client.auth import AzureSession

logger = logging.getLogger(__name__)


class ResourceClientError(Exception):
    """Raised when an ARM request fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class ResourceNotFoundError(ResourceClientError):
    """Raised when ARM answers 404 for a resource."""


def _parse_error(response: requests.Response) -> tuple[str, str]:
    """Extract (code, message) from an ARM error body."""
    try:
        error = response.json().get("error", {})
        code = error.get("code", "") or f"HTTP_{response.status_code}"
        message = error.get("message", "") or response.text[:300]
    except ValueError:
        code = f"HTTP_{response.status_code}"
        message = response.text[:300]
    return code, message


class ResourceClient:
    """Thin wrapper over the ARM REST API for one subscription."""

    def __init__(
        self,
        session: AzureSession,
        timeout: int = ARM_REQUEST_TIMEOUT_SECONDS,
        endpoint: str = ARM_ENDPOINT,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._endpoint = endpoint.rstrip("/")

    @property
    def subscription_id(self) -> str:
        return self._session.subscription_id

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._session.get_token()}",
            "Content-Type": "application/json",
        }

    def _url(self, resource_id: str) -> str:
        if resource_id.startswith("https://"):
            return resource_id
        return f"{self._endpoint}/{resource_id.lstrip('/')}"

    def _check(self, response: requests.Response, resource_id: str) -> None:
        if response.status_code == 404:
            code, _ = _parse_error(response)
            raise ResourceNotFoundError(
                f"Resource not found: {resource_id} ({code})",
                status_code=404,
                code=code,
            )
        if response.status_code >= 400:
            code, message = _parse_error(response)
            raise ResourceClientError(
                f"Azure API returned HTTP {response.status_code}: {code}: {message}",
                status_code=response.status_code,
                code=code,
            )

    def _decode(self, response: requests.Response, resource_id: str) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError as exc:
            raise ResourceClientError(
                f"Azure API returned a non-JSON body for {resource_id} "
                f"(HTTP {response.status_code}): {response.text[:300]}",
                status_code=response.status_code,
                code="InvalidResponse",
            ) from exc

    def get_resource(self, resource_id: str, api_version: str) -> dict[str, Any]:
        """Fetch one resource by id.

        Raises:
            ResourceNotFoundError: The resource does not exist.
            ResourceClientError: Any other HTTP or network failure.
        """
        url = self._url(resource_id)
        logger.debug("GET %s (api-version=%s)", url, api_version)
        try:
            response = requests.get(
                url,
                params={"api-version": api_version},
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ResourceClientError(f"Network error reading {resource_id}: {exc}") from exc

        self._check(response, resource_id)
        return self._decode(response, resource_id)

    def list_resources(
        self,
        resource_type: str,
        resource_group: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """List every resource of ``resource_type`` in the subscription or one group.

        Handles pagination via the nextLink field in the API response.
        """
        scope = self._session.subscription_path
        if resource_group:
            scope = f"{scope}/resourceGroups/{resource_group}"
        url: Optional[str] = self._url(f"{scope}/resources")
        params: Optional[dict[str, str]] = {
            "api-version": RESOURCE_LIST_API_VERSION,
            "$filter": f"resourceType eq '{resource_type}'",
        }

        resources: list[dict[str, Any]] = []
        page_count = 0
        while url:
            page_count += 1
            logger.debug("Listing %s page %d: %s", resource_type, page_count, url)
            try:
                response = requests.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=self._timeout,
                )
            except requests.RequestException as exc:
                raise ResourceClientError(
                    f"Network error listing {resource_type}: {exc}"
                ) from exc

            self._check(response, scope)
            data = self._decode(response, scope)
            resources.extend(data.get("value", []))
            # nextLink already carries the query string
            url = data.get("nextLink")
            params = None

        logger.info(
            "Listed %d %s resources in %s (%d pages)",
            len(resources),
            resource_type,
            resource_group or "subscription",
            page_count,
        )
        return resources

    def upsert_resource(
        self,
        resource_id: str,
        properties: dict[str, Any],
        location: str,
        api_version: str,
    ) -> dict[str, Any]:
        """Create or update a resource with a PUT.

        Returns the response body, or an empty dict when ARM accepted the
        request without one.
        """
        url = self._url(resource_id)
        payload = {"location": location, "properties": properties}
        logger.debug("PUT %s (api-version=%s)", url, api_version)
        try:
            response = requests.put(
                url,
                params={"api-version": api_version},
                json=payload,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ResourceClientError(f"Network error writing {resource_id}: {exc}") from exc

        self._check(response, resource_id)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}
