"""
Cloudflare v4 API client.

Every call returns the ``result`` part of the provider envelope or raises one
of the errors from :mod:`dnsboard.errors`. Nothing is retried or cached here.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from dnsboard.config.settings import DEFAULT_API_URL
from dnsboard.errors import (
    NotFound,
    OutcomeUnknown,
    ProviderError,
    ProviderUnreachable,
    RateLimited,
)
from dnsboard.records.validation import normalize_record

logger = logging.getLogger(__name__)

# 7003: could not route (bad object id), 1001: invalid zone, 81044: record does not exist
NOT_FOUND_CODES = {7003, 1001, 81044}
MAX_PER_PAGE = 100


def _encode_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    encoded = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded


def _retry_after(response: requests.Response) -> int:
    try:
        return int(float(response.headers.get("Retry-After", "1")))
    except ValueError:
        return 1


class CloudflareClient:
    """Thin authenticated wrapper around the provider REST API."""

    def __init__(
        self,
        api_token: str,
        email: Optional[str] = None,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_token = api_token
        self.email = email
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        # API tokens authenticate on their own; the owner email is never sent
        return {
            "Authorization": f"Bearer {token or self.api_token}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        **context: Any,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded provider envelope."""
        url = f"{self.base_url}{path}"
        mutating = method in ("POST", "PUT", "PATCH", "DELETE")
        logger.debug("Provider request %s %s", method, path)
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(token),
                params=_encode_params(params),
                json=payload,
                timeout=self.timeout,
            )
        except requests.ConnectTimeout as exc:
            raise ProviderUnreachable(
                "Timed out connecting to the DNS provider"
            ).with_context(**context) from exc
        except (requests.Timeout, requests.ConnectionError) as exc:
            if mutating:
                raise OutcomeUnknown(
                    "The DNS provider did not answer; the change may or may not have been applied"
                ).with_context(**context) from exc
            raise ProviderUnreachable("Failed to communicate with the DNS provider").with_context(**context) from exc
        except requests.RequestException as exc:
            raise ProviderUnreachable("Failed to communicate with the DNS provider").with_context(**context) from exc

        logger.debug("Provider response %s %s -> %s", method, path, response.status_code)

        if response.status_code == 429:
            raise RateLimited(
                "The DNS provider is throttling requests",
                retry_after=_retry_after(response),
                source="provider",
            ).with_context(**context)

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if response.status_code == 404:
                raise NotFound("Resource not found at the DNS provider").with_context(**context)
            raise ProviderError(
                "Invalid response from the DNS provider", http_status=response.status_code
            ).with_context(**context)

        errors = body.get("errors") or []
        first = errors[0] if errors and isinstance(errors[0], dict) else {}
        provider_code = first.get("code")

        if response.status_code == 404 or provider_code in NOT_FOUND_CODES:
            raise NotFound(first.get("message") or "Resource not found at the DNS provider").with_context(**context)

        if not body.get("success", False) or response.status_code >= 400:
            logger.warning(
                "Provider error on %s %s: status=%s code=%s", method, path, response.status_code, provider_code
            )
            raise ProviderError(
                first.get("message") or "DNS provider error",
                provider_code=provider_code,
                http_status=response.status_code,
            ).with_context(**context)

        return body

    def verify_credential(self, token: Optional[str] = None) -> Dict[str, Any]:
        """Check a provider token; defaults to the configured one."""
        body = self._request("GET", "/user/tokens/verify", token=token or self.api_token, operation="verify")
        return body.get("result") or {}

    def list_zones(self, params: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], Dict]:
        body = self._request("GET", "/zones", params=params, operation="list_zones")
        return body.get("result") or [], body.get("result_info") or {}

    def get_zone(self, zone_id: str) -> Dict[str, Any]:
        body = self._request("GET", f"/zones/{zone_id}", operation="get_zone", zone_id=zone_id)
        return body["result"]

    def list_records(self, zone_id: str, params: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], Dict]:
        body = self._request(
            "GET", f"/zones/{zone_id}/dns_records", params=params, operation="list_records", zone_id=zone_id
        )
        return body.get("result") or [], body.get("result_info") or {}

    def iter_pages(self, fetch, *args) -> Iterator[List[Dict]]:
        """Yield every page from a paginated list call."""
        page = 1
        while True:
            items, info = fetch(*args, {"page": page, "per_page": MAX_PER_PAGE})
            yield items
            total_pages = info.get("total_pages") or 1
            if page >= total_pages or not items:
                return
            page += 1

    def list_all_zones(self) -> List[Dict]:
        return [zone for page in self.iter_pages(self.list_zones) for zone in page]

    def list_all_records(self, zone_id: str) -> List[Dict]:
        return [record for page in self.iter_pages(self.list_records, zone_id) for record in page]

    def get_record(self, zone_id: str, record_id: str) -> Dict[str, Any]:
        body = self._request(
            "GET",
            f"/zones/{zone_id}/dns_records/{record_id}",
            operation="get_record",
            zone_id=zone_id,
            record_id=record_id,
        )
        return body["result"]

    def create_record(self, zone_id: str, data: Dict[str, Any], zone_name: Optional[str] = None) -> Dict[str, Any]:
        """Create a record.

        When ``zone_name`` is given, ``data`` is validated and relative names are
        expanded against it before anything is sent. Without it, ``data`` must be
        a payload already produced by ``normalize_record`` and is sent as is.
        """
        payload = normalize_record(data, zone_name) if zone_name else data
        body = self._request(
            "POST", f"/zones/{zone_id}/dns_records", payload=payload, operation="create", zone_id=zone_id
        )
        return body["result"]

    def update_record(self, zone_id: str, record_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Patch a record; fields left out are kept by the provider."""
        body = self._request(
            "PATCH",
            f"/zones/{zone_id}/dns_records/{record_id}",
            payload=partial,
            operation="update",
            zone_id=zone_id,
            record_id=record_id,
        )
        return body["result"]

    def delete_record(self, zone_id: str, record_id: str) -> Dict[str, Any]:
        body = self._request(
            "DELETE",
            f"/zones/{zone_id}/dns_records/{record_id}",
            operation="delete",
            zone_id=zone_id,
            record_id=record_id,
        )
        return body.get("result") or {"id": record_id}

    def close(self) -> None:
        self.session.close()
