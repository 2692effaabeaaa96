# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Low-level Dataverse Web API client used by the portal operations.

Every call is issued once, sequentially, with the service token. Non-success
responses become :class:`~community_portal.core.errors.UpstreamError`; the
response body is kept in the error details for server logs only.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..common.constants import (
    ACTIVE_STATE_FILTER,
    CONTACT_PARENT_ACCOUNT_FIELD,
    CONTACT_SET,
    ENTITY_CONFIG_COLUMNS,
    ENTITY_CONFIG_SET,
    FORMATTED_VALUE_ANNOTATIONS,
    ODATA_COUNT,
    ODATA_NEXT_LINK,
)
from ..core._auth import _AuthManager
from ..core._error_codes import NOT_FOUND_RECORD, VALIDATION_INVALID_GUID
from ..core._http import _HttpClient
from ..core.cache import TTLCache
from ..core.config import PortalConfig
from ..core.errors import NotFoundError, UpstreamError, ValidationError
from ._metadata import _MetadataOperationsMixin

logger = logging.getLogger(__name__)

_GUID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")
_STRICT_GUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def is_guid(value: Any) -> bool:
    return isinstance(value, str) and bool(_STRICT_GUID_RE.match(value.strip()))


def sanitize_guid(value: Any, what: str = "id") -> str:
    """Return the braces-free, lowercased GUID or raise :class:`ValidationError`."""
    text = str(value or "").strip().strip("{}")
    if not is_guid(text):
        raise ValidationError(f"{what} is not a valid GUID", subcode=VALIDATION_INVALID_GUID)
    return text.lower()


@dataclass(frozen=True)
class _Page:
    records: List[Dict[str, Any]]
    total_count: int
    has_more: bool


class _ODataClient(_MetadataOperationsMixin):
    """Dataverse Web API client: the portal's reads, writes and metadata lookups."""

    @staticmethod
    def _escape_odata_quotes(value: str) -> str:
        """Escape single quotes for OData queries (by doubling them)."""
        return value.replace("'", "''")

    def __init__(
        self,
        auth: _AuthManager,
        base_url: str,
        config: Optional[PortalConfig] = None,
        metadata_cache: Optional[TTLCache] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.auth = auth
        self.base_url = (base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("base_url is required.")
        self.config = config or PortalConfig()
        self.api = f"{self.base_url}/api/data/{self.config.api_version}"
        self._metadata_cache = metadata_cache or TTLCache(self.config.metadata_cache_ttl)
        self._http = _HttpClient(timeout=self.config.http_timeout, session=session)

    def close(self) -> None:
        self._http.close()

    def _headers(self) -> Dict[str, str]:
        """Build standard OData headers with bearer auth."""
        scope = f"{self.base_url}/.default"
        token = self.auth._acquire_token(scope).access_token
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
        }

    def _request(self, method: str, url: str, *, not_found: Optional[str] = None, **kwargs: Any):
        """
        Issue one call and translate failures.

        :param not_found: When set, a 404 raises :class:`NotFoundError` with this subject
            instead of :class:`UpstreamError`.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        client_request_id = str(uuid.uuid4())
        headers["x-ms-client-request-id"] = client_request_id
        r = self._http._request(method, url, headers=headers, **kwargs)
        status = r.status_code
        if 200 <= status < 300:
            logger.debug("%s %s -> %s", method.upper(), url, status)
            return r

        if status == 404 and not_found:
            raise NotFoundError(f"{not_found} not found", subcode=NOT_FOUND_RECORD)

        service_code = None
        message = r.text or ""
        try:
            body = r.json()
            err = body.get("error", {}) if isinstance(body, dict) else {}
            service_code = err.get("code")
            message = err.get("message") or message
        except ValueError:
            pass
        r_headers = getattr(r, "headers", {}) or {}
        logger.warning("%s %s failed with %s: %s", method.upper(), url, status, message[:200])
        raise UpstreamError(
            f"Dataverse request failed ({status}): {message[:200]}",
            status_code=status,
            subcode=f"http_{status}",
            service_error_code=service_code,
            correlation_id=r_headers.get("x-ms-service-request-id") or r_headers.get("REQ_ID"),
            client_request_id=client_request_id,
            body_excerpt=(r.text or "")[:200],
        )

    # ------------------------------------------------------------------ reads

    def _get_multiple(
        self,
        entity_set: str,
        *,
        select: Optional[Sequence[str]] = None,
        filter: Optional[str] = None,
        expand: Optional[Sequence[str]] = None,
        orderby: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> _Page:
        """
        Fetch one page of ``entity_set``.

        The service rejects ``$skip``, so page ``n`` is reached by following
        ``@odata.nextLink`` ``n - 1`` times.
        """
        headers = self._headers()
        headers["Prefer"] = f"odata.maxpagesize={page_size},{FORMATTED_VALUE_ANNOTATIONS}"
        params: Dict[str, Any] = {"$count": "true"}
        if select:
            params["$select"] = ",".join(select)
        if filter:
            params["$filter"] = filter
        if expand:
            params["$expand"] = ",".join(expand)
        if orderby:
            params["$orderby"] = orderby

        body = self._request("get", f"{self.api}/{entity_set}", headers=headers, params=params).json()
        total = body.get(ODATA_COUNT)
        current = 1
        while current < page:
            next_link = body.get(ODATA_NEXT_LINK)
            if not next_link:
                return _Page(records=[], total_count=total if total is not None else 0, has_more=False)
            body = self._request("get", next_link, headers=headers).json()
            current += 1

        records = body.get("value", [])
        return _Page(
            records=records,
            total_count=total if total is not None else len(records),
            has_more=bool(body.get(ODATA_NEXT_LINK)),
        )

    def _get_first(
        self,
        entity_set: str,
        *,
        filter: str,
        select: Optional[Sequence[str]] = None,
        expand: Optional[Sequence[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        headers = self._headers()
        headers["Prefer"] = FORMATTED_VALUE_ANNOTATIONS
        params: Dict[str, Any] = {"$filter": filter, "$top": 1}
        if select:
            params["$select"] = ",".join(select)
        if expand:
            params["$expand"] = ",".join(expand)
        items = self._request("get", f"{self.api}/{entity_set}", headers=headers, params=params).json().get("value", [])
        return items[0] if items else None

    def _list_entity_configs(self) -> List[Dict[str, Any]]:
        params = {
            "$select": ",".join(ENTITY_CONFIG_COLUMNS),
            "$filter": ACTIVE_STATE_FILTER,
            "$orderby": "cp_menuorder asc",
        }
        r = self._request("get", f"{self.api}/{ENTITY_CONFIG_SET}", headers=self._headers(), params=params)
        return r.json().get("value", [])

    def _get_contact(self, contact_id: str, columns: Sequence[str]) -> Dict[str, Any]:
        url = f"{self.api}/{CONTACT_SET}({contact_id})"
        r = self._request("get", url, headers=self._headers(), params={"$select": ",".join(columns)}, not_found="Contact")
        return r.json()

    def _list_account_contact_ids(self, account_id: str) -> List[str]:
        params = {
            "$select": "contactid",
            "$filter": f"{CONTACT_PARENT_ACCOUNT_FIELD} eq '{self._escape_odata_quotes(account_id)}' and {ACTIVE_STATE_FILTER}",
        }
        r = self._request("get", f"{self.api}/{CONTACT_SET}", headers=self._headers(), params=params)
        return [row["contactid"] for row in r.json().get("value", []) if row.get("contactid")]

    # ----------------------------------------------------------------- writes

    def _create(self, entity_set: str, payload: Dict[str, Any]) -> str:
        """
        Create a record and return its GUID.

        Relies on the OData-EntityId (canonical) or Location header.
        """
        r = self._request("post", f"{self.api}/{entity_set}", headers=self._headers(), json=payload)
        for header in ("OData-EntityId", "OData-EntityID", "Location"):
            value = r.headers.get(header)
            if value:
                m = _GUID_RE.search(value)
                if m:
                    return m.group(0)
        raise UpstreamError(
            f"Create response missing GUID in OData-EntityId/Location headers (status={r.status_code})",
            status_code=502,
        )

    def _update(self, entity_set: str, key: str, payload: Dict[str, Any], etag: Optional[str] = None) -> None:
        """PATCH an existing record. ``If-Match`` prevents the PATCH from creating one."""
        headers = self._headers()
        headers["If-Match"] = etag or "*"
        self._request("patch", f"{self.api}/{entity_set}({key})", headers=headers, json=payload, not_found="Record")

    def _delete(self, entity_set: str, key: str) -> None:
        headers = self._headers()
        headers["If-Match"] = "*"
        self._request("delete", f"{self.api}/{entity_set}({key})", headers=headers, not_found="Record")
