# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Structured error types for the portal engine.

Every failure a request can hit is one of these. ``to_dict()`` carries the full
diagnostic detail for server logs; ``client_message`` is the generic text that
is safe to return to a caller.
"""

from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, Iterable, List, Optional

from . import _error_codes as codes


class PortalError(Exception):
    """Base structured error for the portal engine."""

    default_status = 500

    def __init__(
        self,
        message: str,
        *,
        code: str,
        subcode: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.status_code = status_code if status_code is not None else self.default_status
        self.details = details or {}
        self.timestamp = _dt.datetime.now(_dt.timezone.utc).isoformat().replace("+00:00", "Z")

    @property
    def client_message(self) -> str:
        return codes.CLIENT_MESSAGES.get(self.code, codes.CLIENT_MESSAGES[codes.INTERNAL_ERROR])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "subcode": self.subcode,
            "status_code": self.status_code,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def to_response(self) -> Dict[str, Any]:
        """Sanitized response body for the caller."""
        return {
            "error": self.client_message,
            "errorType": self.code,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(code={self.code!r}, subcode={self.subcode!r}, message={self.message!r})"


class AuthenticationError(PortalError):
    default_status = 401

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=codes.AUTHENTICATION_ERROR, subcode=subcode, details=details)


class AuthorizationError(PortalError):
    default_status = 403

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=codes.AUTHORIZATION_ERROR, subcode=subcode, details=details)


class NotFoundError(PortalError):
    default_status = 404

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=codes.NOT_FOUND_ERROR, subcode=subcode, details=details)


class ValidationError(PortalError):
    """Malformed request or a write that touches fields the caller may not set."""

    default_status = 400

    def __init__(
        self,
        message: str,
        *,
        subcode: Optional[str] = None,
        violating_fields: Optional[Iterable[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        d = details or {}
        self.violating_fields: List[str] = sorted(violating_fields or [])
        if self.violating_fields:
            d["violating_fields"] = self.violating_fields
        super().__init__(message, code=codes.VALIDATION_ERROR, subcode=subcode, details=d)


class ConfigurationError(PortalError):
    default_status = 500

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=codes.CONFIGURATION_ERROR, subcode=subcode, details=details)


class UpstreamError(PortalError):
    """Non-success response (or transport failure) from the data service."""

    def __init__(
        self,
        message: str,
        status_code: int,
        subcode: Optional[str] = None,
        service_error_code: Optional[str] = None,
        correlation_id: Optional[str] = None,
        client_request_id: Optional[str] = None,
        body_excerpt: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        d = details or {}
        if service_error_code is not None:
            d["service_error_code"] = service_error_code
        if correlation_id is not None:
            d["correlation_id"] = correlation_id
        if client_request_id is not None:
            d["client_request_id"] = client_request_id
        if body_excerpt is not None:
            d["body_excerpt"] = body_excerpt
        super().__init__(
            message,
            code=codes.UPSTREAM_ERROR,
            subcode=subcode,
            status_code=status_code,
            details=d,
        )


class GatewayTimeoutError(PortalError):
    default_status = 504

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=codes.TIMEOUT_ERROR, subcode=codes.HTTP_504, details=details)


__all__ = [
    "PortalError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "ConfigurationError",
    "UpstreamError",
    "GatewayTimeoutError",
]
