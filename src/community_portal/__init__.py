# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Dataverse-backed CRUD engine for community portals."""

from .client import PortalClient
from .core.config import PortalConfig
from .core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    GatewayTimeoutError,
    NotFoundError,
    PortalError,
    UpstreamError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "PortalClient",
    "PortalConfig",
    "PortalError",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "GatewayTimeoutError",
    "NotFoundError",
    "UpstreamError",
    "ValidationError",
]
