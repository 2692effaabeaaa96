# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from ..common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


@dataclass(frozen=True)
class PortalConfig:
    """
    Configuration settings for the portal engine.

    :param api_version: Dataverse Web API version segment. Default is ``"v9.2"``.
    :type api_version: str
    :param config_cache_ttl: Seconds an entity configuration stays cached (default: 60).
    :type config_cache_ttl: float
    :param metadata_cache_ttl: Seconds a validated schema mapping stays cached (default: 300).
    :type metadata_cache_ttl: float
    :param token_refresh_skew: Seconds before expiry at which the service token is renewed (default: 60).
    :type token_refresh_skew: float
    :param http_timeout: Upper bound on wait time for each outbound call, in seconds (default: 30).
    :type http_timeout: float
    :param max_page_size: Hard maximum page size for list requests (default: 100).
    :type max_page_size: int
    :param default_page_size: Page size used when the caller sends none (default: 50).
    :type default_page_size: int
    :param custom_prefixes: Publisher prefixes of custom columns, e.g. ``("cp_",)``.
    :type custom_prefixes: tuple[str, ...]
    :param token_leeway: Clock-skew tolerance in seconds for inbound token expiry (default: 60).
    :type token_leeway: int
    :param contact_subject_field: Optional contact column holding the identity provider subject.
        When set, contact ownership is verified against the token subject instead of the email.
    :type contact_subject_field: str or None
    :param language_code: LCID used to pick labels from form XML (default: 1033).
    :type language_code: int
    :param contact_view_guid: Saved query shaping the organization contact directory.
    :type contact_view_guid: str or None
    :param contact_form_guid: System form describing organization contacts.
    :type contact_form_guid: str or None
    :param log_level: Level for the ``community_portal`` logger (default: ``"WARNING"``).
    :type log_level: str
    """

    api_version: str = "v9.2"
    config_cache_ttl: float = 60.0
    metadata_cache_ttl: float = 300.0
    token_refresh_skew: float = 60.0
    http_timeout: float = 30.0
    max_page_size: int = MAX_PAGE_SIZE
    default_page_size: int = DEFAULT_PAGE_SIZE
    custom_prefixes: Tuple[str, ...] = ("cp_",)
    token_leeway: int = 60
    contact_subject_field: Optional[str] = None
    language_code: int = 1033
    contact_view_guid: Optional[str] = None
    contact_form_guid: Optional[str] = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "PortalConfig":
        """
        Create a configuration instance, applying ``PORTAL_*`` environment overrides.

        :return: Configuration instance.
        :rtype: ~community_portal.core.config.PortalConfig
        """
        defaults = cls()
        prefixes = os.getenv("PORTAL_CUSTOM_PREFIXES", "").strip()
        return cls(
            api_version=os.getenv("PORTAL_API_VERSION", defaults.api_version),
            config_cache_ttl=float(os.getenv("PORTAL_CONFIG_CACHE_TTL", defaults.config_cache_ttl)),
            metadata_cache_ttl=float(os.getenv("PORTAL_METADATA_CACHE_TTL", defaults.metadata_cache_ttl)),
            token_refresh_skew=float(os.getenv("PORTAL_TOKEN_REFRESH_SKEW", defaults.token_refresh_skew)),
            http_timeout=float(os.getenv("PORTAL_HTTP_TIMEOUT", defaults.http_timeout)),
            max_page_size=int(os.getenv("PORTAL_MAX_PAGE_SIZE", defaults.max_page_size)),
            default_page_size=int(os.getenv("PORTAL_DEFAULT_PAGE_SIZE", defaults.default_page_size)),
            custom_prefixes=tuple(p.strip() for p in prefixes.split(",") if p.strip()) or defaults.custom_prefixes,
            token_leeway=int(os.getenv("PORTAL_TOKEN_LEEWAY", defaults.token_leeway)),
            contact_subject_field=os.getenv("PORTAL_CONTACT_SUBJECT_FIELD") or None,
            language_code=int(os.getenv("PORTAL_LANGUAGE_CODE", defaults.language_code)),
            contact_view_guid=os.getenv("PORTAL_CONTACT_VIEW_GUID") or None,
            contact_form_guid=os.getenv("PORTAL_CONTACT_FORM_GUID") or None,
            log_level=os.getenv("PORTAL_LOG_LEVEL", defaults.log_level),
        )
