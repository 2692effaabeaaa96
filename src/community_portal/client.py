# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import Optional

import requests

from azure.core.credentials import TokenCredential

from .core._auth import _AuthManager
from .core.cache import TTLCache
from .core.config import PortalConfig
from .data._formxml import FormXmlParser
from .data._navigation import NavigationResolver
from .data._odata import _ODataClient
from .operations.configs import ConfigOperations
from .operations.contacts import ContactOperations
from .operations.records import RecordOperations


class PortalClient:
    """
    Community-portal engine bound to one Dataverse environment.

    The client authenticates to Dataverse as a service principal through Azure
    Identity and exposes the portal's operations under namespaces:

    - ``client.configs``: entity configuration lookup and menu listing
    - ``client.contacts``: binding a caller-supplied contact id to a token identity
    - ``client.records``: scoped list, get, form, subgrid, create, update and delete

    It owns three caches, each with its own lifetime: entity configurations,
    schema metadata (entity definitions, lookup mappings, relationships) and the
    service access token.

    **Context Manager Support (Recommended)**::

        with PortalClient(base_url, credential) as client:
            ctx = client.records.authorize("ideas", contact_guid, identity)
            page = client.records.list(ctx)

    :param base_url: Dataverse environment URL, for example
        ``"https://org.crm.dynamics.com"``. Trailing slash is automatically removed.
    :type base_url: :class:`str`
    :param credential: Azure Identity credential for the service principal.
    :type credential: ~azure.core.credentials.TokenCredential
    :param config: Optional configuration. If not provided, defaults are loaded from
        :meth:`~community_portal.core.config.PortalConfig.from_env`.
    :type config: ~community_portal.core.config.PortalConfig or None

    :raises ValueError: If ``base_url`` is missing or empty after trimming.
    """

    def __init__(
        self,
        base_url: str,
        credential: TokenCredential,
        config: Optional[PortalConfig] = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        if not self._base_url:
            raise ValueError("base_url is required.")
        self._config = config or PortalConfig.from_env()

        self._config_cache = TTLCache(self._config.config_cache_ttl)
        self._metadata_cache = TTLCache(self._config.metadata_cache_ttl)
        self._token_cache = TTLCache(self._config.metadata_cache_ttl)
        self.auth = _AuthManager(credential, self._token_cache, self._config.token_refresh_skew)

        self._resolver = NavigationResolver(self._metadata_cache, self._config.custom_prefixes)
        self._parser = FormXmlParser(self._config.language_code, self._config.custom_prefixes)

        self._odata: Optional[_ODataClient] = None
        self._session: Optional[requests.Session] = None
        self._owns_session: bool = False

        self.configs = ConfigOperations(self)
        self.contacts = ContactOperations(self)
        self.records = RecordOperations(self)

    def __enter__(self) -> "PortalClient":
        """Create an HTTP session shared by all calls inside the context."""
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """
        Release the HTTP session and the internal OData client.

        Safe to call multiple times.
        """
        if self._odata is not None:
            self._odata.close()
            self._odata = None
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None
            self._owns_session = False

    def clear_caches(self) -> None:
        """Drop cached configurations and schema metadata. The service token is kept."""
        self._config_cache.clear()
        self._metadata_cache.clear()

    def _get_odata(self) -> _ODataClient:
        """
        Get or create the internal OData client instance.

        :return: The lazily-initialized low-level client used to perform HTTP requests.
        :rtype: ~community_portal.data._odata._ODataClient
        """
        if self._odata is None:
            self._odata = _ODataClient(
                self.auth,
                self._base_url,
                self._config,
                metadata_cache=self._metadata_cache,
                session=self._session,
            )
        return self._odata


__all__ = ["PortalClient"]
