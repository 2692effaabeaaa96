# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Entity configuration operations namespace."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from ..core._error_codes import NOT_FOUND_ENTITY
from ..core.errors import NotFoundError
from ..models.entity_config import EntityConfiguration

if TYPE_CHECKING:
    from ..client import PortalClient

logger = logging.getLogger(__name__)

_CACHE_KEY = "entity_configs"


def _singular_plural_forms(slug: str) -> List[str]:
    forms = [slug]
    if slug.endswith("ies"):
        forms.append(slug[:-3] + "y")
    if slug.endswith("s"):
        forms.append(slug[:-1])
    else:
        forms.append(slug + "s")
        if slug.endswith("y"):
            forms.append(slug[:-1] + "ies")
    return forms


class ConfigOperations:
    """
    Read access to the ``cp_entityconfigs`` table.

    Accessed via ``client.configs``. All active configurations are loaded with
    one call and cached for ``config_cache_ttl`` seconds.

    Example::

        menu = client.configs.list(is_admin=contact.is_admin)
        ideas = client.configs.get("ideas")
    """

    def __init__(self, client: "PortalClient") -> None:
        self._client = client

    def _all(self) -> List[EntityConfiguration]:
        cache = self._client._config_cache
        configs: Optional[List[EntityConfiguration]] = cache.get(_CACHE_KEY)
        if configs is not None:
            return configs
        rows = self._client._get_odata()._list_entity_configs()
        configs = [EntityConfiguration.from_api(row) for row in rows if row.get("cp_entitylogicalname")]
        cache.set(_CACHE_KEY, configs)
        logger.debug("Loaded %d entity configurations", len(configs))
        return configs

    def list(self, is_admin: bool = False) -> List[EntityConfiguration]:
        """
        Menu entries visible to the caller, ordered by ``menu_order``.

        :param is_admin: Whether the caller is a portal admin. Non-admins never see
            configurations that require admin.
        :type is_admin: bool
        :rtype: list[~community_portal.models.entity_config.EntityConfiguration]
        """
        entries = [c for c in self._all() if c.show_in_menu and (is_admin or not c.requires_admin)]
        return sorted(entries, key=lambda c: c.menu_order)

    def get(self, name: str) -> EntityConfiguration:
        """
        Resolve a URL slug to a configuration.

        Tries the logical name, then the configured name, then a singular/plural
        tolerant match on the configured name. Comparisons ignore case.

        :raises ~community_portal.core.errors.NotFoundError: If nothing matches.
        """
        slug = (name or "").strip().lower()
        if not slug:
            raise NotFoundError("Entity name is required", subcode=NOT_FOUND_ENTITY)
        configs = self._all()
        for config in configs:
            if config.entity_logical_name == slug:
                return config
        for config in configs:
            if config.name.lower() == slug:
                return config
        forms = _singular_plural_forms(slug)
        for config in configs:
            if config.name.lower() in forms:
                return config
        logger.info("No entity configuration matches %r", name)
        raise NotFoundError(f"Entity configuration {name!r} not found", subcode=NOT_FOUND_ENTITY)

    def invalidate(self) -> None:
        """Drop cached configurations so the next read reloads them."""
        self._client._config_cache.invalidate(_CACHE_KEY)
