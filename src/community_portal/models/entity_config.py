# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity configuration records.

One :class:`EntityConfiguration` describes a record type the portal can
manage: which form and views shape it and which lookup column ties each record
to its owner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class OwnershipPattern(str, Enum):
    """Rule deciding which records a caller may see or modify."""

    CONTACT = "contact"
    ACCOUNT = "account"
    ADMIN_ONLY = "admin_only"


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class EntityConfiguration:
    """
    A manageable record type, as authored in the ``cp_entityconfigs`` table.

    :param id: Configuration row id.
    :type id: str
    :param name: Display name; also the URL slug.
    :type name: str
    :param entity_logical_name: Dataverse logical name, e.g. ``"cp_idea"``.
    :type entity_logical_name: str
    :param form_guid: ``systemforms`` id driving writes, if any.
    :type form_guid: str or None
    :param view_main_guid: ``savedqueries`` id for the list view, if any.
    :type view_main_guid: str or None
    :param view_subgrid_guid: ``savedqueries`` id used when the records appear as a subgrid.
    :type view_subgrid_guid: str or None
    :param contact_relation_field: Lookup column pointing at the owning contact.
    :type contact_relation_field: str or None
    :param account_relation_field: Lookup column pointing at the owning account.
    :type account_relation_field: str or None
    """

    id: Optional[str]
    name: str
    entity_logical_name: str
    form_guid: Optional[str] = None
    view_main_guid: Optional[str] = None
    view_subgrid_guid: Optional[str] = None
    contact_relation_field: Optional[str] = None
    account_relation_field: Optional[str] = None
    show_in_menu: bool = False
    menu_icon: Optional[str] = None
    menu_order: int = 0
    requires_admin: bool = False
    enable_subgrid_edit: bool = False
    description: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "EntityConfiguration":
        """Build from a ``cp_entityconfigs`` row."""
        logical = _clean(raw.get("cp_entitylogicalname")) or ""
        config = cls(
            id=_clean(raw.get("cp_entityconfigid")),
            name=_clean(raw.get("cp_name")) or logical,
            entity_logical_name=logical.lower(),
            form_guid=_clean(raw.get("cp_formguid")),
            view_main_guid=_clean(raw.get("cp_viewmainguid")),
            view_subgrid_guid=_clean(raw.get("cp_viewsubgridguid")),
            contact_relation_field=_clean(raw.get("cp_contactrelationfield")),
            account_relation_field=_clean(raw.get("cp_accountrelationfield")),
            show_in_menu=bool(raw.get("cp_showinmenu")),
            menu_icon=_clean(raw.get("cp_menuicon")),
            menu_order=int(raw.get("cp_menuorder") or 0),
            requires_admin=bool(raw.get("cp_requiresadmin")),
            enable_subgrid_edit=bool(raw.get("cp_enablesubgridedit")),
            description=_clean(raw.get("cp_description")),
        )
        if config.contact_relation_field and config.account_relation_field:
            logger.warning(
                "Entity configuration %s sets both contact and account relation fields; using %s",
                config.name,
                config.contact_relation_field,
            )
        return config

    @property
    def ownership(self) -> OwnershipPattern:
        if self.contact_relation_field:
            return OwnershipPattern.CONTACT
        if self.account_relation_field:
            return OwnershipPattern.ACCOUNT
        return OwnershipPattern.ADMIN_ONLY

    @property
    def ownership_field(self) -> Optional[str]:
        """The lookup column of the active ownership pattern, lowercased."""
        if self.ownership is OwnershipPattern.CONTACT:
            return self.contact_relation_field.lower()
        if self.ownership is OwnershipPattern.ACCOUNT:
            return self.account_relation_field.lower()
        return None

    @property
    def url_path(self) -> str:
        return self.name or self.entity_logical_name

    @property
    def list_path(self) -> str:
        return f"/entity/{self.url_path}"

    @property
    def edit_path(self) -> str:
        return f"/entity/{self.url_path}/edit"

    @property
    def create_path(self) -> str:
        return f"/entity/{self.url_path}/create"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "entityLogicalName": self.entity_logical_name,
            "urlPath": self.url_path,
            "formGuid": self.form_guid,
            "viewMainGuid": self.view_main_guid,
            "viewSubgridGuid": self.view_subgrid_guid,
            "contactRelationField": self.contact_relation_field,
            "accountRelationField": self.account_relation_field,
            "ownership": self.ownership.value,
            "showInMenu": self.show_in_menu,
            "menuIcon": self.menu_icon,
            "menuOrder": self.menu_order,
            "requiresAdmin": self.requires_admin,
            "enableSubgridEdit": self.enable_subgrid_edit,
            "description": self.description,
            "listPath": self.list_path,
            "editPath": self.edit_path,
            "createPath": self.create_path,
        }
