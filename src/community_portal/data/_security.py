# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Record-scoping filters.

Every read and every pre-mutation check ANDs the fragment built here onto its
``$filter``. The builder fails closed: missing context raises instead of
producing a broader filter.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Sequence

from ..common.constants import ACTIVE_STATE_FILTER, CONTACT_PARENT_ACCOUNT_FIELD
from ..core._error_codes import ADMIN_REQUIRED, OWNERSHIP_NO_PARENT_ACCOUNT, OWNERSHIP_UNVERIFIABLE
from ..core.errors import AuthorizationError
from ..models.contact import ContactRecord
from ..models.entity_config import EntityConfiguration, OwnershipPattern
from ._navigation import lookup_value_name

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    PERSONAL = "personal"
    ORGANIZATION = "organization"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ViewMode":
        """Unknown or missing values read as personal."""
        try:
            return cls((value or cls.PERSONAL.value).lower())
        except ValueError:
            return cls.PERSONAL


def escape_odata_literal(value: str) -> str:
    """Escape single quotes for OData string literals (by doubling them)."""
    return value.replace("'", "''")


def _eq(field: str, value: str) -> str:
    return f"{field} eq '{escape_odata_literal(value)}'"


def uses_organization_scope(config: EntityConfiguration, contact: ContactRecord, view_mode: ViewMode) -> bool:
    """Whether the filter for this caller spans the parent account's contacts."""
    return (
        view_mode is ViewMode.ORGANIZATION
        and config.ownership is OwnershipPattern.CONTACT
        and contact.is_admin
        and bool(contact.parent_account_id)
    )


def build_security_filter(
    config: EntityConfiguration,
    contact: ContactRecord,
    view_mode: ViewMode = ViewMode.PERSONAL,
    member_contact_ids: Optional[Sequence[str]] = None,
) -> str:
    """
    Derive the ``$filter`` fragment scoping ``config``'s records to ``contact``.

    :param config: Configuration of the entity being accessed.
    :type config: ~community_portal.models.entity_config.EntityConfiguration
    :param contact: The caller's verified contact.
    :type contact: ~community_portal.models.contact.ContactRecord
    :param view_mode: Personal or organization view.
    :type view_mode: ViewMode
    :param member_contact_ids: Active contacts under the caller's parent account; only
        consulted for organization views.
    :type member_contact_ids: Sequence[str] or None
    :return: Filter fragment, always including ``statecode eq 0``.
    :rtype: str
    :raises ~community_portal.core.errors.AuthorizationError: When the caller cannot be
        scoped for this entity.
    """
    pattern = config.ownership

    if pattern is OwnershipPattern.ADMIN_ONLY:
        if not contact.is_admin:
            raise AuthorizationError(
                f"{config.entity_logical_name} has no ownership field and caller is not an admin",
                subcode=ADMIN_REQUIRED,
            )
        return ACTIVE_STATE_FILTER

    owner_field = lookup_value_name(config.ownership_field)

    if pattern is OwnershipPattern.ACCOUNT:
        if not contact.parent_account_id:
            raise AuthorizationError(
                f"Caller has no parent account for account-owned {config.entity_logical_name}",
                subcode=OWNERSHIP_NO_PARENT_ACCOUNT,
            )
        if config.requires_admin and not contact.is_admin:
            raise AuthorizationError(
                f"{config.entity_logical_name} requires admin access",
                subcode=ADMIN_REQUIRED,
            )
        return f"{ACTIVE_STATE_FILTER} and {_eq(owner_field, contact.parent_account_id)}"

    if not contact.contact_id:
        raise AuthorizationError("Caller contact id is missing", subcode=OWNERSHIP_UNVERIFIABLE)

    if uses_organization_scope(config, contact, view_mode):
        members: List[str] = []
        for cid in [contact.contact_id, *(member_contact_ids or [])]:
            if cid and cid not in members:
                members.append(cid)
        if len(members) > 1:
            clauses = " or ".join(_eq(owner_field, cid) for cid in members)
            return f"{ACTIVE_STATE_FILTER} and ({clauses})"
        logger.warning(
            "Account %s has no other resolvable contacts; %s organization view falls back to personal",
            contact.parent_account_id,
            config.entity_logical_name,
        )

    return f"{ACTIVE_STATE_FILTER} and {_eq(owner_field, contact.contact_id)}"


def organization_contacts_filter(contact: ContactRecord) -> str:
    """
    ``$filter`` fragment for the contacts of an administrator's parent account.

    :raises ~community_portal.core.errors.AuthorizationError: When the caller is not a
        portal administrator or has no parent account.
    """
    if not contact.is_admin:
        raise AuthorizationError("Organization contacts require admin access", subcode=ADMIN_REQUIRED)
    if not contact.parent_account_id:
        raise AuthorizationError(
            f"Contact {contact.contact_id} has no parent account",
            subcode=OWNERSHIP_NO_PARENT_ACCOUNT,
        )
    return f"{ACTIVE_STATE_FILTER} and {_eq(CONTACT_PARENT_ACCOUNT_FIELD, contact.parent_account_id)}"


def self_contact_filter(column: str, value: str) -> str:
    """``$filter`` matching the caller's own contact on ``column`` (email or subject)."""
    return _eq(column, value)
