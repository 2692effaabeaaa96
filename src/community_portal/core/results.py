# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Result types returned by the record operations.

Each result serializes to the JSON shape the portal front end consumes via
``to_dict()``; keys are camel-cased there and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class PagedResult:
    """
    One page of a list or subgrid query.

    :param entities: Records on this page.
    :type entities: :class:`list` of :class:`dict`
    :param page: 1-based page number that was served.
    :type page: :class:`int`
    :param page_size: Effective page size after clamping.
    :type page_size: :class:`int`
    :param total_count: Total matching records reported by the service.
    :type total_count: :class:`int`
    :param has_more: Whether another page exists.
    :type has_more: :class:`bool`
    """

    entities: List[Dict[str, Any]]
    page: int
    page_size: int
    total_count: int
    has_more: bool
    mode: str = "list"
    entity_config: Optional[Dict[str, Any]] = None
    view_metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": self.entities,
            "entityConfig": self.entity_config,
            "viewMetadata": self.view_metadata,
            "totalCount": self.total_count,
            "page": self.page,
            "pageSize": self.page_size,
            "hasMore": self.has_more,
            "mode": self.mode,
        }


@dataclass(frozen=True)
class RecordResult:
    """Single record read."""

    entity: Dict[str, Any]
    entity_config: Optional[Dict[str, Any]] = None
    mode: str = "single"

    def to_dict(self) -> Dict[str, Any]:
        return {"entity": self.entity, "entityConfig": self.entity_config, "mode": self.mode}


@dataclass(frozen=True)
class FormResult:
    form_metadata: Optional[Dict[str, Any]]
    entity_config: Optional[Dict[str, Any]] = None
    mode: str = "form"

    def to_dict(self) -> Dict[str, Any]:
        return {"formMetadata": self.form_metadata, "entityConfig": self.entity_config, "mode": self.mode}


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a create, update or delete.

    :param entity_id: Id of the affected record.
    :type entity_id: :class:`str`
    :param mode: ``"create"``, ``"update"`` or ``"delete"``.
    :type mode: :class:`str`
    """

    entity_id: str
    mode: str
    entity_config: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"entityId": self.entity_id, "entityConfig": self.entity_config, "mode": self.mode}


@dataclass(frozen=True)
class ProfileResult:
    """
    The caller's own contact, looked up from the token.

    :param contact: The contact row, or ``None`` when the caller has none yet.
    :type contact: :class:`dict` or None
    :param created: Set on saves; whether the save created the contact.
    :type created: :class:`bool` or None
    """

    contact: Optional[Dict[str, Any]]
    created: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.created is None:
            return {"contact": self.contact, "found": self.contact is not None}
        return {"contact": self.contact, "created": self.created}


@dataclass(frozen=True)
class OrganizationResult:
    """
    A view of the contacts under an administrator's parent account.

    ``mode`` is ``"list"``, ``"dynamic"``, ``"form"`` or ``"single"``; only the
    members relevant to it are set.
    """

    account_id: str
    mode: str
    contacts: Optional[List[Dict[str, Any]]] = None
    contact: Optional[Dict[str, Any]] = None
    view_metadata: Optional[Dict[str, Any]] = None
    form_metadata: Optional[Dict[str, Any]] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    total_count: Optional[int] = None
    has_more: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"accountId": self.account_id, "isAdmin": True, "mode": self.mode}
        if self.mode in ("list", "dynamic"):
            out.update(
                contacts=self.contacts or [],
                totalCount=self.total_count,
                page=self.page,
                pageSize=self.page_size,
                hasMore=self.has_more,
            )
        if self.mode == "dynamic":
            out["viewMetadata"] = self.view_metadata
        elif self.mode == "form":
            out["formMetadata"] = self.form_metadata
        elif self.mode == "single":
            out["contact"] = self.contact
        return out
