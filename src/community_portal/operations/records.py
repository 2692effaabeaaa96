# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Configured-entity record operations namespace."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..common.constants import (
    ACTIVE_STATE_FILTER,
    METADATA_PASSTHROUGH_KEYS,
    ODATA_BIND_SUFFIX,
    ODATA_ETAG,
)
from ..core._error_codes import (
    ADMIN_REQUIRED,
    NOT_FOUND_RECORD,
    NOT_FOUND_SUBGRID,
    OWNERSHIP_NO_PARENT_ACCOUNT,
    VALIDATION_BODY,
    VALIDATION_FIELD_SECURITY,
    VALIDATION_FORM_REQUIRED,
    VALIDATION_INVALID_GUID,
    VALIDATION_OWNERSHIP_CHANGE,
    VALIDATION_UNRESOLVED_LOOKUP,
)
from ..core.errors import (
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from ..core.identity import UserIdentity
from ..core.results import FormResult, MutationResult, PagedResult, RecordResult
from ..data._field_security import ensure_fields_allowed, is_system_managed
from ..data._navigation import LookupMapping, lookup_base_name, lookup_value_name
from ..data._odata import _ODataClient, is_guid, sanitize_guid
from ..data._security import ViewMode, build_security_filter, escape_odata_literal, uses_organization_scope
from ..models.contact import ContactRecord
from ..models.entity_config import EntityConfiguration, OwnershipPattern
from ..models.form import FormMetadata, ViewMetadata

if TYPE_CHECKING:
    from ..client import PortalClient

logger = logging.getLogger(__name__)

_BIND_TARGET_RE = re.compile(r"^/?[A-Za-z0-9_]+\(([0-9a-fA-F-]{36})\)$")
_DEFAULT_ORDER = "createdon desc"


@dataclass(frozen=True)
class RequestContext:
    """
    An authorized caller bound to one configured entity.

    Produced by :meth:`RecordOperations.authorize`; every other operation takes one.

    :param identity: Decoded bearer token.
    :type identity: ~community_portal.core.identity.UserIdentity
    :param contact: The caller's verified contact.
    :type contact: ~community_portal.models.contact.ContactRecord
    :param config: The entity being accessed.
    :type config: ~community_portal.models.entity_config.EntityConfiguration
    :param view_mode: Personal or organization view.
    :type view_mode: ~community_portal.data._security.ViewMode
    """

    identity: UserIdentity
    contact: ContactRecord
    config: EntityConfiguration
    view_mode: ViewMode = ViewMode.PERSONAL


@dataclass
class _PreparedWrite:
    body: Dict[str, Any] = field(default_factory=dict)
    etag: Optional[str] = None
    ownership: Optional[LookupMapping] = None
    requested_owners: List[Optional[str]] = field(default_factory=list)


class RecordOperations:
    """
    CRUD over configured entities, scoped to the caller.

    Accessed via ``client.records``. Each request first passes through
    :meth:`authorize` (resolve entity, load configuration, verify contact
    ownership, admin check); the returned :class:`RequestContext` then drives one of
    the read or write operations.

    Example::

        ctx = client.records.authorize("ideas", contact_guid, identity)
        page = client.records.list(ctx, page=2, page_size=25)
        new_id = client.records.create(ctx, {"cp_name": "Better coffee"}).entity_id
    """

    def __init__(self, client: "PortalClient") -> None:
        self._client = client

    # ------------------------------------------------------------ authorization

    def authorize(
        self,
        entity: str,
        contact_guid: str,
        identity: UserIdentity,
        view_mode: Optional[str] = None,
    ) -> RequestContext:
        """
        Resolve ``entity`` and bind the caller to it.

        :raises ~community_portal.core.errors.NotFoundError: Unknown entity.
        :raises ~community_portal.core.errors.AuthorizationError: Contact not owned by caller,
            or admin required.
        """
        config = self._client.configs.get(entity)
        contact = self._client.contacts.verify(contact_guid, identity)
        if config.requires_admin and not contact.is_admin:
            logger.warning("Non-admin contact %s denied admin entity %s", contact.contact_id, config.name)
            raise AuthorizationError(f"{config.name} requires admin access", subcode=ADMIN_REQUIRED)
        return RequestContext(identity, contact, config, ViewMode.parse(view_mode))

    # -------------------------------------------------------------------- reads

    def list(self, ctx: RequestContext, page: int = 1, page_size: Optional[int] = None) -> PagedResult:
        """
        One page of the caller's records, shaped by the main view.

        ``page_size`` is clamped to ``max_page_size``; the clamped value is reported back.
        """
        od = self._client._get_odata()
        config = ctx.config
        page, size = self._window(page, page_size)
        view = self._load_view(od, config.view_main_guid)
        self._ensure_schema(od, config.entity_logical_name)
        definition = od._get_entity_definition(config.entity_logical_name)
        select, expand = self._query_shape(
            config.entity_logical_name,
            definition["PrimaryIdAttribute"],
            [c.name for c in view.columns] if view else [],
            config,
        )
        result = od._get_multiple(
            definition["EntitySetName"],
            select=select,
            filter=self._security_filter(ctx),
            expand=expand,
            orderby=_DEFAULT_ORDER,
            page=page,
            page_size=size,
        )
        return PagedResult(
            entities=result.records,
            page=page,
            page_size=size,
            total_count=result.total_count,
            has_more=result.has_more,
            mode="list",
            entity_config=config.to_dict(),
            view_metadata=view.to_dict() if view else None,
        )

    def get(self, ctx: RequestContext, record_id: str) -> RecordResult:
        """
        One record, if the caller may see it.

        A record outside the caller's scope is reported exactly like a missing one.
        """
        od = self._client._get_odata()
        config = ctx.config
        key = sanitize_guid(record_id, "Entity ID")
        if config.form_guid:
            form = self._load_form(od, config)
            fields = sorted(form.field_names())
        else:
            view = self._load_view(od, config.view_main_guid)
            fields = [c.name for c in view.columns] if view else []
        self._ensure_schema(od, config.entity_logical_name)
        definition = od._get_entity_definition(config.entity_logical_name)
        pk = definition["PrimaryIdAttribute"]
        select, expand = self._query_shape(config.entity_logical_name, pk, fields, config)
        record = od._get_first(
            definition["EntitySetName"],
            filter=f"{pk} eq {key} and {self._security_filter(ctx)}",
            select=select,
            expand=expand,
        )
        if record is None:
            raise NotFoundError("Record not found", subcode=NOT_FOUND_RECORD)
        return RecordResult(entity=record, entity_config=config.to_dict())

    def form(self, ctx: RequestContext) -> FormResult:
        """Parsed, subgrid-enriched form of the entity (``None`` when no form is configured)."""
        od = self._client._get_odata()
        form = self._load_form(od, ctx.config) if ctx.config.form_guid else None
        return FormResult(form_metadata=form.to_dict() if form else None, entity_config=ctx.config.to_dict())

    def subgrid(
        self,
        ctx: RequestContext,
        parent_id: str,
        relationship: str,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PagedResult:
        """
        Active related records of a parent the caller may see.

        :raises ~community_portal.core.errors.NotFoundError: Parent not visible, or the form
            has no subgrid for ``relationship``.
        """
        od = self._client._get_odata()
        config = ctx.config
        parent = sanitize_guid(parent_id, "Parent ID")
        if not relationship:
            raise ValidationError("Relationship name is required for subgrid mode", subcode=VALIDATION_BODY)
        page, size = self._window(page, page_size)
        if not config.form_guid:
            # subgrids are declared on the form
            raise NotFoundError(f"Subgrid {relationship!r} not found", subcode=NOT_FOUND_SUBGRID)

        self._verify_record(od, ctx, parent)
        form = self._load_form(od, config)
        descriptor = form.find_subgrid(relationship)
        if descriptor is None:
            raise NotFoundError(f"Subgrid {relationship!r} not found", subcode=NOT_FOUND_SUBGRID)
        if not descriptor.lookup_field:
            raise ConfigurationError(f"Relationship {descriptor.relationship_name} has no referencing attribute")

        target = descriptor.target_entity
        view = self._load_view(od, descriptor.view_id or config.view_subgrid_guid)
        self._ensure_schema(od, target)
        definition = od._get_entity_definition(target)
        select, expand = self._query_shape(
            target,
            definition["PrimaryIdAttribute"],
            [c.name for c in view.columns] if view else [],
            None,
        )
        parent_filter = f"{lookup_value_name(descriptor.lookup_field)} eq '{escape_odata_literal(parent)}'"
        result = od._get_multiple(
            definition["EntitySetName"],
            select=select,
            filter=f"{parent_filter} and {ACTIVE_STATE_FILTER}",
            expand=expand,
            orderby=_DEFAULT_ORDER,
            page=page,
            page_size=size,
        )
        return PagedResult(
            entities=result.records,
            page=page,
            page_size=size,
            total_count=result.total_count,
            has_more=result.has_more,
            mode="subgrid",
            entity_config=config.to_dict(),
            view_metadata=view.to_dict() if view else None,
        )

    # ------------------------------------------------------------------- writes

    def create(self, ctx: RequestContext, payload: Mapping[str, Any]) -> MutationResult:
        """
        Create a record from a form-validated payload.

        The ownership lookup is always bound to the caller (contact-owned) or the
        caller's parent account (account-owned); any client value for it is discarded.
        """
        od = self._client._get_odata()
        config = ctx.config
        write = self._prepare_write(od, ctx, payload)
        # scope rules (parent account, admin) apply to creates as well
        build_security_filter(config, ctx.contact, ViewMode.PERSONAL)

        ownership = write.ownership
        if ownership is not None:
            if write.requested_owners:
                logger.info("Discarded client-supplied %s on %s create", ownership.attribute, config.entity_logical_name)
            owner_id = ctx.contact.contact_id if config.ownership is OwnershipPattern.CONTACT else ctx.contact.parent_account_id
            if not owner_id:
                raise AuthorizationError("Caller has no owning record for this entity", subcode=OWNERSHIP_NO_PARENT_ACCOUNT)
            key, value = ownership.bind(owner_id, self._entity_set_for(od, ownership))
            write.body[key] = value

        entity_set = od._entity_set_from_logical(config.entity_logical_name)
        new_id = od._create(entity_set, write.body)
        logger.info("Created %s %s for contact %s", config.entity_logical_name, new_id, ctx.contact.contact_id)
        return MutationResult(entity_id=new_id, mode="create", entity_config=config.to_dict())

    def update(self, ctx: RequestContext, record_id: str, payload: Mapping[str, Any]) -> MutationResult:
        """
        Update a record the caller may see.

        Ownership is re-checked immediately before the PATCH. An ownership value equal
        to the current owner is dropped; any other value is rejected.
        """
        od = self._client._get_odata()
        config = ctx.config
        key = sanitize_guid(record_id, "Entity ID")
        write = self._prepare_write(od, ctx, payload)

        current = self._verify_record(od, ctx, key, write.ownership)
        if write.requested_owners:
            current_owner = (current.get(lookup_value_name(write.ownership.attribute)) or "").lower()
            if any(owner is None or owner.lower() != current_owner for owner in write.requested_owners):
                logger.warning(
                    "Rejected ownership change on %s %s by contact %s",
                    config.entity_logical_name,
                    key,
                    ctx.contact.contact_id,
                )
                raise ValidationError("Ownership cannot be changed", subcode=VALIDATION_OWNERSHIP_CHANGE)

        if not write.body:
            raise ValidationError("No fields to update", subcode=VALIDATION_BODY)
        od._update(od._entity_set_from_logical(config.entity_logical_name), key, write.body, write.etag)
        logger.info("Updated %s %s for contact %s", config.entity_logical_name, key, ctx.contact.contact_id)
        return MutationResult(entity_id=key, mode="update", entity_config=config.to_dict())

    def delete(self, ctx: RequestContext, record_id: str) -> MutationResult:
        """Delete a record the caller may see, re-checking ownership first."""
        od = self._client._get_odata()
        config = ctx.config
        key = sanitize_guid(record_id, "Entity ID")
        self._verify_record(od, ctx, key)
        od._delete(od._entity_set_from_logical(config.entity_logical_name), key)
        logger.info("Deleted %s %s for contact %s", config.entity_logical_name, key, ctx.contact.contact_id)
        return MutationResult(entity_id=key, mode="delete", entity_config=config.to_dict())

    # ------------------------------------------------------------------ helpers

    def _window(self, page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
        cfg = self._client._config
        size = page_size if page_size and page_size > 0 else cfg.default_page_size
        return max(1, page or 1), min(size, cfg.max_page_size)

    def _security_filter(self, ctx: RequestContext) -> str:
        members: Optional[List[str]] = None
        if uses_organization_scope(ctx.config, ctx.contact, ctx.view_mode):
            members = self._client.contacts.organization_contact_ids(ctx.contact.parent_account_id)
        return build_security_filter(ctx.config, ctx.contact, ctx.view_mode, members)

    def _verify_record(
        self,
        od: _ODataClient,
        ctx: RequestContext,
        key: str,
        ownership: Optional[LookupMapping] = None,
    ) -> Dict[str, Any]:
        definition = od._get_entity_definition(ctx.config.entity_logical_name)
        pk = definition["PrimaryIdAttribute"]
        select = [pk]
        if ownership is not None:
            select.append(lookup_value_name(ownership.attribute))
        record = od._get_first(
            definition["EntitySetName"],
            filter=f"{pk} eq {key} and {self._security_filter(ctx)}",
            select=select,
        )
        if record is None:
            logger.warning(
                "Contact %s has no access to %s %s",
                ctx.contact.contact_id,
                ctx.config.entity_logical_name,
                key,
            )
            raise NotFoundError("Record not found", subcode=NOT_FOUND_RECORD)
        return record

    def _load_view(self, od: _ODataClient, view_id: Optional[str]) -> Optional[ViewMetadata]:
        if not view_id:
            return None
        return self._client._parser.parse_view(od._get_saved_query(view_id))

    def _load_form(self, od: _ODataClient, config: EntityConfiguration) -> FormMetadata:
        if not config.form_guid:
            raise ValidationError(
                f"{config.name} has no form configured; writes are disabled",
                subcode=VALIDATION_FORM_REQUIRED,
            )
        form = self._client._parser.parse_form(od._get_system_form(config.form_guid))
        for descriptor in form.subgrids:
            if descriptor.lookup_field:
                continue
            cache_key = ("relationship", descriptor.relationship_name.lower())
            relationship = self._client._metadata_cache.get(cache_key)
            if relationship is None:
                relationship = od._get_relationship(descriptor.relationship_name) or {}
                self._client._metadata_cache.set(cache_key, relationship)
            attribute = relationship.get("ReferencingAttribute")
            descriptor.lookup_field = attribute.lower() if attribute else None
        return form

    def _ensure_schema(self, od: _ODataClient, entity: str) -> None:
        resolver = self._client._resolver
        if not resolver.has_schema(entity):
            resolver.register_schema(entity, od._get_many_to_one_relationships(entity))

    def _query_shape(
        self,
        entity: str,
        pk: str,
        fields: Sequence[str],
        config: Optional[EntityConfiguration],
    ) -> Tuple[List[str], List[str]]:
        """``$select`` and ``$expand`` for ``fields``; lookups read as ``_x_value`` plus the target's name."""
        resolver = self._client._resolver
        owner_entity = None if config is not None else entity
        select: List[str] = [pk]
        expand: List[str] = []
        names = list(fields) or ["createdon", "modifiedon", "statecode"]
        if config is not None and config.ownership_field:
            names.append(config.ownership_field)
        for name in names:
            if not name or "." in name:
                # linked-entity columns (alias.column) are not selectable on the base set
                continue
            if resolver.is_lookup(name, config, owner_entity):
                column = lookup_value_name(name)
                clause = resolver.expand_clause(name, config, owner_entity)
                if clause and clause not in expand:
                    expand.append(clause)
            else:
                column = name.lower()
            if column not in select:
                select.append(column)
        return select, expand

    def _ownership_mapping(self, config: EntityConfiguration) -> Optional[LookupMapping]:
        if config.ownership_field is None:
            return None
        mapping = self._client._resolver.resolve_for_write(config.ownership_field, config)
        if mapping is None:
            raise ConfigurationError(f"Ownership field {config.ownership_field} cannot be resolved for writes")
        return mapping

    def _entity_set_for(self, od: _ODataClient, mapping: LookupMapping) -> Optional[str]:
        if mapping.referenced_entity:
            return od._entity_set_from_logical(mapping.referenced_entity)
        return mapping.entity_set

    @staticmethod
    def _is_ownership_bind(key: str, navigation: Mapping[str, str], ownership: LookupMapping) -> bool:
        nav = key[: -len(ODATA_BIND_SUFFIX)].lower()
        if nav == ownership.navigation_property.lower():
            return True
        return ownership.attribute in (nav, navigation.get(nav))

    def _prepare_write(
        self,
        od: _ODataClient,
        ctx: RequestContext,
        payload: Mapping[str, Any],
    ) -> _PreparedWrite:
        """
        Validate ``payload`` against the form and translate lookups; nothing is sent.

        Assignments of the ownership lookup, however spelled (``_x_value``, ``x``,
        or any casing of its bind key), never reach the body. Their target ids are
        returned in ``requested_owners`` for the caller to discard or check.
        """
        config = ctx.config
        if not isinstance(payload, Mapping) or not payload:
            raise ValidationError("Request body must be a non-empty JSON object", subcode=VALIDATION_BODY)

        denied = sorted(k for k in payload if k not in METADATA_PASSTHROUGH_KEYS and is_system_managed(k))
        if denied:
            logger.warning("Rejected write to %s: system-managed fields: %s", config.entity_logical_name, ", ".join(denied))
            raise ValidationError(
                "Payload contains fields that are not permitted",
                subcode=VALIDATION_FIELD_SECURITY,
                violating_fields=denied,
            )

        form = self._load_form(od, config)
        self._ensure_schema(od, config.entity_logical_name)
        resolver = self._client._resolver
        navigation = resolver.navigation_index(sorted(form.field_names()), config)
        ensure_fields_allowed(payload, form, config.entity_logical_name, navigation)
        ownership = self._ownership_mapping(config)

        write = _PreparedWrite(etag=payload.get(ODATA_ETAG), ownership=ownership)
        for key, value in payload.items():
            if key in METADATA_PASSTHROUGH_KEYS:
                continue
            if key.endswith(ODATA_BIND_SUFFIX):
                target = None
                if value is not None:
                    m = _BIND_TARGET_RE.match(str(value).strip())
                    if m is None:
                        raise ValidationError(f"Invalid reference for {key}", subcode=VALIDATION_INVALID_GUID)
                    target = m.group(1)
                if ownership is not None and self._is_ownership_bind(key, navigation, ownership):
                    write.requested_owners.append(target)
                else:
                    write.body[key] = value
                continue
            if not resolver.is_lookup(key, config):
                write.body[key.lower()] = value
                continue
            if value is not None and not is_guid(value):
                raise ValidationError(f"Lookup {key} must be a GUID or null", subcode=VALIDATION_INVALID_GUID)
            record_id = value.strip() if value is not None else None
            if ownership is not None and lookup_base_name(key) == ownership.attribute:
                write.requested_owners.append(record_id)
                continue
            mapping = resolver.resolve_for_write(key, config)
            if mapping is None:
                raise ValidationError(
                    f"Lookup {lookup_base_name(key)} cannot be resolved",
                    subcode=VALIDATION_UNRESOLVED_LOOKUP,
                    violating_fields=[key],
                )
            bind_key, bind_value = mapping.bind(record_id, self._entity_set_for(od, mapping))
            write.body[bind_key] = bind_value
        return write
